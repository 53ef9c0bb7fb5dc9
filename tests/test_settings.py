"""Tests for jsw.core.config (settings file + issue codec) and jsw.core.vault."""

import base64
import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

import fakes  # noqa: F401  (sets JSW_DATA_DIR before jsw is imported)


class _PrefixVault:
    """Reversible stand-in for CredentialVault that counts calls."""

    def __init__(self):
        self.encrypt_calls = 0
        self.decrypt_calls = 0

    def encrypt(self, plaintext):
        self.encrypt_calls += 1
        return "enc:" + plaintext[::-1]

    def decrypt(self, ciphertext):
        self.decrypt_calls += 1
        return ciphertext[len("enc:"):][::-1]


# ──────────────────────────────────────────────────────────────────────────
# Issue codec
# ──────────────────────────────────────────────────────────────────────────

class TestIssueCodec(unittest.TestCase):

    def test_empty_blob_is_empty_list(self):
        from jsw.core.config import decode_issues
        self.assertEqual(decode_issues(""), [])

    def test_encode_decode(self):
        from jsw.core.config import decode_issues, encode_issues
        from jsw.core.timer_state import PersistedIssue
        issues = [PersistedIssue("ABC-1", 61.5), PersistedIssue("", 0.0), PersistedIssue("XYZ-9", 3600.0)]
        self.assertEqual(decode_issues(encode_issues(issues)), issues)

    def test_garbage_is_corrupt(self):
        from jsw.core.config import decode_issues
        from jsw.core.errors import PersistenceCorrupt
        for blob in ("not base64!!", base64.b64encode(b"{nope").decode(), base64.b64encode(b"[1, 2]").decode()):
            with self.assertRaises(PersistenceCorrupt):
                decode_issues(blob)

    def test_unknown_version_is_corrupt(self):
        from jsw.core.config import decode_issues
        from jsw.core.errors import PersistenceCorrupt
        blob = base64.b64encode(json.dumps({"version": 99, "issues": []}).encode()).decode()
        with self.assertRaises(PersistenceCorrupt):
            decode_issues(blob)

    def test_partial_entry_is_corrupt(self):
        from jsw.core.config import decode_issues
        from jsw.core.errors import PersistenceCorrupt
        payload = {"version": 1, "issues": [{"issueKey": "ABC-1"}]}
        blob = base64.b64encode(json.dumps(payload).encode()).decode()
        with self.assertRaises(PersistenceCorrupt):
            decode_issues(blob)


# ──────────────────────────────────────────────────────────────────────────
# SettingsStore
# ──────────────────────────────────────────────────────────────────────────

class TestSettingsStore(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.path = Path(self.tmpdir) / "settings.json"
        self.vault = _PrefixVault()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _store(self, vault=None):
        from jsw.core.config import SettingsStore
        return SettingsStore(self.path, vault or self.vault)

    def _full_settings(self):
        from jsw.core.config import SaveTimerSetting, Settings
        from jsw.core.timer_state import PersistedIssue
        return Settings(
            jira_base_url="https://jira.example.com",
            always_on_top=True,
            minimize_to_tray=True,
            pause_active_timer=True,
            issue_count=3,
            issue_keys=["ABC-1", "", "XYZ-9"],
            timer_editable=True,
            save_timer_state=SaveTimerSetting.ASK,
            username="alice",
            password="hunter2",
            remember_credentials=True,
            first_run=False,
            current_filter=4,
            persisted_issues=[PersistedIssue("ABC-1", 120.0), PersistedIssue("", 0.0), PersistedIssue("XYZ-9", 7.25)],
        )

    def test_missing_file_gives_defaults(self):
        from jsw.core.config import SaveTimerSetting, Settings
        settings = self._store().load()
        self.assertEqual(settings, Settings())
        self.assertEqual(settings.issue_count, 6)
        self.assertEqual(settings.save_timer_state, SaveTimerSetting.ALWAYS)
        self.assertEqual(self.vault.decrypt_calls, 0)

    def test_save_load_roundtrip(self):
        original = self._full_settings()
        store = self._store()
        store.save(original)
        loaded = store.load()
        self.assertEqual(loaded, original)
        self.assertTrue(loaded.credentials_restored)

    def test_password_never_written_in_plaintext(self):
        self._store().save(self._full_settings())
        text = self.path.read_text(encoding="utf-8")
        self.assertNotIn("hunter2", text)
        self.assertEqual(json.loads(text)["password"], "enc:2retnuh")

    def test_empty_password_bypasses_vault(self):
        vault = Mock()
        settings = self._full_settings()
        settings.password = ""
        store = self._store(vault)
        store.save(settings)
        loaded = store.load()
        self.assertEqual(loaded.password, "")
        self.assertEqual(loaded, settings)
        vault.encrypt.assert_not_called()
        vault.decrypt.assert_not_called()

    def test_corrupt_issue_blob_falls_back_to_empty(self):
        self._store().save(self._full_settings())
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        raw["persistedIssues"] = "%%%definitely-not-a-blob%%%"
        self.path.write_text(json.dumps(raw), encoding="utf-8")

        loaded = self._store().load()
        self.assertEqual(loaded.persisted_issues, [])
        self.assertEqual(loaded.issue_keys, ["ABC-1", "", "XYZ-9"])

    def test_undecryptable_password_is_dropped(self):
        from jsw.core.errors import CryptoCorrupt
        self._store().save(self._full_settings())
        vault = Mock()
        vault.decrypt.side_effect = CryptoCorrupt("other machine")
        loaded = self._store(vault).load()
        self.assertEqual(loaded.password, "")
        self.assertFalse(loaded.credentials_restored)
        self.assertEqual(loaded.username, "alice")

    def test_encrypt_failure_writes_empty_password(self):
        from jsw.core.errors import CryptoUnavailable
        vault = Mock()
        vault.encrypt.side_effect = CryptoUnavailable("no key store")
        self._store(vault).save(self._full_settings())
        self.assertEqual(json.loads(self.path.read_text(encoding="utf-8"))["password"], "")

    def test_wrong_types_are_defaulted(self):
        self.path.write_text(json.dumps({
            "jiraBaseUrl": 12,
            "issueCount": True,
            "alwaysOnTop": "yes",
            "saveTimerState": 7,
            "issueKeys": ["A", 3],
            "currentFilter": 2,
        }), encoding="utf-8")
        loaded = self._store().load()
        self.assertEqual(loaded.jira_base_url, "")
        self.assertEqual(loaded.issue_count, 6)
        self.assertFalse(loaded.always_on_top)
        self.assertEqual(int(loaded.save_timer_state), 1)
        self.assertEqual(loaded.issue_keys, [])
        self.assertEqual(loaded.current_filter, 2)

    def test_unreadable_file_gives_defaults(self):
        from jsw.core.config import Settings
        self.path.write_text("{invalid json!!", encoding="utf-8")
        self.assertEqual(self._store().load(), Settings())


# ──────────────────────────────────────────────────────────────────────────
# CredentialVault
# ──────────────────────────────────────────────────────────────────────────

class TestCredentialVault(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.salt_path = Path(self.tmpdir) / "keys" / "vault.salt"

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _vault(self, scope="alice@box"):
        from jsw.core.vault import CredentialVault
        return CredentialVault(self.salt_path, scope=scope)

    def test_encrypt_decrypt(self):
        vault = self._vault()
        token = vault.encrypt("hunter2")
        self.assertNotIn("hunter2", token)
        self.assertEqual(vault.decrypt(token), "hunter2")
        self.assertTrue(self.salt_path.exists())

    def test_new_instance_same_scope_can_decrypt(self):
        token = self._vault().encrypt("pässwörd")
        self.assertEqual(self._vault().decrypt(token), "pässwörd")

    def test_other_user_cannot_decrypt(self):
        from jsw.core.errors import CryptoCorrupt
        token = self._vault("alice@box").encrypt("hunter2")
        with self.assertRaises(CryptoCorrupt):
            self._vault("bob@box").decrypt(token)

    def test_foreign_token_is_corrupt(self):
        from jsw.core.errors import CryptoCorrupt
        with self.assertRaises(CryptoCorrupt):
            self._vault().decrypt("this-was-never-a-token")

    def test_empty_input_rejected(self):
        vault = self._vault()
        with self.assertRaises(ValueError):
            vault.encrypt("")
        with self.assertRaises(ValueError):
            vault.decrypt("")

    def test_inaccessible_key_store_is_unavailable(self):
        from jsw.core.errors import CryptoUnavailable
        self.salt_path.mkdir(parents=True)  # a directory where the salt file should be
        with self.assertRaises(CryptoUnavailable):
            self._vault().encrypt("hunter2")

    def test_damaged_salt_is_unavailable(self):
        from jsw.core.errors import CryptoUnavailable
        self.salt_path.parent.mkdir(parents=True)
        self.salt_path.write_bytes(b"short")
        with self.assertRaises(CryptoUnavailable):
            self._vault().encrypt("hunter2")


# ──────────────────────────────────────────────────────────────────────────
# Data folders
# ──────────────────────────────────────────────────────────────────────────

class TestProjectPaths(unittest.TestCase):

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_build_creates_missing_folders(self):
        from jsw.common.setup import ProjectPaths
        root = self.tmpdir / "not" / "there" / "yet"
        paths = ProjectPaths.build(root)
        for folder in (paths.data, paths.logs, paths.current, paths.keys):
            self.assertTrue(folder.is_dir(), folder)
        self.assertEqual(paths.settings_file, root / "current" / "settings.json")
        self.assertEqual(paths.salt_file, root / "keys" / "vault.salt")

    def test_ensure_directory_accepts_existing(self):
        from jsw.common.setup import ensure_directory
        self.assertEqual(ensure_directory(self.tmpdir), self.tmpdir)
        self.assertTrue(self.tmpdir.is_dir())


if __name__ == "__main__":
    unittest.main()
