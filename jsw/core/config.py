import base64
import binascii
import json
from dataclasses import dataclass, field, fields
from enum import IntEnum
from pathlib import Path
from jsw.common.logger import log
from jsw.core.errors import CryptoError, PersistenceCorrupt
from jsw.core.timer_state import PersistedIssue
from jsw.util import now_iso


ISSUE_CODEC_VERSION = 1


class SaveTimerSetting(IntEnum):
    NEVER = 0
    ALWAYS = 1
    ASK = 2


# Everything that survives a restart. The in-memory timers are the source of truth while running, persisted_issues
# is only refreshed at shutdown (or an explicit save).
@dataclass
class Settings:
    jira_base_url: str = ""
    always_on_top: bool = False
    minimize_to_tray: bool = False
    pause_active_timer: bool = False
    issue_count: int = 6
    issue_keys: list = field(default_factory=list)
    timer_editable: bool = False
    save_timer_state: SaveTimerSetting = SaveTimerSetting.ALWAYS
    username: str = ""
    password: str = ""
    remember_credentials: bool = False
    first_run: bool = True
    current_filter: int = 0
    persisted_issues: list = field(default_factory=list)

    # Not persisted. False when a stored password existed but couldn't be decrypted.
    credentials_restored: bool = field(default=True, compare=False)


#region === Issue list codec ===

# The issue list goes into the settings file as one opaque string: base64 of a small versioned JSON document. An
# empty string means "no issues saved".
def encode_issues(issues):
    payload = {
        "version": ISSUE_CODEC_VERSION,
        "issues": [{"issueKey": i.issue_key, "elapsed": float(i.elapsed)} for i in issues],
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")

# Reverse of encode_issues. Anything unexpected, including an older or newer version, is treated as corrupt rather
# than partially read.
def decode_issues(blob):
    if not blob:
        return []
    try:
        payload = json.loads(base64.b64decode(blob, validate=True).decode("utf-8"))
    except (binascii.Error, ValueError, TypeError) as e:
        raise PersistenceCorrupt(f"Issue list isn't valid base64/JSON: {e}") from e

    if not isinstance(payload, dict):
        raise PersistenceCorrupt("Issue list isn't a JSON object")
    if payload.get("version") != ISSUE_CODEC_VERSION:
        raise PersistenceCorrupt(f"Issue list has unsupported version {payload.get('version')!r}")
    entries = payload.get("issues")
    if not isinstance(entries, list):
        raise PersistenceCorrupt("Issue list is missing its 'issues' array")

    issues = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise PersistenceCorrupt(f"Issue entry isn't an object: {entry!r}")
        key = entry.get("issueKey")
        elapsed = entry.get("elapsed")
        if not isinstance(key, str) or isinstance(elapsed, bool) or not isinstance(elapsed, (int, float)) or elapsed < 0:
            raise PersistenceCorrupt(f"Issue entry has bad fields: {entry!r}")
        issues.append(PersistedIssue(key, float(elapsed)))
    return issues

#endregion === Issue list codec ===

#region === Settings file ===

# Settings attribute -> (key in settings.json, expected JSON type). The password and issue list get extra handling
# on top of this.
_FIELD_KEYS = {
    "jira_base_url": ("jiraBaseUrl", str),
    "always_on_top": ("alwaysOnTop", bool),
    "minimize_to_tray": ("minimizeToTray", bool),
    "pause_active_timer": ("pauseActiveTimer", bool),
    "issue_count": ("issueCount", int),
    "issue_keys": ("issueKeys", list),
    "timer_editable": ("timerEditable", bool),
    "save_timer_state": ("saveTimerState", int),
    "username": ("username", str),
    "password": ("password", str),
    "remember_credentials": ("rememberCredentials", bool),
    "first_run": ("firstRun", bool),
    "current_filter": ("currentFilter", int),
    "persisted_issues": ("persistedIssues", str),
}


def _matches(value, expected):
    # bool is an int subclass, don't let True pass as an issue count
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected is list:
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    return isinstance(value, expected)


class SettingsStore:
    """Reads and writes Settings to a flat JSON file.

    The password goes through the CredentialVault in both directions (an empty
    password skips the vault entirely) and the issue snapshots go through the
    versioned codec above.
    """

    def __init__(self, path, vault):
        self.path = Path(path)
        self.vault = vault

    def _read_raw(self):
        if not self.path.exists():
            log.info(f"No settings file at '{self.path}', using defaults.")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            log.warning(f"Couldn't read settings from '{self.path}', falling back to defaults.", exc_info=True)
            return {}
        if not isinstance(raw, dict):
            log.warning(f"Settings file '{self.path}' doesn't hold an object, falling back to defaults.")
            return {}
        return raw

    # Loads every field, defaulting (and reporting) anything missing or of the wrong type.
    def load(self):
        raw = self._read_raw()
        settings = Settings()
        defaulted_values = set()

        values = {}
        for attr, (key, expected) in _FIELD_KEYS.items():
            if key in raw and _matches(raw[key], expected):
                values[attr] = raw[key]
            elif raw:
                defaulted_values.add(key)

        for attr in ("jira_base_url", "always_on_top", "minimize_to_tray", "pause_active_timer", "issue_keys",
                     "timer_editable", "username", "remember_credentials", "first_run", "current_filter"):
            if attr in values:
                setattr(settings, attr, values[attr])

        if values.get("issue_count", 0) >= 1:
            settings.issue_count = values["issue_count"]
        elif "issue_count" in values:
            defaulted_values.add("issueCount")

        try:
            settings.save_timer_state = SaveTimerSetting(values.get("save_timer_state", settings.save_timer_state))
        except ValueError:
            defaulted_values.add("saveTimerState")

        # Empty means "no credential stored" and never reaches the vault
        stored_password = values.get("password", "")
        if stored_password:
            try:
                settings.password = self.vault.decrypt(stored_password)
            except CryptoError:
                log.warning("Stored credentials could not be restored, continuing without a password.", exc_info=True)
                settings.password = ""
                settings.credentials_restored = False

        try:
            settings.persisted_issues = decode_issues(values.get("persisted_issues", ""))
        except PersistenceCorrupt:
            log.warning("Persisted issue list is corrupt, starting with an empty list.", exc_info=True)
            settings.persisted_issues = []

        if defaulted_values:
            log.warning(f"Loaded settings from '{self.path}', but with missing values that were defaulted: {', '.join(sorted(defaulted_values))}")
        elif raw:
            log.info(f"Successfully loaded settings from '{self.path}'.")
        return settings

    # Mirrors every field back to disk.
    def save(self, settings):
        raw = {}
        for fld in fields(Settings):
            if fld.name not in _FIELD_KEYS:
                continue
            key, _ = _FIELD_KEYS[fld.name]
            raw[key] = getattr(settings, fld.name)

        raw["issueKeys"] = list(settings.issue_keys)
        raw["saveTimerState"] = int(settings.save_timer_state)
        raw["persistedIssues"] = encode_issues(settings.persisted_issues) if settings.persisted_issues else ""

        if settings.password:
            try:
                raw["password"] = self.vault.encrypt(settings.password)
            except CryptoError:
                log.warning("Couldn't encrypt the password, it won't be remembered.", exc_info=True)
                raw["password"] = ""
        else:
            raw["password"] = ""

        raw["savedAt"] = now_iso()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(raw, f, indent=2)
        log.info(f"Successfully saved settings to '{self.path}'")

#endregion === Settings file ===
