"""
vault.py - at-rest encryption for the remembered Jira password.

The key is derived from the OS user name and host name plus a random salt
kept next to the settings, so a copied settings file can't be decrypted by
another account or on another machine. This only keeps the password out of
plain sight on disk; it is not meant to protect against the user who runs
the program.
"""

import base64
import getpass
import os
import platform
from pathlib import Path

from jsw.common.logger import log
from jsw.core.errors import CryptoCorrupt, CryptoUnavailable

# ---------------------------------------------------------------------------
# Optional cryptography library
# ---------------------------------------------------------------------------
try:
    from cryptography.fernet import Fernet, InvalidToken
    from cryptography.hazmat.primitives import hashes
    from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
    CRYPTO_AVAILABLE = True
except ImportError:
    CRYPTO_AVAILABLE = False

SALT_SIZE = 16
KDF_ITERATIONS = 200_000


class CredentialVault:
    """
    Encrypts and decrypts the stored password with Fernet.

    Parameters
    ----------
    salt_path : Path
        Where the per-install salt lives. Created on first use.
    scope : str or None
        Identity the key is bound to. Defaults to ``user@host`` of the
        running process.
    """

    def __init__(self, salt_path: Path, scope: str | None = None) -> None:
        self.salt_path = Path(salt_path)
        self.scope = scope or self._default_scope()
        self._fernet = None

    @staticmethod
    def _default_scope() -> str:
        try:
            user = getpass.getuser()
        except (OSError, KeyError):
            user = os.getenv("USERNAME") or os.getenv("USER") or ""
        return f"{user}@{platform.node()}"

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def _load_or_create_salt(self) -> bytes:
        try:
            if self.salt_path.exists():
                salt = self.salt_path.read_bytes()
                if len(salt) != SALT_SIZE:
                    raise CryptoUnavailable(f"Vault salt at '{self.salt_path}' is damaged")
                return salt
            self.salt_path.parent.mkdir(parents=True, exist_ok=True)
            salt = os.urandom(SALT_SIZE)
            self.salt_path.write_bytes(salt)
            log.info(f"Created new vault salt at '{self.salt_path}'")
            return salt
        except OSError as e:
            raise CryptoUnavailable(f"Can't access vault salt at '{self.salt_path}': {e}") from e

    def _cipher(self) -> "Fernet":
        if not CRYPTO_AVAILABLE:
            raise CryptoUnavailable("'cryptography' package is not installed")
        if self._fernet is None:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self._load_or_create_salt(),
                iterations=KDF_ITERATIONS,
            )
            raw_key = kdf.derive(self.scope.encode("utf-8"))
            self._fernet = Fernet(base64.urlsafe_b64encode(raw_key))
        return self._fernet

    # ------------------------------------------------------------------
    # Encrypt / decrypt
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """
        Return a Fernet token (ASCII) for *plaintext*.

        Raises ValueError on empty input; callers treat an empty password
        as "nothing stored" and never get here.
        Raises CryptoUnavailable if no key can be built.
        """
        if not plaintext:
            raise ValueError("Refusing to encrypt an empty password")
        return self._cipher().encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """
        Reverse of encrypt().

        Raises CryptoCorrupt when the token wasn't made by this vault for
        this user/machine, CryptoUnavailable if no key can be built.
        """
        if not ciphertext:
            raise ValueError("Refusing to decrypt an empty token")
        fernet = self._cipher()
        try:
            return fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise CryptoCorrupt("Stored password can't be decrypted by this user on this machine") from e
