"""Exception types raised by the timer, settings and tracker layers.

None of these are meant to take the process down. Callers either reject the
action (InvalidState, AuthError) or log and carry on with a safe fallback.
"""


class StopwatchError(Exception):
    """Base class for every error this package raises on purpose."""


class InvalidState(StopwatchError):
    """The requested change isn't allowed while the timer is in its current state."""


class PersistenceCorrupt(StopwatchError):
    """A persisted blob couldn't be decoded, or was written by an unknown schema version."""


class CryptoError(StopwatchError):
    pass


class CryptoUnavailable(CryptoError):
    """No usable key material: the crypto backend or the local key store is missing."""


class CryptoCorrupt(CryptoError):
    """Ciphertext wasn't produced by this vault (or was produced for another user/machine)."""


class TrackerError(StopwatchError):
    pass


class AuthError(TrackerError):
    pass


class ReportError(TrackerError):
    pass
