"""
Vault Errors — Typed failures raised by the encryption core.

Security Note:
    ``UnlockFailed`` and ``DecryptionFailed`` always carry the same generic
    text. They must never say whether the password was wrong or the stored
    ciphertext was damaged, otherwise the message becomes a decryption oracle.
"""


class VaultError(Exception):
    """Base class for every error raised by zerokey."""


class InvalidInput(VaultError, ValueError):
    """Malformed arguments to key derivation or secret generation."""


class UnlockFailed(VaultError):
    """The derived key did not authenticate the wrapped vault key."""

    def __init__(self) -> None:
        super().__init__("Failed to unlock vault")


class DecryptionFailed(VaultError):
    """An envelope did not authenticate under the given key."""

    def __init__(self) -> None:
        super().__init__("Decryption failed")


class VaultLocked(VaultError):
    """An operation needed the vault key but no key is resident."""

    def __init__(self, message: str = "Vault is locked") -> None:
        super().__init__(message)


class InvalidEnvelope(VaultError, ValueError):
    """Stored ciphertext or vault record has an unusable structure."""
