"""
Secret Generator — the single CSPRNG source for salts, IVs, keys and passwords.

Everything random in the vault goes through ``random_bytes``, which reads
from the operating system CSPRNG via :mod:`secrets`.
"""
import secrets

from ..exceptions import InvalidInput

SALT_SIZE = 16  # 128-bit per-vault salt
IV_SIZE = 12  # 96-bit GCM nonce
KEY_SIZE = 32  # AES-256

PASSWORD_CHARSET = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "!@#$%^&*()_+-="
)


def random_bytes(size: int) -> bytes:
    """Return ``size`` bytes from the OS CSPRNG.

    Raises:
        InvalidInput: If size is negative.
    """
    if size < 0:
        raise InvalidInput(f"size must be >= 0, got {size}")
    return secrets.token_bytes(size)


def generate_salt() -> bytes:
    """Fresh 16-byte per-vault salt."""
    return random_bytes(SALT_SIZE)


def generate_iv() -> bytes:
    """Fresh 12-byte AES-GCM nonce."""
    return random_bytes(IV_SIZE)


def generate_vault_key() -> bytearray:
    """Generate a fresh 256-bit vault key as a wipeable buffer."""
    return bytearray(random_bytes(KEY_SIZE))


def generate_password(length: int = 16) -> str:
    """Generate a random password of exactly ``length`` characters.

    Each character is ``charset[byte % len(charset)]``. With 76 symbols
    the first 28 characters are slightly more likely than the rest; that
    bias is accepted for generated site passwords, which are not key
    material.

    Args:
        length: Number of characters to return.

    Returns:
        Password drawn only from ``PASSWORD_CHARSET``.

    Raises:
        InvalidInput: If length is not a positive integer.
    """
    if not isinstance(length, int) or isinstance(length, bool) or length < 1:
        raise InvalidInput(f"password length must be a positive integer, got {length!r}")
    size = len(PASSWORD_CHARSET)
    return "".join(PASSWORD_CHARSET[b % size] for b in random_bytes(length))
