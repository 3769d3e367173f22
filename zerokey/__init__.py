"""ZeroKey — client-side zero-knowledge vault encryption."""
from .version import __version__
from .exceptions import (
    VaultError,
    InvalidInput,
    UnlockFailed,
    DecryptionFailed,
    VaultLocked,
    InvalidEnvelope,
)

__all__ = [
    "__version__",
    "VaultError",
    "InvalidInput",
    "UnlockFailed",
    "DecryptionFailed",
    "VaultLocked",
    "InvalidEnvelope",
]
