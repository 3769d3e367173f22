"""Vault — Client-side zero-knowledge encryption for password vaults.

Security Note (Threat Model):
    The server only stores the salt, the wrapped vault key and per-field
    envelopes. Losing the wrapped key or the password makes the vault
    permanently unrecoverable; there is no escrow.
    While a vault is unlocked its key lives in process memory. Wiping it on
    lock is best-effort in CPython, since the allocator and libraries may
    hold copies. A memory dump taken while unlocked exposes the key.
"""

from .crypto import (
    Envelope,
    SecretKey,
    derive_key,
    encrypt_envelope,
    decrypt_envelope,
    KDF_ITERATIONS,
)
from .generator import generate_password, random_bytes
from .key_manager import (
    VaultKeyManager,
    VaultState,
    VaultHeader,
    wrap_vault_key,
    unwrap_vault_key,
)
from .items import ItemCipher, ItemFields, ItemSummary, EncryptedItem
from .session_guard import SessionGuard
from .clipboard import ClipboardGuard
from .storage import VaultStorage, VaultRecord, ItemRecord
from .config import VaultConfig
from .client import VaultClient

__all__ = [
    "Envelope",
    "SecretKey",
    "derive_key",
    "encrypt_envelope",
    "decrypt_envelope",
    "KDF_ITERATIONS",
    "generate_password",
    "random_bytes",
    "VaultKeyManager",
    "VaultState",
    "VaultHeader",
    "wrap_vault_key",
    "unwrap_vault_key",
    "ItemCipher",
    "ItemFields",
    "ItemSummary",
    "EncryptedItem",
    "SessionGuard",
    "ClipboardGuard",
    "VaultStorage",
    "VaultRecord",
    "ItemRecord",
    "VaultConfig",
    "VaultClient",
]
