"""
VaultKeyManager — Owns the per-vault key and its Locked/Unlocked lifecycle.

The vault key is generated once, wrapped under a password-derived key and
only ever persisted in that wrapped form:

    salt (16B) + password → PBKDF2 → derived key
    derived key + vault key → AES-GCM → wrapped vault key

Security Note:
    The derived key is recomputed on every unlock attempt and wiped as soon
    as the wrap/unwrap step finishes; it is never cached.
    Never log passwords, salts or key bytes. Only log state transitions.
    Wiping is best-effort in CPython (see ``SecretKey``).
"""
import asyncio
import binascii
import logging
from enum import Enum
from typing import Any, Callable

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, field_validator

from ..exceptions import DecryptionFailed, InvalidEnvelope, UnlockFailed, VaultLocked
from .crypto import (
    KDF_ITERATIONS,
    Envelope,
    SecretKey,
    b64decode,
    b64encode,
    decrypt_envelope,
    derive_key,
    encrypt_envelope,
)
from .generator import KEY_SIZE, SALT_SIZE, generate_salt, generate_vault_key

logger = logging.getLogger("zerokey.vault")


class VaultState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class VaultHeader(BaseModel):
    """Public vault material returned by ``create_vault`` for persistence."""

    salt: bytes
    wrapped_key: Envelope

    model_config = {"frozen": True}

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: bytes) -> bytes:
        if len(v) != SALT_SIZE:
            raise ValueError(f"salt must be exactly {SALT_SIZE} bytes")
        return v

    @property
    def salt_b64(self) -> str:
        """Salt as base64, the way storage keeps it."""
        return b64encode(self.salt)

    def to_record(self) -> dict[str, Any]:
        """Return the persisted shape ``{salt, encrypted_vault_key}``."""
        return {
            "salt": self.salt_b64,
            "encrypted_vault_key": self.wrapped_key.to_dict(),
        }


def coerce_salt(salt: str | bytes | bytearray) -> bytes:
    """Accept a raw or base64 salt from storage and check its length.

    Raises:
        InvalidEnvelope: If the salt is not valid base64 or not 16 bytes.
    """
    if isinstance(salt, str):
        try:
            salt = b64decode(salt)
        except binascii.Error as err:
            raise InvalidEnvelope("salt is not valid base64") from err
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise InvalidEnvelope(f"salt must be exactly {SALT_SIZE} bytes")
    return bytes(salt)


# ---------------------------------------------------------------------------
# Wrap / unwrap
# ---------------------------------------------------------------------------

def wrap_vault_key(
    vault_key: SecretKey | bytes | bytearray,
    password: str,
    salt: bytes,
    iterations: int = KDF_ITERATIONS,
) -> Envelope:
    """Encrypt the raw vault key under a key derived from ``password``.

    Args:
        vault_key: 32-byte vault key.
        password: User-chosen password.
        salt: 16-byte vault salt.
        iterations: PBKDF2 work factor.

    Returns:
        Wrapped vault key envelope.
    """
    raw = vault_key.reveal() if isinstance(vault_key, SecretKey) else bytes(vault_key)
    with SecretKey(bytearray(derive_key(password, salt, iterations))) as derived:
        return encrypt_envelope(raw, derived)


def unwrap_vault_key(
    password: str,
    salt: bytes,
    wrapped_key: Any,
    iterations: int = KDF_ITERATIONS,
) -> SecretKey:
    """Recover the vault key from its wrapped form.

    Raises:
        InvalidEnvelope: If ``wrapped_key`` is structurally malformed.
        UnlockFailed: If the derived key does not authenticate the envelope,
            or the recovered plaintext is not a 32-byte key.
    """
    envelope = Envelope.parse(wrapped_key)
    with SecretKey(bytearray(derive_key(password, salt, iterations))) as derived:
        try:
            raw = decrypt_envelope(envelope, derived)
        except DecryptionFailed:
            raise UnlockFailed() from None
    if len(raw) != KEY_SIZE:
        raise UnlockFailed()
    return SecretKey(bytearray(raw))


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class VaultKeyManager:
    """Holds at most one resident vault key.

    ``create_vault``, ``unlock`` and ``lock`` are serialized on an internal
    ``asyncio.Lock``. Readers call ``snapshot()`` which binds a cipher to a
    private copy of the key, so an in-flight operation finishes even if
    ``lock()`` wipes the slot; any call made after ``lock()`` raises
    ``VaultLocked``.
    """

    def __init__(self, iterations: int = KDF_ITERATIONS):
        self._iterations = iterations
        self._key: SecretKey | None = None
        self._mutex = asyncio.Lock()
        self._listeners: list[Callable[[], Any]] = []

    def __repr__(self) -> str:
        return f"<VaultKeyManager state={self.state.value}>"

    @property
    def state(self) -> VaultState:
        """Current lifecycle state."""
        return VaultState.UNLOCKED if self._key is not None else VaultState.LOCKED

    @property
    def is_unlocked(self) -> bool:
        return self._key is not None

    # ------------------------------------------------------------------
    # Lock listeners
    # ------------------------------------------------------------------

    def add_lock_listener(self, callback: Callable[[], Any]) -> None:
        """Register a callback run after every Unlocked → Locked transition."""
        self._listeners.append(callback)

    def remove_lock_listener(self, callback: Callable[[], Any]) -> None:
        """Unregister a callback added with ``add_lock_listener``."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Slot helpers (caller holds the mutex)
    # ------------------------------------------------------------------

    def _install(self, key: SecretKey) -> None:
        old, self._key = self._key, key
        if old is not None:
            old.wipe()

    def _evict(self) -> bool:
        key, self._key = self._key, None
        if key is None:
            return False
        key.wipe()
        for callback in list(self._listeners):
            callback()
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_vault(self, password: str) -> VaultHeader:
        """Generate a vault key and salt, wrap the key and unlock with it.

        Args:
            password: Password the vault key is wrapped under.

        Returns:
            VaultHeader with the salt and wrapped key to persist.

        Raises:
            InvalidInput: If password is not a str.
        """
        async with self._mutex:
            vault_key = SecretKey(generate_vault_key())
            salt = generate_salt()
            try:
                wrapped = await asyncio.to_thread(
                    wrap_vault_key, vault_key, password, salt, self._iterations,
                )
            except BaseException:
                vault_key.wipe()
                raise
            self._install(vault_key)
        logger.info("Vault key created; state=%s", self.state.value)
        return VaultHeader(salt=salt, wrapped_key=wrapped)

    async def unlock(
        self,
        password: str,
        salt: str | bytes | bytearray,
        wrapped_key: Any,
    ) -> None:
        """Derive a key from password + salt and unwrap the vault key.

        On failure no key is left resident and the state is Locked.

        Args:
            password: Password supplied by the user.
            salt: Stored 16-byte salt (raw or base64).
            wrapped_key: Stored wrapped vault key envelope.

        Raises:
            InvalidEnvelope: If salt or wrapped_key are malformed.
            UnlockFailed: Wrong password or corrupted wrapped key.
        """
        salt_bytes = coerce_salt(salt)
        envelope = Envelope.parse(wrapped_key)
        async with self._mutex:
            try:
                key = await asyncio.to_thread(
                    unwrap_vault_key, password, salt_bytes, envelope, self._iterations,
                )
            except UnlockFailed:
                self._evict()
                logger.warning("Vault unlock failed")
                raise
            self._install(key)
        logger.info("Vault unlocked")

    async def lock(self) -> None:
        """Wipe the resident key and move to Locked. Idempotent."""
        async with self._mutex:
            if self._evict():
                logger.info("Vault locked")

    def snapshot(self) -> AESGCM:
        """Return a cipher bound to a copy of the resident key.

        Raises:
            VaultLocked: If no key is resident.
        """
        key = self._key
        if key is None:
            raise VaultLocked()
        return key.cipher()
