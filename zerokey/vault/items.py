"""
Item Cipher — Field-level encryption of vault items under the vault key.

Each present field (label, website, username, password) becomes its own
envelope. Missing optional fields are stored as ``None``, never as an
envelope of an empty string.

Security Note:
    Never log field plaintext. Only item ids and field names.
"""
import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import DecryptionFailed, InvalidEnvelope, InvalidInput
from .crypto import Envelope, decrypt_envelope, encrypt_envelope
from .key_manager import VaultKeyManager

logger = logging.getLogger("zerokey.vault")

REQUIRED_FIELDS = ("label", "password")
OPTIONAL_FIELDS = ("website", "username")
ITEM_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS


class ItemFields(BaseModel):
    """Decrypted item."""

    label: str
    password: str = Field(repr=False)
    website: str | None = None
    username: str | None = None


class ItemSummary(BaseModel):
    """Decrypted item metadata; the password stays encrypted."""

    item_id: Any = None
    label: str
    website: str | None = None
    username: str | None = None


class EncryptedItem(BaseModel):
    """One envelope per present field."""

    label: Envelope
    password: Envelope
    website: Envelope | None = None
    username: Envelope | None = None

    model_config = {"frozen": True}

    @field_validator(*ITEM_FIELDS, mode="before")
    @classmethod
    def parse_envelope(cls, v: Any) -> Any:
        """Stored envelopes may arrive as JSON strings."""
        if v is None:
            return None
        return Envelope.parse(v)

    @classmethod
    def from_record(cls, envelopes: Mapping[str, Any]) -> "EncryptedItem":
        """Validate stored item envelopes.

        Raises:
            InvalidEnvelope: On a missing required field or a malformed envelope.
        """
        if not isinstance(envelopes, Mapping):
            raise InvalidEnvelope("item envelopes must be a mapping")
        try:
            return cls.model_validate(dict(envelopes))
        except ValidationError as err:
            raise InvalidEnvelope(f"malformed item record: {err}") from err

    def to_record(self) -> dict[str, dict[str, str] | None]:
        """Storage form: one envelope dict per field, ``None`` for absent fields."""
        record = {}
        for name in ITEM_FIELDS:
            env = getattr(self, name)
            record[name] = env.to_dict() if env is not None else None
        return record


def _present(value: str | None) -> bool:
    return value is not None and value != ""


class ItemCipher:
    """Encrypts and decrypts item fields with the manager's active key.

    Every call captures a key snapshot first, so a call made while the
    vault is Locked fails with ``VaultLocked`` before touching any data.
    """

    def __init__(self, manager: VaultKeyManager):
        self._manager = manager

    @staticmethod
    async def _seal(cipher: Any, plaintext: str) -> Envelope:
        if not isinstance(plaintext, str):
            raise InvalidInput("field values must be str")
        return await asyncio.to_thread(
            encrypt_envelope, plaintext.encode("utf-8", "surrogatepass"), cipher,
        )

    @staticmethod
    async def _open(cipher: Any, envelope: Any) -> str:
        raw = await asyncio.to_thread(decrypt_envelope, envelope, cipher)
        try:
            return raw.decode("utf-8", "surrogatepass")
        except UnicodeDecodeError:
            raise DecryptionFailed() from None

    async def encrypt_field(self, plaintext: str) -> Envelope:
        """Encrypt one field value under the vault key.

        Raises:
            VaultLocked: If the vault is locked.
        """
        cipher = self._manager.snapshot()
        return await self._seal(cipher, plaintext)

    async def decrypt_field(self, envelope: Any) -> str:
        """Decrypt one field envelope.

        Raises:
            VaultLocked: If the vault is locked.
            InvalidEnvelope: If the envelope is malformed.
            DecryptionFailed: If the envelope does not authenticate.
        """
        cipher = self._manager.snapshot()
        return await self._open(cipher, Envelope.parse(envelope))

    async def encrypt_item(self, fields: ItemFields) -> EncryptedItem:
        """Encrypt every present field of an item under one key snapshot."""
        cipher = self._manager.snapshot()
        sealed: dict[str, Envelope | None] = {}
        for name in REQUIRED_FIELDS:
            sealed[name] = await self._seal(cipher, getattr(fields, name))
        for name in OPTIONAL_FIELDS:
            value = getattr(fields, name)
            sealed[name] = await self._seal(cipher, value) if _present(value) else None
        return EncryptedItem(**sealed)

    async def decrypt_item(self, item: Any) -> ItemFields:
        """Decrypt every field of an item, password included."""
        cipher = self._manager.snapshot()
        if not isinstance(item, EncryptedItem):
            item = EncryptedItem.from_record(item)
        opened = {}
        for name in ITEM_FIELDS:
            env = getattr(item, name)
            opened[name] = await self._open(cipher, env) if env is not None else None
        return ItemFields(**opened)

    async def decrypt_summary(self, item: Any, item_id: Any = None) -> ItemSummary:
        """Decrypt label, website and username only."""
        cipher = self._manager.snapshot()
        if not isinstance(item, EncryptedItem):
            item = EncryptedItem.from_record(item)
        meta = {"label": await self._open(cipher, item.label)}
        for name in OPTIONAL_FIELDS:
            env = getattr(item, name)
            meta[name] = await self._open(cipher, env) if env is not None else None
        return ItemSummary(item_id=item_id, **meta)

    async def encrypt_changes(self, **changes: str | None) -> dict[str, Envelope | None]:
        """Encrypt a partial update.

        Fields that are not passed are left out of the result. An optional
        field passed as ``None`` or ``""`` maps to ``None``, which clears it.

        Raises:
            InvalidInput: On an unknown field or an attempt to clear a
                required one.
            VaultLocked: If the vault is locked.
        """
        unknown = set(changes) - set(ITEM_FIELDS)
        if unknown:
            raise InvalidInput(f"unknown item fields: {sorted(unknown)}")
        for name in REQUIRED_FIELDS:
            if name in changes and changes[name] is None:
                raise InvalidInput(f"{name} cannot be cleared")
        cipher = self._manager.snapshot()
        sealed: dict[str, Envelope | None] = {}
        for name, value in changes.items():
            if name in OPTIONAL_FIELDS and not _present(value):
                sealed[name] = None
            else:
                sealed[name] = await self._seal(cipher, value)
        return sealed
