"""
Vault Storage — Contract for the record store the client talks to.

The encryption core performs no I/O. A ``VaultStorage`` handle is passed in
explicitly and only ever receives public or encrypted material:

    vault record: {vault_id, salt: base64(16B), encrypted_vault_key: {iv_b64, ct_b64}}
    item record:  {item_id, envelopes: {label, website, username, password}}

Everything read back from storage is validated here before use; malformed
records raise ``InvalidEnvelope``.
"""
from abc import ABC, abstractmethod
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from ..exceptions import InvalidEnvelope
from .crypto import Envelope
from .items import EncryptedItem
from .key_manager import coerce_salt

EnvelopeDict = dict[str, str]


class VaultStorage(ABC):
    """Async record store for vaults and items."""

    @abstractmethod
    async def create_vault_record(self, salt: str, wrapped_key: EnvelopeDict) -> Any:
        """Persist a new vault and return its id."""

    @abstractmethod
    async def fetch_vault_record(self, vault_id: Any) -> dict[str, Any]:
        """Return ``{salt, wrapped_key}`` (or ``encrypted_vault_key``) for a vault."""

    @abstractmethod
    async def create_item_record(
        self, vault_id: Any, envelopes: dict[str, EnvelopeDict | None],
    ) -> Any:
        """Persist a new item and return its id."""

    @abstractmethod
    async def fetch_items(self, vault_id: Any) -> list[dict[str, Any]]:
        """Return ``[{item_id, envelopes}]`` for every item in a vault."""

    @abstractmethod
    async def update_item_record(
        self, item_id: Any, partial_envelopes: dict[str, EnvelopeDict | None],
    ) -> None:
        """Replace the given fields of an item; ``None`` clears a field."""

    @abstractmethod
    async def delete_item_record(self, item_id: Any) -> None:
        """Remove an item."""


# ---------------------------------------------------------------------------
# Record validation
# ---------------------------------------------------------------------------

class VaultRecord(BaseModel):
    """Stored vault header as returned by ``fetch_vault_record``."""

    vault_id: Any = None
    salt: bytes
    encrypted_vault_key: Envelope = Field(
        validation_alias=AliasChoices("encrypted_vault_key", "wrapped_key"),
    )

    @field_validator("salt", mode="before")
    @classmethod
    def decode_salt(cls, v: str | bytes) -> bytes:
        return coerce_salt(v)

    @field_validator("encrypted_vault_key", mode="before")
    @classmethod
    def parse_envelope(cls, v: Any) -> Envelope:
        return Envelope.parse(v)

    @classmethod
    def parse(cls, data: Any) -> "VaultRecord":
        """Validate a raw vault record from storage.

        Raises:
            InvalidEnvelope: If the salt or wrapped key is malformed.
        """
        if not isinstance(data, dict):
            raise InvalidEnvelope("vault record must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as err:
            raise InvalidEnvelope(f"malformed vault record: {err}") from err


class ItemRecord(BaseModel):
    """Stored item as returned by ``fetch_items``."""

    item_id: Any
    envelopes: EncryptedItem

    @field_validator("envelopes", mode="before")
    @classmethod
    def parse_envelopes(cls, v: Any) -> EncryptedItem:
        if isinstance(v, EncryptedItem):
            return v
        return EncryptedItem.from_record(v)

    @classmethod
    def parse(cls, data: Any) -> "ItemRecord":
        """Validate a raw item record from storage.

        Raises:
            InvalidEnvelope: If any field envelope is malformed.
        """
        if not isinstance(data, dict):
            raise InvalidEnvelope("item record must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as err:
            raise InvalidEnvelope(f"malformed item record: {err}") from err
