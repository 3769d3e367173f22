"""
VaultClient — The vault workflow on top of the encryption core.

Provides the public API for one open vault:
- ``create_vault(password)`` — new vault key, persisted only wrapped
- ``unlock(vault_id, password)`` / ``lock()``
- ``add_item`` / ``list_items`` / ``reveal_password`` / ``get_item``
- ``update_item`` / ``delete_item``
- ``copy_password(item_id)`` — clipboard handoff with delayed clear

The storage collaborator is passed in; the client never reaches for global
state. Every call counts as user activity for the idle timer.

Security Note:
    Never log plaintext, passwords or envelopes. Only vault and item ids.
    ``list_items`` decrypts metadata only; passwords are decrypted on demand.
"""
import asyncio
import logging
from typing import Any

from ..exceptions import VaultLocked
from .clipboard import ClipboardGuard
from .config import VaultConfig
from .generator import generate_password
from .items import ItemCipher, ItemFields, ItemSummary
from .key_manager import VaultKeyManager
from .session_guard import SessionGuard
from .storage import ItemRecord, VaultRecord, VaultStorage

logger = logging.getLogger("zerokey.vault")


class VaultClient:
    """Client-side zero-knowledge vault session."""

    def __init__(
        self,
        storage: VaultStorage,
        config: VaultConfig | None = None,
        clipboard: ClipboardGuard | None = None,
    ):
        self._storage = storage
        self.config = config or VaultConfig()
        self.keys = VaultKeyManager(iterations=self.config.kdf_iterations)
        self.cipher = ItemCipher(self.keys)
        self.guard = SessionGuard(self.keys, idle_timeout=self.config.idle_timeout)
        self.clipboard = clipboard or ClipboardGuard(
            clear_delay=self.config.clipboard_clear_after,
        )
        self._vault_id: Any = None
        self._pending: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"<VaultClient vault={self._vault_id!r} state={self.keys.state.value}>"

    @property
    def vault_id(self) -> Any:
        return self._vault_id

    @property
    def is_unlocked(self) -> bool:
        return self.keys.is_unlocked

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _active(self) -> Any:
        """Return the open vault id and record activity.

        Raises:
            VaultLocked: If no vault is unlocked.
        """
        if self._vault_id is None or not self.keys.is_unlocked:
            raise VaultLocked()
        self.guard.touch()
        return self._vault_id

    async def _find_item(self, item_id: Any) -> ItemRecord:
        rows = await self._storage.fetch_items(self._active())
        for row in rows:
            record = ItemRecord.parse(row)
            if record.item_id == item_id:
                return record
        raise KeyError(item_id)

    # ------------------------------------------------------------------
    # Vault lifecycle
    # ------------------------------------------------------------------

    async def create_vault(self, password: str) -> Any:
        """Create and persist a new vault, leaving it unlocked.

        Returns:
            Storage-assigned vault id.
        """
        header = await self.keys.create_vault(password)
        try:
            vault_id = await self._storage.create_vault_record(
                header.salt_b64, header.wrapped_key.to_dict(),
            )
        except Exception:
            await self.keys.lock()
            raise
        self._vault_id = vault_id
        self.guard.start()
        logger.info("Vault created: vault=%s", vault_id)
        return vault_id

    async def unlock(self, vault_id: Any, password: str) -> None:
        """Fetch a vault header and unlock it with ``password``.

        Raises:
            InvalidEnvelope: If the stored record is malformed.
            UnlockFailed: Wrong password or corrupted vault key.
        """
        record = VaultRecord.parse(await self._storage.fetch_vault_record(vault_id))
        await self.keys.unlock(password, record.salt, record.encrypted_vault_key)
        self._vault_id = vault_id
        self.guard.start()
        logger.info("Vault opened: vault=%s", vault_id)

    async def lock(self) -> None:
        """Manual lock."""
        await self.guard.lock_now()

    async def close(self) -> None:
        """Lock the vault and stop timers."""
        self.guard.stop()
        for task in list(self._pending):
            task.cancel()
        await self.keys.lock()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def add_item(
        self,
        label: str,
        password: str,
        website: str | None = None,
        username: str | None = None,
    ) -> Any:
        """Encrypt and store a new item.

        Returns:
            Storage-assigned item id.
        """
        vault_id = self._active()
        fields = ItemFields(
            label=label, password=password, website=website, username=username,
        )
        encrypted = await self.cipher.encrypt_item(fields)
        item_id = await self._storage.create_item_record(vault_id, encrypted.to_record())
        logger.debug("Item added: vault=%s item=%s", vault_id, item_id)
        return item_id

    async def list_items(self) -> list[ItemSummary]:
        """Decrypt label, website and username of every item."""
        rows = await self._storage.fetch_items(self._active())
        summaries = []
        for row in rows:
            record = ItemRecord.parse(row)
            summaries.append(
                await self.cipher.decrypt_summary(record.envelopes, item_id=record.item_id)
            )
        return summaries

    async def get_item(self, item_id: Any) -> ItemFields:
        """Decrypt every field of one item.

        Raises:
            KeyError: If the item does not exist in this vault.
        """
        record = await self._find_item(item_id)
        return await self.cipher.decrypt_item(record.envelopes)

    async def reveal_password(self, item_id: Any) -> str:
        """Decrypt only the password of one item."""
        record = await self._find_item(item_id)
        return await self.cipher.decrypt_field(record.envelopes.password)

    async def update_item(self, item_id: Any, **changes: str | None) -> None:
        """Re-encrypt the given fields of an item.

        Optional fields passed as ``None`` or ``""`` are cleared.
        """
        self._active()
        sealed = await self.cipher.encrypt_changes(**changes)
        partial = {
            name: (env.to_dict() if env is not None else None)
            for name, env in sealed.items()
        }
        await self._storage.update_item_record(item_id, partial)
        logger.debug("Item updated: item=%s fields=%s", item_id, sorted(partial))

    async def delete_item(self, item_id: Any) -> None:
        """Delete an item record. Nothing needs decrypting.

        Raises:
            VaultLocked: If the vault is locked.
        """
        self._active()
        await self._storage.delete_item_record(item_id)
        logger.debug("Item deleted: item=%s", item_id)

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    async def copy_password(self, item_id: Any) -> bool:
        """Decrypt an item's password onto the clipboard.

        Schedules a clipboard clear after ``clipboard_clear_after`` seconds
        when that setting is non-zero.

        Returns:
            True if the clipboard accepted the value.
        """
        copied = self.clipboard.copy_secure(await self.reveal_password(item_id))
        if copied and self.config.clipboard_clear_after > 0:
            task = asyncio.get_running_loop().create_task(self.clipboard.clear_later())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return copied

    def generate_password(self, length: int | None = None) -> str:
        """Generate a random item password (default ``config.password_length``)."""
        return generate_password(length or self.config.password_length)
