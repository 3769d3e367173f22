"""
Shared pytest fixtures for the zerokey test suite.

Key derivation runs at the lowest accepted work factor so the suite stays
fast; one test in test_crypto.py exercises the production default.
"""
import itertools

import pytest

from zerokey.vault.config import VaultConfig
from zerokey.vault.crypto import MIN_KDF_ITERATIONS
from zerokey.vault.items import ItemCipher
from zerokey.vault.key_manager import VaultKeyManager
from zerokey.vault.storage import VaultStorage

FAST_ITERATIONS = MIN_KDF_ITERATIONS


class MemoryStorage(VaultStorage):
    """In-memory record store standing in for the storage server."""

    def __init__(self):
        self.vaults: dict[str, dict] = {}
        self.items: dict[str, dict] = {}
        self._ids = itertools.count(1)

    async def create_vault_record(self, salt, wrapped_key):
        vault_id = f"vault-{next(self._ids)}"
        self.vaults[vault_id] = {
            "vault_id": vault_id,
            "salt": salt,
            "encrypted_vault_key": dict(wrapped_key),
        }
        return vault_id

    async def fetch_vault_record(self, vault_id):
        return dict(self.vaults[vault_id])

    async def create_item_record(self, vault_id, envelopes):
        item_id = f"item-{next(self._ids)}"
        self.items[item_id] = {
            "vault_id": vault_id,
            "envelopes": dict(envelopes),
        }
        return item_id

    async def fetch_items(self, vault_id):
        return [
            {"item_id": item_id, "envelopes": dict(row["envelopes"])}
            for item_id, row in self.items.items()
            if row["vault_id"] == vault_id
        ]

    async def update_item_record(self, item_id, partial_envelopes):
        self.items[item_id]["envelopes"].update(partial_envelopes)

    async def delete_item_record(self, item_id):
        del self.items[item_id]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def config():
    return VaultConfig(kdf_iterations=FAST_ITERATIONS, clipboard_clear_after=0)


@pytest.fixture
def manager():
    """A Locked VaultKeyManager using the fast work factor."""
    return VaultKeyManager(iterations=FAST_ITERATIONS)


@pytest.fixture
def cipher(manager):
    return ItemCipher(manager)


@pytest.fixture
def vault_key():
    return bytes(range(32))
