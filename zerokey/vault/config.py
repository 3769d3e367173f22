"""
Vault Configuration — Validated client settings.

Reads optional overrides from environment variables:
    ZEROKEY_KDF_ITERATIONS = <int, >= 100000>
    ZEROKEY_IDLE_TIMEOUT = <seconds>
    ZEROKEY_CLIPBOARD_CLEAR_AFTER = <seconds, 0 disables>
    ZEROKEY_PASSWORD_LENGTH = <int>

Security Note:
    The KDF work factor is stored with nothing else about the vault, so
    every client that opens a vault must use the same value it was
    created with.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator

from .crypto import KDF_ITERATIONS, MIN_KDF_ITERATIONS

logger = logging.getLogger("zerokey.vault")

DEFAULT_IDLE_TIMEOUT = 120.0  # two minutes
DEFAULT_CLIPBOARD_CLEAR_AFTER = 30.0
DEFAULT_PASSWORD_LENGTH = 16

_ENV_FIELDS = {
    "kdf_iterations": "ZEROKEY_KDF_ITERATIONS",
    "idle_timeout": "ZEROKEY_IDLE_TIMEOUT",
    "clipboard_clear_after": "ZEROKEY_CLIPBOARD_CLEAR_AFTER",
    "password_length": "ZEROKEY_PASSWORD_LENGTH",
}


class VaultConfig(BaseModel):
    """Validated vault client configuration."""

    kdf_iterations: int = Field(default=KDF_ITERATIONS, ge=MIN_KDF_ITERATIONS)
    idle_timeout: float = Field(default=DEFAULT_IDLE_TIMEOUT, gt=0)
    clipboard_clear_after: float = Field(default=DEFAULT_CLIPBOARD_CLEAR_AFTER, ge=0)
    password_length: int = Field(default=DEFAULT_PASSWORD_LENGTH, ge=4, le=128)

    model_config = {"frozen": True}

    @field_validator("kdf_iterations")
    @classmethod
    def warn_low_iterations(cls, v: int) -> int:
        """Accept but flag work factors below the documented default."""
        if v < KDF_ITERATIONS:
            logger.warning(
                "KDF iterations set to %d, below the recommended %d",
                v, KDF_ITERATIONS,
            )
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from ``ZEROKEY_*`` environment variables.

        Unset variables fall back to the defaults.

        Returns:
            Populated VaultConfig instance.
        """
        values = {
            field: os.environ[name]
            for field, name in _ENV_FIELDS.items()
            if name in os.environ
        }
        if values:
            logger.debug("Vault config overrides from env: %s", sorted(values))
        return cls(**values)
