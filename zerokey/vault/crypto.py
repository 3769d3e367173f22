"""
Vault Crypto Core — Key derivation, envelope encryption/decryption and serialization.

Implements the two primitives every other vault module is built on:
- Key derivation: PBKDF2-HMAC-SHA256(password, salt, 600k) → 32-byte key
- Envelope codec: AES-256-GCM with a fresh random IV → {iv_b64, ct_b64}

Security Note:
    Never log plaintext, ciphertext, salts or key bytes.
    IVs are random 96-bit; callers cannot supply one, so an IV is never
    reused under the same key in practice.
    Any GCM authentication failure surfaces as one ``DecryptionFailed``,
    whether the key was wrong or the envelope was tampered with.
"""
import base64
import binascii
import logging
from typing import Any

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel, ValidationError, field_validator

from ..exceptions import DecryptionFailed, InvalidEnvelope, InvalidInput
from .generator import IV_SIZE, KEY_SIZE, SALT_SIZE, generate_iv

logger = logging.getLogger("zerokey.vault")

KDF_ITERATIONS = 600_000  # OWASP 2023 recommendation for PBKDF2-SHA256
MIN_KDF_ITERATIONS = 100_000
TAG_SIZE = 16  # GCM tag appended to the ciphertext


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------

class SecretKey:
    """Mutable buffer holding 32 bytes of key material.

    ``wipe()`` overwrites the buffer in place. This is best-effort in
    CPython: any immutable ``bytes`` copy handed to a library (for example
    the one ``AESGCM`` keeps) lives until it is garbage collected.
    """

    __slots__ = ("_buf",)

    def __init__(self, material: bytes | bytearray):
        if len(material) != KEY_SIZE:
            raise InvalidInput(
                f"key must be exactly {KEY_SIZE} bytes, got {len(material)}"
            )
        # take ownership of a bytearray so the caller's buffer is the one wiped
        self._buf = material if isinstance(material, bytearray) else bytearray(material)

    def __repr__(self) -> str:
        state = "wiped" if self.wiped else f"{len(self._buf)} bytes"
        return f"<SecretKey [redacted] {state}>"

    def __len__(self) -> int:
        return len(self._buf)

    def __enter__(self) -> "SecretKey":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    @property
    def wiped(self) -> bool:
        return not self._buf

    def reveal(self) -> bytes:
        """Return an immutable copy of the key bytes."""
        if self.wiped:
            raise InvalidInput("key material has been wiped")
        return bytes(self._buf)

    def cipher(self) -> AESGCM:
        """Return an AEAD cipher bound to a private copy of this key."""
        return AESGCM(self.reveal())

    def wipe(self) -> None:
        """Overwrite the key bytes with zeros and release the buffer."""
        self._buf[:] = bytes(len(self._buf))
        self._buf.clear()


KeyLike = bytes | bytearray | SecretKey | AESGCM


def _aead(key: KeyLike) -> AESGCM:
    if isinstance(key, AESGCM):
        return key
    if isinstance(key, SecretKey):
        return key.cipher()
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise InvalidInput(f"key must be {KEY_SIZE} bytes")
    return AESGCM(bytes(key))


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(password: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Derive a 32-byte key from a password using PBKDF2-HMAC-SHA256.

    Deterministic: the same (password, salt, iterations) always yields the
    same key. Password content is never validated: lone surrogates are
    encoded as-is ("surrogatepass") and an empty password is a
    valid (if weak) input.

    Args:
        password: User-chosen password.
        salt: 16-byte per-vault salt.
        iterations: PBKDF2 work factor (at least ``MIN_KDF_ITERATIONS``).

    Returns:
        32-byte derived key.

    Raises:
        InvalidInput: On a salt that is not 16 bytes, a non-str password
            or an iteration count below the floor.
    """
    if not isinstance(password, str):
        raise InvalidInput("password must be a str")
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise InvalidInput(f"salt must be exactly {SALT_SIZE} bytes")
    if isinstance(iterations, bool) or not isinstance(iterations, int) \
            or iterations < MIN_KDF_ITERATIONS:
        raise InvalidInput(
            f"iterations must be an integer >= {MIN_KDF_ITERATIONS}"
        )
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8", "surrogatepass"))


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def b64encode(data: bytes) -> str:
    """Standard base64 with padding, as an ASCII str."""
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str) -> bytes:
    """Strict base64 decode; raises ``binascii.Error`` on junk characters."""
    return base64.b64decode(value, validate=True)


class Envelope(BaseModel):
    """Self-contained AES-GCM ciphertext: IV plus ciphertext-with-tag.

    The wire form is ``{"iv_b64": ..., "ct_b64": ...}``.
    """

    iv_b64: str
    ct_b64: str

    model_config = {"frozen": True}

    @field_validator("iv_b64")
    @classmethod
    def validate_iv(cls, v: str) -> str:
        if len(b64decode(v)) != IV_SIZE:
            raise ValueError(f"iv must decode to {IV_SIZE} bytes")
        return v

    @field_validator("ct_b64")
    @classmethod
    def validate_ct(cls, v: str) -> str:
        if len(b64decode(v)) < TAG_SIZE:
            raise ValueError(f"ciphertext must be at least {TAG_SIZE} bytes")
        return v

    @property
    def iv(self) -> bytes:
        """The 12-byte GCM nonce."""
        return b64decode(self.iv_b64)

    @property
    def ciphertext(self) -> bytes:
        """Ciphertext with the 16-byte authentication tag appended."""
        return b64decode(self.ct_b64)

    @classmethod
    def from_parts(cls, iv: bytes, ciphertext: bytes) -> "Envelope":
        """Wrap raw IV and ciphertext bytes."""
        return cls(iv_b64=b64encode(iv), ct_b64=b64encode(ciphertext))

    @classmethod
    def parse(cls, value: Any) -> "Envelope":
        """Build an Envelope from a model, a mapping or a JSON document.

        Raises:
            InvalidEnvelope: If the value is not a well-formed envelope.
        """
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, (str, bytes, bytearray)):
                value = orjson.loads(value)
            if not isinstance(value, dict):
                raise InvalidEnvelope("envelope must be a JSON object")
            return cls.model_validate(value)
        except (orjson.JSONDecodeError, ValidationError, binascii.Error) as err:
            raise InvalidEnvelope(f"malformed envelope: {err}") from err

    def to_dict(self) -> dict[str, str]:
        """Wire form, as stored alongside the vault or item."""
        return {"iv_b64": self.iv_b64, "ct_b64": self.ct_b64}

    def to_json(self) -> str:
        """Wire form serialized as a JSON object string."""
        return orjson.dumps(self.to_dict()).decode("utf-8")


# ---------------------------------------------------------------------------
# Envelope codec
# ---------------------------------------------------------------------------

def encrypt_envelope(plaintext: bytes, key: KeyLike) -> Envelope:
    """Encrypt plaintext under ``key`` with a freshly drawn IV.

    Args:
        plaintext: Data to encrypt.
        key: 32 raw bytes, a ``SecretKey`` or a bound ``AESGCM`` snapshot.

    Returns:
        Envelope carrying the IV and ciphertext-with-tag.
    """
    if not isinstance(plaintext, (bytes, bytearray)):
        raise InvalidInput("plaintext must be bytes")
    cipher = _aead(key)
    iv = generate_iv()
    ct = cipher.encrypt(iv, bytes(plaintext), None)
    return Envelope.from_parts(iv, ct)


def decrypt_envelope(envelope: Any, key: KeyLike) -> bytes:
    """Authenticate and decrypt an envelope.

    Args:
        envelope: ``Envelope`` or anything ``Envelope.parse`` accepts.
        key: 32 raw bytes, a ``SecretKey`` or a bound ``AESGCM`` snapshot.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        InvalidEnvelope: If the envelope structure is malformed.
        DecryptionFailed: If authentication fails for any reason.
    """
    env = Envelope.parse(envelope)
    cipher = _aead(key)
    try:
        return cipher.decrypt(env.iv, env.ciphertext, None)
    except InvalidTag:
        raise DecryptionFailed() from None
