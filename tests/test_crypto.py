"""
Tests for the vault crypto core.

Tests cover:
- PBKDF2 key derivation (determinism, salt/iteration validation)
- Envelope encrypt/decrypt round trip and IV freshness
- Opaque failure on wrong key or tampering
- Envelope parsing from dicts and JSON, malformed envelopes
- SecretKey wiping
- The fixed "correct-horse" vector
"""
import base64
import hashlib

import orjson
import pytest

from zerokey.exceptions import DecryptionFailed, InvalidEnvelope, InvalidInput, UnlockFailed
from zerokey.vault.crypto import (
    KDF_ITERATIONS,
    MIN_KDF_ITERATIONS,
    Envelope,
    SecretKey,
    decrypt_envelope,
    derive_key,
    encrypt_envelope,
)
from zerokey.vault.key_manager import unwrap_vault_key, wrap_vault_key

FAST_ITERATIONS = MIN_KDF_ITERATIONS

SALT = bytes(range(16))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# --- Key derivation ---

class TestDeriveKey:
    """Tests for PBKDF2 key derivation."""

    def test_deterministic(self):
        """Same password and salt always give the same key."""
        k1 = derive_key("hunter2", SALT, FAST_ITERATIONS)
        k2 = derive_key("hunter2", SALT, FAST_ITERATIONS)
        assert k1 == k2
        assert len(k1) == 32

    def test_different_salt_different_key(self):
        k1 = derive_key("hunter2", SALT, FAST_ITERATIONS)
        k2 = derive_key("hunter2", bytes(16), FAST_ITERATIONS)
        assert k1 != k2

    def test_different_password_different_key(self):
        k1 = derive_key("hunter2", SALT, FAST_ITERATIONS)
        k2 = derive_key("hunter3", SALT, FAST_ITERATIONS)
        assert k1 != k2

    def test_empty_and_unicode_passwords_accepted(self):
        """Password content is never rejected."""
        assert len(derive_key("", SALT, FAST_ITERATIONS)) == 32
        assert len(derive_key("pässwörd 🔑", SALT, FAST_ITERATIONS)) == 32

    def test_lone_surrogate_password(self):
        """Strings decoded with ``surrogateescape`` still derive a key."""
        k1 = derive_key("pass\ud800word", SALT, FAST_ITERATIONS)
        assert len(k1) == 32
        assert k1 == derive_key("pass\ud800word", SALT, FAST_ITERATIONS)
        assert k1 != derive_key("pass\udcffword", SALT, FAST_ITERATIONS)


    @pytest.mark.parametrize("salt", [b"", bytes(15), bytes(17), bytes(32)])
    def test_bad_salt_length(self, salt):
        with pytest.raises(InvalidInput):
            derive_key("hunter2", salt, FAST_ITERATIONS)

    def test_non_str_password(self):
        with pytest.raises(InvalidInput):
            derive_key(b"hunter2", SALT, FAST_ITERATIONS)

    def test_iterations_below_floor(self):
        with pytest.raises(InvalidInput):
            derive_key("hunter2", SALT, 1000)

    def test_default_work_factor(self):
        assert KDF_ITERATIONS == 600_000


# --- Envelope codec ---

class TestEnvelopeCodec:
    """Tests for AES-GCM envelope encryption."""

    def test_round_trip(self, vault_key):
        env = encrypt_envelope(b"top secret", vault_key)
        assert decrypt_envelope(env, vault_key) == b"top secret"

    def test_round_trip_empty_plaintext(self, vault_key):
        env = encrypt_envelope(b"", vault_key)
        assert decrypt_envelope(env, vault_key) == b""

    def test_fresh_iv_each_call(self, vault_key):
        """Two encryptions of the same plaintext differ in IV and ciphertext."""
        e1 = encrypt_envelope(b"same", vault_key)
        e2 = encrypt_envelope(b"same", vault_key)
        assert e1.iv != e2.iv
        assert e1.ct_b64 != e2.ct_b64

    def test_envelope_shape(self, vault_key):
        env = encrypt_envelope(b"abc", vault_key)
        assert len(env.iv) == 12
        assert len(env.ciphertext) == 3 + 16
        assert set(env.to_dict()) == {"iv_b64", "ct_b64"}

    def test_wrong_key(self, vault_key):
        env = encrypt_envelope(b"top secret", vault_key)
        with pytest.raises(DecryptionFailed):
            decrypt_envelope(env, bytes(32))

    def test_tampered_ciphertext(self, vault_key):
        env = encrypt_envelope(b"top secret", vault_key)
        ct = bytearray(env.ciphertext)
        ct[0] ^= 0x01
        tampered = Envelope.from_parts(env.iv, bytes(ct))
        with pytest.raises(DecryptionFailed):
            decrypt_envelope(tampered, vault_key)

    def test_tampered_iv(self, vault_key):
        env = encrypt_envelope(b"top secret", vault_key)
        iv = bytearray(env.iv)
        iv[-1] ^= 0x80
        with pytest.raises(DecryptionFailed):
            decrypt_envelope(Envelope.from_parts(bytes(iv), env.ciphertext), vault_key)

    def test_failures_are_indistinguishable(self, vault_key):
        """Wrong key and tampering produce the same error text."""
        env = encrypt_envelope(b"top secret", vault_key)
        with pytest.raises(DecryptionFailed) as wrong_key:
            decrypt_envelope(env, bytes(32))
        ct = bytearray(env.ciphertext)
        ct[-1] ^= 0xFF
        with pytest.raises(DecryptionFailed) as tampered:
            decrypt_envelope(Envelope.from_parts(env.iv, bytes(ct)), vault_key)
        assert str(wrong_key.value) == str(tampered.value) == "Decryption failed"
        assert wrong_key.value.__cause__ is None

    def test_secret_key_accepted(self, vault_key):
        env = encrypt_envelope(b"data", SecretKey(vault_key))
        assert decrypt_envelope(env, vault_key) == b"data"

    def test_bad_key_length(self):
        with pytest.raises(InvalidInput):
            encrypt_envelope(b"data", bytes(16))

    def test_str_plaintext_rejected(self, vault_key):
        with pytest.raises(InvalidInput):
            encrypt_envelope("data", vault_key)


# --- Envelope parsing ---

class TestEnvelopeParse:
    """Tests for Envelope validation and serialization."""

    def test_parse_dict_and_json(self, vault_key):
        env = encrypt_envelope(b"payload", vault_key)
        assert Envelope.parse(env.to_dict()) == env
        assert Envelope.parse(env.to_json()) == env
        assert Envelope.parse(env.to_json().encode()) == env
        assert Envelope.parse(env) is env

    def test_to_json_is_plain_object(self, vault_key):
        env = encrypt_envelope(b"payload", vault_key)
        assert orjson.loads(env.to_json()) == env.to_dict()

    def test_decrypt_accepts_stored_json(self, vault_key):
        stored = encrypt_envelope(b"payload", vault_key).to_json()
        assert decrypt_envelope(stored, vault_key) == b"payload"

    @pytest.mark.parametrize("value", [
        "not json",
        "[]",
        42,
        None,
        {},
        {"iv_b64": _b64(bytes(12))},
        {"ct_b64": _b64(bytes(16))},
        {"iv_b64": _b64(bytes(11)), "ct_b64": _b64(bytes(16))},
        {"iv_b64": _b64(bytes(12)), "ct_b64": _b64(bytes(15))},
        {"iv_b64": "%%%not-base64%%%", "ct_b64": _b64(bytes(16))},
        {"iv_b64": 12, "ct_b64": _b64(bytes(16))},
    ])
    def test_malformed(self, value):
        with pytest.raises(InvalidEnvelope):
            Envelope.parse(value)

    def test_malformed_is_not_decryption_failure(self, vault_key):
        with pytest.raises(InvalidEnvelope):
            decrypt_envelope({"iv_b64": "x", "ct_b64": "y"}, vault_key)


# --- SecretKey ---

class TestSecretKey:
    """Tests for the wipeable key buffer."""

    def test_wipe_zeroes_owned_buffer(self, vault_key):
        buf = bytearray(vault_key)
        key = SecretKey(buf)
        key.wipe()
        assert key.wiped
        assert buf == bytearray()

    def test_context_manager_wipes(self, vault_key):
        with SecretKey(vault_key) as key:
            assert key.reveal() == vault_key
        assert key.wiped
        with pytest.raises(InvalidInput):
            key.reveal()

    def test_repr_redacts(self, vault_key):
        key = SecretKey(vault_key)
        assert vault_key.hex() not in repr(key)
        assert "redacted" in repr(key)

    def test_wrong_length(self):
        with pytest.raises(InvalidInput):
            SecretKey(bytes(31))


# --- Fixed vector ---

class TestFixedVector:
    """"correct-horse" with an all-zero salt at the production work factor."""

    PASSWORD = "correct-horse"
    ZERO_SALT = bytes(16)

    def test_wrap_unwrap(self, vault_key):
        k0 = derive_key(self.PASSWORD, self.ZERO_SALT)
        # independent PBKDF2-HMAC-SHA256 at 600,000 iterations
        assert k0 == hashlib.pbkdf2_hmac(
            "sha256", b"correct-horse", bytes(16), 600_000, 32,
        )

        wrapped = wrap_vault_key(vault_key, self.PASSWORD, self.ZERO_SALT)
        # the wrapped key is an ordinary envelope under K0
        assert decrypt_envelope(wrapped, k0) == vault_key

        recovered = unwrap_vault_key(self.PASSWORD, self.ZERO_SALT, wrapped)
        assert recovered.reveal() == vault_key

        with pytest.raises(UnlockFailed):
            unwrap_vault_key("wrong", self.ZERO_SALT, wrapped)
