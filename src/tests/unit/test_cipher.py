"""Tests for localvault.core.cipher module."""

import base64

import pytest

from localvault.core.cipher import (
    IV_LEN,
    MIN_PAYLOAD_LEN,
    TAG_LEN,
    EncryptedPayload,
    FieldCodec,
    decrypt,
    encrypt,
)
from localvault.core.errors import (
    AuthenticationFailedError,
    MalformedPayloadError,
    NotInitializedError,
)
from localvault.core.keys import KeyManager

OTHER_SALT = b"\x02" * 16


class TestEncryptDecrypt:
    """Tests for the stateless encrypt/decrypt pair."""

    @pytest.mark.parametrize(
        "plaintext",
        [
            b"",
            b"hello",
            "Zażółć gęślą jaźń 🔐 日本語".encode("utf-8"),
            ("Ünïcødé " * 20_000).encode("utf-8"),
        ],
        ids=["empty", "ascii", "non_ascii", "large"],
    )
    def test_round_trip(self, key, plaintext):
        """decrypt(encrypt(p)) == p."""
        payload = encrypt(key, plaintext)

        assert decrypt(key, payload) == plaintext

    def test_payload_layout(self, key):
        """Payload is a 12-byte IV plus ciphertext with a 16-byte tag."""
        payload = encrypt(key, b"abc")

        assert len(payload.iv) == IV_LEN
        assert len(payload.ciphertext) == 3 + TAG_LEN
        assert payload.to_bytes() == payload.iv + payload.ciphertext

    def test_empty_plaintext_has_tag_only(self, key):
        """Empty plaintext still produces a valid IV + tag payload."""
        payload = encrypt(key, b"")

        assert len(payload.to_bytes()) == MIN_PAYLOAD_LEN

    def test_iv_is_fresh_every_call(self, key):
        """Same key and plaintext never repeat IV or ciphertext."""
        first = encrypt(key, b"same message")
        second = encrypt(key, b"same message")

        assert first.iv != second.iv
        assert first.to_bytes() != second.to_bytes()

    def test_wrong_key_rejected(self, key):
        """Decrypting under a different key raises AuthenticationFailedError."""
        other = KeyManager().derive_key("a different passphrase", salt=OTHER_SALT)
        payload = encrypt(key, b"secret")

        with pytest.raises(AuthenticationFailedError):
            decrypt(other, payload)

    def test_any_flipped_byte_detected(self, key):
        """Flipping any single byte makes decryption fail authentication."""
        raw = encrypt(key, b"tamper me").to_bytes()

        for index in range(len(raw)):
            tampered = bytearray(raw)
            tampered[index] ^= 0x01
            with pytest.raises(AuthenticationFailedError):
                decrypt(key, EncryptedPayload.from_bytes(bytes(tampered)))

    def test_truncated_payload_rejected(self, key):
        """Dropping trailing bytes fails authentication."""
        raw = encrypt(key, b"truncate me please").to_bytes()

        with pytest.raises(AuthenticationFailedError):
            decrypt(key, EncryptedPayload.from_bytes(raw[:-4]))

    def test_missing_key_raises_not_initialized(self, key):
        """Both operations need a key."""
        payload = encrypt(key, b"data")

        with pytest.raises(NotInitializedError):
            encrypt(None, b"data")
        with pytest.raises(NotInitializedError):
            decrypt(None, payload)

    def test_cleared_key_raises_not_initialized(self, key_manager, key):
        """A wiped key is treated as absent."""
        payload = encrypt(key, b"data")
        key_manager.clear()

        with pytest.raises(NotInitializedError):
            decrypt(key, payload)


class TestEncryptedPayload:
    """Tests for payload serialization."""

    def test_encode_is_base64_of_bytes(self, key):
        """encode() is base64(IV || ciphertext || tag)."""
        payload = encrypt(key, b"wire format")

        assert base64.b64decode(payload.encode()) == payload.to_bytes()
        assert EncryptedPayload.decode(payload.encode()) == payload

    @pytest.mark.parametrize("length", [0, 1, IV_LEN - 1, IV_LEN, MIN_PAYLOAD_LEN - 1])
    def test_short_payload_is_malformed(self, length):
        """Anything shorter than IV + tag is rejected before decryption."""
        with pytest.raises(MalformedPayloadError):
            EncryptedPayload.from_bytes(b"\x00" * length)

    def test_invalid_base64_is_malformed(self):
        """Undecodable text raises MalformedPayloadError."""
        with pytest.raises(MalformedPayloadError):
            EncryptedPayload.decode("not base64 at all!!")

    def test_truncated_iv_is_malformed(self, key):
        """A hand-built payload with a short IV is rejected."""
        payload = EncryptedPayload(iv=b"\x00" * 4, ciphertext=b"\x00" * 32)

        with pytest.raises(MalformedPayloadError):
            decrypt(key, payload)


class TestFieldCodec:
    """Tests for FieldCodec."""

    def test_text_round_trip(self, key_manager, key):
        """Text fields round-trip through UTF-8."""
        codec = FieldCodec(key_manager)

        assert codec.decode_text(codec.encode_text("Trip Plan ✈")) == "Trip Plan ✈"

    def test_json_round_trip(self, key_manager, key):
        """JSON fields round-trip."""
        codec = FieldCodec(key_manager)
        value = {"filename": "notes.txt", "tags": ["a", "b"], "size": 3}

        assert codec.decode_json(codec.encode_json(value)) == value

    def test_requires_live_key(self, key_manager):
        """Codec raises NotInitializedError until a key is derived."""
        codec = FieldCodec(key_manager)

        with pytest.raises(NotInitializedError):
            codec.encode_text("nope")

    def test_non_utf8_plaintext_is_malformed(self, key_manager, key):
        """Bytes that are not UTF-8 cannot be decoded as text."""
        codec = FieldCodec(key_manager)
        payload = codec.encode_bytes(b"\xff\xfe\xfd")

        with pytest.raises(MalformedPayloadError):
            codec.decode_text(payload)

    def test_non_json_plaintext_is_malformed(self, key_manager, key):
        """Text that is not JSON cannot be decoded as JSON."""
        codec = FieldCodec(key_manager)
        payload = codec.encode_text("{not json")

        with pytest.raises(MalformedPayloadError):
            codec.decode_json(payload)
