"""AES-256-GCM field encryption.

Wire format of a stored field: base64(IV[12] || ciphertext || tag[16]).
``encrypt``/``decrypt`` are stateless; ``FieldCodec`` binds them to a
KeyManager and converts text, JSON and raw bytes fields.
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from localvault.core.errors import (
    AuthenticationFailedError,
    MalformedPayloadError,
    NotInitializedError,
)
from localvault.core.keys import KeyManager, KeyMaterial

IV_LEN = 12  # 96 bits for AES-GCM
TAG_LEN = 16  # 128-bit authentication tag, appended by AESGCM
MIN_PAYLOAD_LEN = IV_LEN + TAG_LEN


@dataclass(frozen=True)
class EncryptedPayload:
    """IV plus ciphertext-with-tag for a single encrypted field."""

    iv: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        """Serialize as IV immediately followed by ciphertext-with-tag."""
        return self.iv + self.ciphertext

    def encode(self) -> str:
        """Serialize to the base64 text stored in the database."""
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "EncryptedPayload":
        """Split raw bytes into IV and ciphertext-with-tag."""
        if len(raw) < MIN_PAYLOAD_LEN:
            raise MalformedPayloadError(
                f"Encrypted payload too short: {len(raw)} bytes, need at least {MIN_PAYLOAD_LEN}"
            )
        return cls(iv=bytes(raw[:IV_LEN]), ciphertext=bytes(raw[IV_LEN:]))

    @classmethod
    def decode(cls, text: str | bytes) -> "EncryptedPayload":
        """Parse the base64 text stored in the database."""
        try:
            raw = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise MalformedPayloadError(f"Encrypted payload is not valid base64: {exc}") from exc
        return cls.from_bytes(raw)


def _check_key(key: KeyMaterial | None) -> KeyMaterial:
    if key is None or key.is_wiped:
        raise NotInitializedError("Encryption key not initialized. Derive a key first.")
    return key


def encrypt(key: KeyMaterial | None, plaintext: bytes) -> EncryptedPayload:
    """
    Encrypt bytes with AES-256-GCM under a fresh random IV.

    Args:
        key: Live key material
        plaintext: Data to encrypt (may be empty)

    Returns:
        EncryptedPayload with a new IV and ciphertext-with-tag

    Raises:
        NotInitializedError: If no usable key is supplied
    """
    material = _check_key(key)
    iv = os.urandom(IV_LEN)
    ciphertext = AESGCM(bytes(material.key)).encrypt(iv, plaintext, None)
    return EncryptedPayload(iv=iv, ciphertext=ciphertext)


def decrypt(key: KeyMaterial | None, payload: EncryptedPayload) -> bytes:
    """
    Verify and decrypt a payload.

    Args:
        key: Live key material
        payload: Payload produced by ``encrypt``

    Returns:
        Decrypted bytes

    Raises:
        NotInitializedError: If no usable key is supplied
        MalformedPayloadError: If the payload is shorter than IV + tag
        AuthenticationFailedError: If the tag does not verify
    """
    material = _check_key(key)
    if len(payload.iv) != IV_LEN or len(payload.ciphertext) < TAG_LEN:
        raise MalformedPayloadError("Encrypted payload is truncated")
    try:
        return AESGCM(bytes(material.key)).decrypt(payload.iv, payload.ciphertext, None)
    except InvalidTag as exc:
        raise AuthenticationFailedError(
            "Decryption failed: wrong passphrase or corrupted data"
        ) from exc


class FieldCodec:
    """Encodes record fields to EncryptedPayload using the manager's live key."""

    def __init__(self, key_manager: KeyManager):
        self.key_manager = key_manager

    def encode_bytes(self, data: bytes) -> EncryptedPayload:
        return encrypt(self.key_manager.require_key(), data)

    def decode_bytes(self, payload: EncryptedPayload) -> bytes:
        return decrypt(self.key_manager.require_key(), payload)

    def encode_text(self, text: str) -> EncryptedPayload:
        return self.encode_bytes(text.encode("utf-8"))

    def decode_text(self, payload: EncryptedPayload) -> str:
        data = self.decode_bytes(payload)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayloadError("Decrypted field is not valid UTF-8") from exc

    def encode_json(self, value: Any) -> EncryptedPayload:
        return self.encode_text(json.dumps(value, ensure_ascii=False))

    def decode_json(self, payload: EncryptedPayload) -> Any:
        text = self.decode_text(payload)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedPayloadError("Decrypted field is not valid JSON") from exc
