"""Authenticated encryption for stored originals.

Uses AES-256-GCM with:
- a 32-byte key supplied once at process start
- a fresh random 12-byte nonce for every encryption
- a 16-byte authentication tag verified before any plaintext is returned

Usage:
    cipher = Cipher.from_hex(os.environ["AUDIT_ENCRYPTION_KEY"])
    envelope = cipher.encrypt("My SSN is 123-45-6789")
    token = envelope.to_token()       # store this
    cipher.decrypt(EncryptedEnvelope.from_token(token))
"""

from __future__ import annotations
import base64
import binascii
import json
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationError, KeyConfigurationError

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


@dataclass(frozen=True, slots=True)
class EncryptedEnvelope:
    """Self-contained encrypted unit: nonce + ciphertext + tag."""
    nonce: bytes
    ciphertext: bytes
    auth_tag: bytes

    def to_token(self) -> str:
        """Serialize as base64 of a JSON object with hex fields."""
        blob = {
            "iv": self.nonce.hex(),
            "ciphertext": self.ciphertext.hex(),
            "authTag": self.auth_tag.hex(),
        }
        return base64.b64encode(json.dumps(blob).encode("utf-8")).decode("ascii")

    @classmethod
    def from_token(cls, token: str) -> "EncryptedEnvelope":
        """Parse a token produced by ``to_token``.

        Raises:
            AuthenticationError: If the token is not a well-formed envelope.
        """
        try:
            blob = json.loads(base64.b64decode(token, validate=True).decode("utf-8"))
            envelope = cls(
                nonce=bytes.fromhex(blob["iv"]),
                ciphertext=bytes.fromhex(blob["ciphertext"]),
                auth_tag=bytes.fromhex(blob["authTag"]),
            )
        except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"Malformed envelope: {type(e).__name__}") from e
        return envelope


def validate_key(key: bytes | None) -> bytes:
    """Return the key if it is exactly 32 bytes, else fail fast."""
    if not key:
        raise KeyConfigurationError("Encryption key is not configured")
    if not isinstance(key, (bytes, bytearray)):
        raise KeyConfigurationError("Encryption key must be bytes")
    if len(key) != KEY_SIZE:
        raise KeyConfigurationError(
            f"Encryption key must be exactly {KEY_SIZE} bytes, got {len(key)}"
        )
    return bytes(key)


def encrypt(key: bytes, plaintext: str) -> EncryptedEnvelope:
    """Encrypt plaintext under key with a fresh random nonce."""
    aesgcm = AESGCM(validate_key(key))
    nonce = os.urandom(NONCE_SIZE)
    sealed = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    # AESGCM appends the tag to the ciphertext
    return EncryptedEnvelope(
        nonce=nonce,
        ciphertext=sealed[:-TAG_SIZE],
        auth_tag=sealed[-TAG_SIZE:],
    )


def decrypt(key: bytes, envelope: EncryptedEnvelope) -> str:
    """Decrypt an envelope, verifying its tag first.

    Raises:
        AuthenticationError: Wrong key, tampered data, or malformed envelope.
    """
    aesgcm = AESGCM(validate_key(key))
    if len(envelope.nonce) != NONCE_SIZE or len(envelope.auth_tag) != TAG_SIZE:
        raise AuthenticationError("Malformed envelope: bad nonce or tag length")
    try:
        plaintext = aesgcm.decrypt(envelope.nonce, envelope.ciphertext + envelope.auth_tag, None)
    except InvalidTag as e:
        raise AuthenticationError("Envelope failed authentication") from e
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthenticationError("Malformed envelope: plaintext is not UTF-8") from e


class Cipher:
    """Holds the process key. Read-only after construction, safe to share."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes | None) -> None:
        self._key = validate_key(key)

    @classmethod
    def from_hex(cls, key_hex: str | None) -> "Cipher":
        """Build from a 64-character hex string (the env var form)."""
        if not key_hex:
            raise KeyConfigurationError("AUDIT_ENCRYPTION_KEY is not defined")
        if len(key_hex) != KEY_SIZE * 2:
            raise KeyConfigurationError(
                "AUDIT_ENCRYPTION_KEY must be a 64-character hex string (32 bytes)"
            )
        try:
            key = bytes.fromhex(key_hex)
        except ValueError:
            raise KeyConfigurationError("AUDIT_ENCRYPTION_KEY must be a valid hex string")
        return cls(key)

    def encrypt(self, plaintext: str) -> EncryptedEnvelope:
        return encrypt(self._key, plaintext)

    def decrypt(self, envelope: EncryptedEnvelope) -> str:
        return decrypt(self._key, envelope)

    def __repr__(self) -> str:
        return "Cipher(key=<hidden>)"
