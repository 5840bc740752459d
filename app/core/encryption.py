"""Credential codec for QR payloads and short-link data.

Credentials are the hex encoding of ``AES-256-CBC(subject:event) || HMAC-SHA256``
under a fixed key/IV pair from settings. The fixed IV makes issuing deterministic,
which is what lets short-link minting find an existing mapping for the same device.
"""
import hashlib
import re
from typing import NamedTuple, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from app.core.config import settings
from app.core.errors import InvalidCredential, ValidationError

_HEX_RE = re.compile(r"^[0-9a-f]+$")
_TAG_HEX_LENGTH = 64  # SHA-256 tag
_BLOCK_HEX_LENGTH = 32  # one AES block
_SEPARATOR = ":"


class ResolvedCredential(NamedTuple):
    subject_token: str
    event_ref: str


class CredentialCodec:
    """Encrypts and authenticates ``subject_token:event_ref`` composites."""

    def __init__(self, key_hex: str, iv_hex: str, mac_key_hex: Optional[str] = None):
        try:
            self._key = bytes.fromhex(key_hex)
            self._iv = bytes.fromhex(iv_hex)
        except ValueError as e:
            raise ValueError(f"Credential key/IV must be hex encoded: {e}")
        if len(self._key) != 32:
            raise ValueError("CREDENTIAL_KEY must be 32 bytes (64 hex characters)")
        if len(self._iv) != 16:
            raise ValueError("CREDENTIAL_IV must be 16 bytes (32 hex characters)")

        if mac_key_hex:
            self._mac_key = bytes.fromhex(mac_key_hex)
        else:
            # Keep the MAC key distinct from the cipher key even when only one is configured
            self._mac_key = hashlib.sha256(b"eventpass-credential-mac:" + self._key).digest()

    def _sign(self, data: bytes) -> bytes:
        h = hmac.HMAC(self._mac_key, hashes.SHA256())
        h.update(data)
        return h.finalize()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string and return lowercase hex ciphertext with its tag."""
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return (ciphertext + self._sign(ciphertext)).hex()

    def decrypt(self, token: str) -> str:
        """Verify and decrypt a token produced by :meth:`encrypt`."""
        if not isinstance(token, str) or not _HEX_RE.match(token):
            raise InvalidCredential("Credential is not a valid token")
        if len(token) < _TAG_HEX_LENGTH + _BLOCK_HEX_LENGTH or len(token) % 2:
            raise InvalidCredential("Credential is truncated")

        raw = bytes.fromhex(token)
        ciphertext, tag = raw[:-32], raw[-32:]
        if len(ciphertext) % 16:
            raise InvalidCredential("Credential is truncated")

        h = hmac.HMAC(self._mac_key, hashes.SHA256())
        h.update(ciphertext)
        try:
            h.verify(tag)
        except InvalidSignature:
            raise InvalidCredential()

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            raise InvalidCredential()

    def issue(self, subject_token: str, event_ref: str) -> str:
        """Mint an opaque credential for a subject (registration token, device key) and event."""
        subject_token = str(subject_token)
        event_ref = str(event_ref)
        if not subject_token or _SEPARATOR in subject_token:
            raise ValidationError("Subject token must be non-empty and must not contain ':'")
        return self.encrypt(f"{subject_token}{_SEPARATOR}{event_ref}")

    def resolve(self, token: str) -> ResolvedCredential:
        """Reverse :meth:`issue`. Raises ``InvalidCredential`` on any tampering."""
        subject_token, separator, event_ref = self.decrypt(token).partition(_SEPARATOR)
        if not separator or not subject_token:
            raise InvalidCredential("Credential payload is malformed")
        return ResolvedCredential(subject_token=subject_token, event_ref=event_ref)


# Global codec instance
credential_codec = CredentialCodec(
    settings.CREDENTIAL_KEY,
    settings.CREDENTIAL_IV,
    settings.CREDENTIAL_MAC_KEY,
)
