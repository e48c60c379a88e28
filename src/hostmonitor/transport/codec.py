"""
Payload packing for the collector wire format.

Payloads are compressed with zlib at the best compression level, encoded
as padded standard base64 and, when the collector published a public key,
encrypted with RSA (PKCS#1 v1.5). Decoding happens on the collector side.
"""

import base64
import binascii
import logging
import zlib
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..validation import CodecError

logger = logging.getLogger(__name__)

# PKCS#1 v1.5 padding overhead, in bytes.
PKCS1_OVERHEAD = 11


def load_public_key(key_text: str) -> rsa.RSAPublicKey:
    """
    Parse RSA public key material.

    Accepts PEM (SubjectPublicKeyInfo or PKCS#1 "RSA PUBLIC KEY") or bare
    base64-encoded DER.

    Raises:
        CodecError: If the text is not an RSA public key
    """
    text = key_text.strip()
    try:
        if text.startswith("-----BEGIN"):
            key = serialization.load_pem_public_key(text.encode("ascii"))
        else:
            der = base64.b64decode("".join(text.split()), validate=True)
            key = serialization.load_der_public_key(der)
    except (ValueError, TypeError, binascii.Error, UnicodeEncodeError) as e:
        raise CodecError(f"Invalid public key: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise CodecError(f"Unsupported public key type: {type(key).__name__}")
    return key


class PayloadCodec:
    """
    Compress, encode and optionally encrypt payloads.

    Encryption is a capability fixed at construction: a codec built without
    a public key never encrypts.
    """

    def __init__(self, public_key: Optional[rsa.RSAPublicKey] = None):
        self.public_key = public_key

    @classmethod
    def from_key_text(cls, key_text: str = "") -> "PayloadCodec":
        """Build a codec from key text; empty text disables encryption."""
        if not key_text or not key_text.strip():
            return cls()
        return cls(load_public_key(key_text))

    @property
    def encrypts(self) -> bool:
        return self.public_key is not None

    def encode(self, raw: bytes) -> bytes:
        """
        Pack a payload for the wire.

        Raises:
            CodecError: If compression, encoding or encryption fails
        """
        try:
            data64 = base64.b64encode(zlib.compress(raw, zlib.Z_BEST_COMPRESSION))
        except (zlib.error, TypeError) as e:
            raise CodecError(f"Cannot compress payload: {e}") from e

        if self.public_key is None:
            return data64
        return self._encrypt(data64)

    def _encrypt(self, data: bytes) -> bytes:
        # One RSA block per chunk; every ciphertext block is key_bytes long.
        key_bytes = (self.public_key.key_size + 7) // 8
        chunk_size = key_bytes - PKCS1_OVERHEAD
        try:
            return b"".join(
                self.public_key.encrypt(data[i:i + chunk_size], padding.PKCS1v15())
                for i in range(0, len(data), chunk_size)
            )
        except ValueError as e:
            raise CodecError(f"Cannot encrypt payload: {e}") from e
