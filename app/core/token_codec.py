"""
Reversible obfuscation of source image URLs.

A source URL is encrypted with a stream-mode AES cipher (fixed key and IV, so
the output is deterministic) and written as unpadded URL-safe base64. The
resulting token is both the public image name and the cache key.
"""

import base64
import binascii
import os

from cryptography.hazmat.decrepit.ciphers.modes import CFB, CFB8, OFB
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import CryptoError

CIPHER_AES_256_CFB = "aes-256-cfb"

_MODES = {
    "cfb": CFB,
    "cfb8": CFB8,
    "ofb": OFB,
    "ctr": modes.CTR,
}
_KEY_BITS = (128, 192, 256)
AES_IV_LENGTH = 16


def _parse_cipher(name: str) -> tuple[int, type]:
    """Return (key length in bytes, mode class) for names like 'aes-256-cfb'."""
    parts = (name or "").lower().split("-")
    if len(parts) != 3 or parts[0] != "aes":
        raise CryptoError(f"Unsupported cipher {name!r}")
    try:
        bits = int(parts[1])
    except ValueError:
        raise CryptoError(f"Unsupported cipher {name!r}") from None
    mode = _MODES.get(parts[2])
    if bits not in _KEY_BITS or mode is None:
        raise CryptoError(f"Unsupported cipher {name!r}")
    return bits // 8, mode


def encode_base64(data: bytes) -> str:
    """Base64 with '-_' instead of '+/' and no '=' padding."""
    return base64.b64encode(data).decode("ascii").translate(str.maketrans("+/", "-_")).rstrip("=")


def decode_base64(data: str) -> bytes:
    padded = data.translate(str.maketrans("-_", "+/")) + "==="[(len(data) + 3) % 4:]
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CryptoError(f"Invalid token encoding: {exc}") from exc


class TokenCodec:
    """Encrypts source URLs into URL-safe tokens and back."""

    def __init__(self, key: str, iv: str, cipher: str = CIPHER_AES_256_CFB):
        self.cipher = cipher
        self.key = key.encode("utf-8")
        try:
            self.iv = base64.b64decode(iv or "", validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError(f"Invalid base64 IV: {exc}") from exc

    def _build(self) -> Cipher:
        key_length, mode = _parse_cipher(self.cipher)
        if len(self.key) != key_length:
            raise CryptoError(f"Cipher {self.cipher} needs a {key_length}-byte key, got {len(self.key)}")
        if len(self.iv) != AES_IV_LENGTH:
            raise CryptoError(f"Cipher {self.cipher} needs a {AES_IV_LENGTH}-byte IV, got {len(self.iv)}")
        try:
            return Cipher(algorithms.AES(self.key), mode(self.iv))
        except ValueError as exc:
            raise CryptoError(f"Cipher setup failed: {exc}") from exc

    def encode(self, source_url: str) -> str:
        encryptor = self._build().encryptor()
        data = encryptor.update(source_url.encode("utf-8")) + encryptor.finalize()
        return encode_base64(data)

    def decode(self, token: str) -> str:
        raw = decode_base64(token)
        decryptor = self._build().decryptor()
        data = decryptor.update(raw) + decryptor.finalize()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError("Decrypt failed: token does not decode to text") from exc

    def generate_iv(self) -> str:
        """Fresh random IV for this cipher, base64-encoded (key rotation tooling)."""
        _parse_cipher(self.cipher)
        return base64.b64encode(os.urandom(AES_IV_LENGTH)).decode("ascii")
