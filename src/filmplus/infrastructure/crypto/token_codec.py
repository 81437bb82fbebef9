"""Opaque proxy tokens for upstream URLs.

Tokens are AES-128-CBC ciphertexts (zero IV, PKCS7) encoded as unpadded
base64url. The key is random per process, so tokens die with the process,
which is fine because the upstream URLs they carry expire quickly anyway.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from filmplus.domain.exceptions import DecodeError

_KEY_SIZE = 16
_BLOCK_BITS = algorithms.AES.block_size
_ZERO_IV = bytes(16)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(token: str) -> bytes:
    padded = token + "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class TokenCodec:
    """Encrypts upstream URLs into URL-safe tokens and back."""

    def __init__(self, key: bytes | None = None) -> None:
        if key is None:
            key = os.urandom(_KEY_SIZE)
        if len(key) != _KEY_SIZE:
            raise ValueError(f"token key must be {_KEY_SIZE} bytes, got {len(key)}")
        self._cipher = Cipher(algorithms.AES(key), modes.CBC(_ZERO_IV))

    def encode(self, url: str) -> str:
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        data = padder.update(url.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher.encryptor()
        return _b64url_encode(encryptor.update(data) + encryptor.finalize())

    def decode(self, token: str) -> str:
        """Inverse of :meth:`encode`.

        Raises:
            DecodeError: malformed token or one minted with another key.
        """
        try:
            raw = _b64url_decode(token)
        except (binascii.Error, ValueError, UnicodeEncodeError) as exc:
            raise DecodeError("token is not valid base64url") from exc
        if not raw or len(raw) % 16:
            raise DecodeError("token length is not a whole number of blocks")

        decryptor = self._cipher.decryptor()
        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        try:
            plain = decryptor.update(raw) + decryptor.finalize()
            data = unpadder.update(plain) + unpadder.finalize()
            return data.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            raise DecodeError("token does not decrypt with this process key") from exc
