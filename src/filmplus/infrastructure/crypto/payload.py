"""Decryption of upstream payloads encrypted with keys shipped in their players."""

from __future__ import annotations

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from filmplus.domain.exceptions import UpstreamShapeChanged


def decrypt_upstream_payload(hex_blob: str, key: bytes, iv: bytes) -> str:
    """AES-CBC decrypt a hex-encoded blob and return the UTF-8 plaintext.

    Surrounding whitespace, newlines and stray quotes are ignored.

    Raises:
        UpstreamShapeChanged: the blob is not hex, not block aligned, or
            does not decrypt with the given key/iv.
    """
    cleaned = hex_blob.strip().strip('"').strip()
    try:
        encrypted = bytes.fromhex(cleaned)
    except ValueError as exc:
        raise UpstreamShapeChanged("payload is not hex encoded") from exc
    if not encrypted or len(encrypted) % 16:
        raise UpstreamShapeChanged("payload length is not block aligned")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plain = decryptor.update(encrypted) + decryptor.finalize()
        data = unpadder.update(plain) + unpadder.finalize()
        return data.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise UpstreamShapeChanged("payload does not decrypt with the known key") from exc
