from .payload import decrypt_upstream_payload
from .token_codec import TokenCodec

__all__ = ["TokenCodec", "decrypt_upstream_payload"]
