from .extract_stream import ExtractStreamUseCase, to_proxy_payload

__all__ = ["ExtractStreamUseCase", "to_proxy_payload"]
