from .hls_proxy import (
    HlsProxy,
    ProxiedBody,
    is_playlist,
    normalize_content_type,
    resolve_reference,
    rewrite_manifest,
)
from .referer_policy import NoRefererHostSet, build_upstream_headers

__all__ = [
    "HlsProxy",
    "NoRefererHostSet",
    "ProxiedBody",
    "build_upstream_headers",
    "is_playlist",
    "normalize_content_type",
    "resolve_reference",
    "rewrite_manifest",
]
