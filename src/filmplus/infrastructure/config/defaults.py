"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "filmplus",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "follow_redirects": True,
        "retry_max_attempts": 3,
        "retry_backoff_base": 0.5,
        "retry_max_backoff": 4.0,
    },
    "extraction": {
        "timeout_seconds": 25.0,
    },
    "playwright": {
        "headless": True,
        "timeout_ms": 20_000,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/filmplus",
        "ttl_seconds": 3600,
    },
    "proxy": {
        "stream_prefix": "/stream",
        "playlist_max_age": 300,
        "segment_max_age": 86_400,
    },
}
