"""Common infrastructure utilities."""

from __future__ import annotations

from .html_selectors import extract_attr, extract_text, parse_html, select_items
from .retry_transport import RetryTransport

__all__ = [
    "RetryTransport",
    "extract_attr",
    "extract_text",
    "parse_html",
    "select_items",
]
