"""CSS-selector-based HTML extraction with fallback chains.

Every helper accepts a primary selector and optional *fallback_selectors*;
the first selector that yields a match wins, so scrapers survive minor
upstream layout changes.
"""

from __future__ import annotations

from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML string into a BeautifulSoup tree (lxml parser)."""
    return BeautifulSoup(html, "lxml")


def select_items(
    root: BeautifulSoup | Tag,
    selector: str,
    *fallback_selectors: str,
) -> list[Tag]:
    """Select elements via CSS with a fallback chain."""
    for sel in (selector, *fallback_selectors):
        items = root.select(sel)
        if items:
            return items
    return []


def extract_text(
    element: Tag,
    selector: str,
    *fallback_selectors: str,
    default: str = "",
) -> str:
    """Extract stripped text from the first matching child element.

    With ``selector=""`` the element's own text is returned.
    """
    if selector == "":
        return element.get_text(strip=True) or default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            text = match.get_text(strip=True)
            if text:
                return text
    return default


def extract_attr(
    element: Tag,
    selector: str,
    attr: str,
    *fallback_selectors: str,
    default: str = "",
) -> str:
    """Extract an HTML attribute from the first matching child element.

    With ``selector=""`` the attribute is read from *element* itself.
    """
    if selector == "":
        val = element.get(attr)
        return str(val) if val else default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            val = match.get(attr)
            if val:
                return str(val)
    return default


def first_iframe_src(html: str, base_url: str) -> str | None:
    """Return the absolute ``src`` of the first ``<iframe>`` in *html*.

    Protocol-relative sources (``//host/path``) get ``https:``; relative
    sources are resolved against *base_url*.
    """
    iframe = parse_html(html).find("iframe", src=True)
    if iframe is None:
        return None
    src = str(iframe["src"]).strip()
    if not src:
        return None
    if src.startswith("//"):
        return f"https:{src}"
    return urljoin(base_url, src)
