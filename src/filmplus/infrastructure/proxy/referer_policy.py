"""Upstream header policy for proxied stream fetches."""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlparse

from filmplus.infrastructure.config.schema import BROWSER_USER_AGENT

FLIXCDN_REFERER = "https://flixcdn.cyou/"

_IPV4_RE = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
_FLIXCDN_HOST_MARKERS = ("flixcdn", "tiktokcdn")


class NoRefererHostSet:
    """Hosts that reject requests carrying a Referer.

    Append-only for the life of the process. Concurrent adds of the same
    host are harmless.
    """

    def __init__(self, hosts: Iterable[str] | None = None) -> None:
        self._hosts: set[str] = {h.lower() for h in hosts or ()}

    def add(self, host: str) -> None:
        self._hosts.add(host.lower())

    def __contains__(self, host: object) -> bool:
        return isinstance(host, str) and host.lower() in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def needs_flixcdn_referer(host: str) -> bool:
    """FlixCDN streams are served from bare IPs or flixcdn/tiktokcdn hosts."""
    return bool(_IPV4_RE.match(host)) or any(m in host for m in _FLIXCDN_HOST_MARKERS)


def build_upstream_headers(
    url: str,
    referer: str | None,
    no_referer_hosts: NoRefererHostSet,
    *,
    user_agent: str = BROWSER_USER_AGENT,
) -> dict[str, str]:
    """Headers for fetching *url* from its upstream.

    Referer precedence: explicit *referer*, then the FlixCDN host rule,
    then the URL's own origin. Referer and Origin are omitted entirely for
    hosts known to reject them.
    """
    headers = {"User-Agent": user_agent, "Accept": "*/*"}
    host = (urlparse(url).hostname or "").lower()
    if host in no_referer_hosts:
        return headers

    if referer:
        chosen = referer
    elif needs_flixcdn_referer(host):
        chosen = FLIXCDN_REFERER
    else:
        chosen = f"{_origin(url)}/"

    headers["Referer"] = chosen
    headers["Origin"] = _origin(chosen)
    return headers
