"""Playwright Stealth browser that sniffs stream requests made by embed players.

Manages a single Chromium instance with stealth evasions applied. Each
sniff opens a page, records the first manifest request and any subtitle
requests the player issues, then closes the page.
"""

from __future__ import annotations

import asyncio
import re
from urllib.parse import urlparse

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Request,
    Route,
    async_playwright,
)
from playwright_stealth import Stealth

from filmplus.domain.entities.stream import ScrapeOutcome, Subtitle

log = structlog.get_logger(__name__)

_BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "stylesheet"})

_MANIFEST_RE = re.compile(r"\.m3u8(?:$|[?#])|/playlist\b|cf-master", re.IGNORECASE)
_SUBTITLE_RE = re.compile(r"\.(?:vtt|srt)(?:$|[?#])", re.IGNORECASE)


async def _block_resources(route: Route) -> None:
    """Abort requests for heavy resource types."""
    if route.request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


def _origin(url: str) -> str | None:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}/"


def _guess_lang(url: str) -> str:
    match = re.search(r"[/_.-]([a-z]{2,3})(?:[_-][A-Za-z]+)?\.(?:vtt|srt)", url)
    return match.group(1) if match else "en"


class BrowserStreamSniffer:
    """Lazy-init Playwright Stealth browser for stream sniffing.

    Usage::

        sniffer = BrowserStreamSniffer(headless=True, timeout_ms=20_000)
        outcome = await sniffer.sniff("https://embed.example/movie/1")
        await sniffer.cleanup()
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        timeout_ms: int = 20_000,
    ) -> None:
        self._headless = headless
        self._timeout_ms = timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _ensure_context(self) -> BrowserContext:
        """Launch browser + stealth context (double-check lock)."""
        if self._context is not None:
            return self._context
        async with self._lock:
            if self._context is not None:
                return self._context

            self._playwright = await async_playwright().start()
            try:
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                )
                self._context = await self._browser.new_context()

                # Stealth evasions apply to every page of the context
                await Stealth().apply_stealth_async(self._context)
                await self._context.route("**/*", _block_resources)
            except PlaywrightError:
                await self.cleanup()
                raise

            log.info("browser_sniffer_started", headless=self._headless)
            return self._context

    async def cleanup(self) -> None:
        """Close context, browser and Playwright. Safe to call twice."""
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def sniff(self, url: str, *, referer: str | None = None) -> ScrapeOutcome:
        """Open *url* and wait for the player to request a manifest.

        Returns an unsuccessful outcome when no manifest request shows up
        within the timeout or navigation fails.
        """
        try:
            ctx = await self._ensure_context()
            page: Page = await ctx.new_page()
        except PlaywrightError as exc:
            log.warning("browser_sniffer_unavailable", url=url, error=str(exc))
            return ScrapeOutcome(success=False)
        loop = asyncio.get_running_loop()
        manifest: asyncio.Future[Request] = loop.create_future()
        subtitles: list[str] = []

        def _on_request(request: Request) -> None:
            if _MANIFEST_RE.search(request.url):
                if not manifest.done():
                    manifest.set_result(request)
            elif _SUBTITLE_RE.search(request.url) and request.url not in subtitles:
                subtitles.append(request.url)

        page.on("request", _on_request)
        timeout = self._timeout_ms / 1000
        try:
            await page.goto(
                url,
                referer=referer,
                wait_until="domcontentloaded",
                timeout=self._timeout_ms,
            )
            await self._nudge_player(page)
            request = await asyncio.wait_for(manifest, timeout=timeout)
        except (PlaywrightError, asyncio.TimeoutError) as exc:
            log.debug("browser_sniff_no_manifest", url=url, error=type(exc).__name__)
            return ScrapeOutcome(success=False)
        finally:
            if not page.is_closed():
                await page.close()

        request_referer = (await request.all_headers()).get("referer")
        log.debug("browser_sniff_manifest", url=url, manifest=request.url)
        return ScrapeOutcome(
            success=True,
            hls_url=request.url,
            subtitles=[
                Subtitle(lang=_guess_lang(s), label=_guess_lang(s).upper(), url=s)
                for s in subtitles
            ],
            referer=_origin(request_referer or url),
        )

    async def _nudge_player(self, page: Page) -> None:
        """Click the page centre once; most embed players start on click."""
        viewport = page.viewport_size or {"width": 1280, "height": 720}
        try:
            await page.mouse.click(viewport["width"] / 2, viewport["height"] / 2)
        except PlaywrightError:
            log.debug("browser_sniff_click_failed", url=page.url)
