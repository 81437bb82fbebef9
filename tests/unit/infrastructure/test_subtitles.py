"""Tests for subtitle download and SRT -> WebVTT conversion."""

from __future__ import annotations

import httpx
import pytest
import respx

from filmplus.domain.exceptions import UpstreamUnavailable
from filmplus.infrastructure.subtitles import fetch_subtitle, to_webvtt

_SRT = "1\r\n00:00:01,000 --> 00:00:04,250\r\nHello there.\r\n\r\n2\r\n00:01:02,500 --> 00:01:03,000\r\nBye, 12,345 times.\r\n"


class TestToWebVtt:
    def test_srt_converted(self) -> None:
        out = to_webvtt(_SRT)
        assert out.startswith("WEBVTT\n\n1\n")
        assert "00:00:01.000 --> 00:00:04.250" in out
        assert "00:01:02.500 --> 00:01:03.000" in out
        assert "\r" not in out

    def test_cue_text_commas_untouched(self) -> None:
        assert "Bye, 12,345 times." in to_webvtt(_SRT)

    def test_bom_stripped(self) -> None:
        out = to_webvtt("\ufeff1\n00:00:01,000 --> 00:00:02,000\nHi\n")
        assert out.startswith("WEBVTT\n\n1\n")

    def test_existing_vtt_passthrough(self) -> None:
        vtt = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHi\n"
        assert to_webvtt(vtt) == vtt

    def test_existing_vtt_with_bom_and_crlf(self) -> None:
        assert to_webvtt("\ufeffWEBVTT\r\n\r\nx\r\n") == "WEBVTT\n\nx\n"

    def test_lone_cr_normalized(self) -> None:
        assert to_webvtt("WEBVTT\r\rx") == "WEBVTT\n\nx"


class TestFetchSubtitle:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_fetch_and_convert(self) -> None:
        respx.get("https://subs.test/en.srt").respond(text=_SRT)

        async with httpx.AsyncClient() as client:
            out = await fetch_subtitle(client, "https://subs.test/en.srt")

        assert out.startswith("WEBVTT")

    @respx.mock
    @pytest.mark.asyncio()
    async def test_error_status(self) -> None:
        respx.get("https://subs.test/en.srt").respond(404)

        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamUnavailable, match="subtitle fetch failed"):
                await fetch_subtitle(client, "https://subs.test/en.srt")

    @respx.mock
    @pytest.mark.asyncio()
    async def test_network_error(self) -> None:
        respx.get("https://subs.test/en.srt").mock(side_effect=httpx.ConnectError("nope"))

        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamUnavailable):
                await fetch_subtitle(client, "https://subs.test/en.srt")
