from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from grounding.utils.text import query_terms

from .extractor import ExtractedContent, ExtractionEmpty, extract_content
from .registry import SelectorHints

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
_RELEVANCE_RATIO = 0.3
_RELEVANCE_MIN_CHARS = 200


class FetchError(Exception):
    """Base class for soft, per-source fetch failures."""

    kind = "fetch_error"

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class FetchTimeout(FetchError):
    kind = "timeout"

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(url, f"request timed out after {timeout:g}s")
        self.timeout = timeout


class FetchBadStatus(FetchError):
    kind = "bad_status"

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"HTTP {status_code}")
        self.status_code = status_code


class FetchUnsupportedContentType(FetchError):
    kind = "unsupported_content_type"

    def __init__(self, url: str, content_type: str) -> None:
        super().__init__(url, f"unsupported content type '{content_type or 'unknown'}'")
        self.content_type = content_type


class FetchInvalidUrl(FetchError):
    kind = "invalid_url"


class FetchRequestError(FetchError):
    kind = "request_error"


class FetchExtractionEmpty(FetchError):
    kind = ExtractionEmpty.kind


class ContentFetcher:
    """Fetches one page with browser-like headers and extracts its main text.

    ``transport`` is handed to ``httpx.AsyncClient`` and lets callers swap the
    network for an ``httpx.MockTransport``.
    """

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    async def fetch(
        self,
        url: str,
        *,
        timeout: float,
        max_content_length: int,
        selectors: Optional[SelectorHints] = None,
    ) -> ExtractedContent:
        try:
            scheme = urlparse(url).scheme
        except ValueError as exc:
            raise FetchInvalidUrl(url, str(exc)) from exc
        if scheme not in {"http", "https"}:
            raise FetchInvalidUrl(url, "only http and https URLs are supported")

        try:
            html = await asyncio.wait_for(self._download(url, timeout, max_content_length), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchTimeout(url, timeout) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise FetchInvalidUrl(url, str(exc) or exc.__class__.__name__) from exc
        except httpx.HTTPError as exc:
            raise FetchRequestError(url, str(exc) or exc.__class__.__name__) from exc

        try:
            return extract_content(html, url, selectors)
        except ExtractionEmpty as exc:
            raise FetchExtractionEmpty(url, str(exc)) from exc

    async def _download(self, url: str, timeout: float, max_content_length: int) -> str:
        async with httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise FetchBadStatus(url, response.status_code)

                content_type = response.headers.get("content-type", "")
                if not any(kind in content_type.lower() for kind in _HTML_CONTENT_TYPES):
                    raise FetchUnsupportedContentType(url, content_type)

                raw = bytearray()
                async for block in response.aiter_bytes():
                    raw.extend(block)
                    if len(raw) >= max_content_length:
                        break
                encoding = response.encoding or "utf-8"

        return bytes(raw[:max_content_length]).decode(encoding, errors="replace")


def is_content_relevant(body: str, query: str) -> bool:
    terms = query_terms(query)
    if not terms or len(body) <= _RELEVANCE_MIN_CHARS:
        return False
    lowered = body.lower()
    matching = sum(1 for term in terms if term in lowered)
    return matching / len(terms) >= _RELEVANCE_RATIO
