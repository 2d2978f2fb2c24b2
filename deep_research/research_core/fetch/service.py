from __future__ import annotations

import httpx
from loguru import logger

from deep_research.errors import FetchFailure
from deep_research.research_core.extract.decoders import (
    DecoderRegistry,
    HtmlDecoder,
    is_html_content_type,
    mime_type,
)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
REFERRER = "https://www.google.com"
ACCEPT_HTML = "text/html,application/xhtml+xml"


class UnsupportedContentType(Exception):
    """Primary fetch got a response that is not an HTML-like document."""

    def __init__(self, url: str, content_type: str):
        super().__init__(f"Unhandled content type {content_type!r} for {url}")
        self.url = url
        self.content_type = content_type


def browser_headers(accept: str = ACCEPT_HTML) -> dict[str, str]:
    return {
        "User-Agent": BROWSER_USER_AGENT,
        "Referer": REFERRER,
        "Accept-Language": "en-US,en;q=0.9",
        "Accept": accept,
    }


class PageFetcher:
    """Fetch a page's readable text, falling back across status and format failures.

    1. Primary GET: 2xx and an HTML-like content type, decoded as HTML.
    2. On an HTTP status error, a raw GET whose body is decoded as HTML whatever
       the status.
    3. On a non-HTML content type, a raw GET decoded by whichever decoder the
       response's content type (or the primary failure) selects, e.g. PDF.
    4. Anything else fails immediately.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        decoders: DecoderRegistry | None = None,
    ):
        self.timeout = timeout
        self.decoders = decoders or DecoderRegistry()
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._http_client

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_text(self, url: str) -> str:
        try:
            return await self._fetch_primary(url)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.info(f"Primary fetch of {url} returned HTTP {status}; retrying with raw GET")
            try:
                return await self._fetch_raw_html(url)
            except Exception as fallback_exc:
                raise FetchFailure(
                    url,
                    f"Failed to fetch URL (status {status}): {exc}; fallback fetch failed: {fallback_exc}",
                    causes=(exc, fallback_exc),
                ) from fallback_exc
        except UnsupportedContentType as exc:
            logger.info(f"Primary fetch of {url} is not HTML ({exc.content_type}); retrying by content type")
            try:
                return await self._fetch_by_content_type(url, str(exc))
            except Exception as fallback_exc:
                raise FetchFailure(
                    url,
                    f"Failed to fetch URL (unsupported content type): {exc}; fallback fetch failed: {fallback_exc}",
                    causes=(exc, fallback_exc),
                ) from fallback_exc
        except Exception as exc:
            raise FetchFailure(url, f"Failed to fetch URL: {exc}", causes=(exc,)) from exc

    async def _fetch_primary(self, url: str) -> str:
        response = await self.http_client.get(url, headers=browser_headers())
        response.raise_for_status()
        content_type = response.headers.get("content-type", "")
        if not is_html_content_type(content_type):
            raise UnsupportedContentType(url, mime_type(content_type))
        return HtmlDecoder().decode(response.content, encoding=response.encoding)

    async def _fetch_raw_html(self, url: str) -> str:
        response = await self.http_client.get(url, headers=browser_headers())
        return HtmlDecoder().decode(response.content, encoding=response.encoding)

    async def _fetch_by_content_type(self, url: str, failure_message: str) -> str:
        response = await self.http_client.get(url, headers=browser_headers(accept="*/*"))
        decoder = self.decoders.select(response.headers.get("content-type", ""), hint=failure_message)
        logger.debug(f"Decoding {url} with the {decoder.name} decoder")
        return decoder.decode(response.content, encoding=response.encoding)
