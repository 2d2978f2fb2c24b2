from __future__ import annotations

import httpx
from bs4 import BeautifulSoup

from deep_research.research_core.fetch.service import browser_headers
from deep_research.tools.web_utils import is_valid_url, unwrap_redirect

SEARCH_URL = "https://html.duckduckgo.com/html/"


def parse_results_page(html: str, max_results: int = 10) -> list[str]:
    """Result URLs of a DuckDuckGo HTML results page, in rank order.

    Result anchors point at a ``/l/?uddg=<target>`` redirect; the target is
    unwrapped and non-http(s) links are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    for anchor in soup.select("a.result__a"):
        href = unwrap_redirect(str(anchor.get("href") or "").strip())
        if not is_valid_url(href) or href in urls:
            continue
        urls.append(href)
        if len(urls) >= max_results:
            break
    return urls


async def search(query: str, *, max_results: int = 10, timeout: float = 15.0) -> list[str]:
    """Search DuckDuckGo's HTML endpoint and return ranked result URLs."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        response = await client.get(SEARCH_URL, params={"q": query}, headers=browser_headers())
        response.raise_for_status()
    return parse_results_page(response.text, max_results)
