from __future__ import annotations

from tavily import AsyncTavilyClient

from deep_research.config import settings
from deep_research.errors import ConfigError, ResearchError
from deep_research.tools.web_utils import is_valid_url


async def search(query: str, *, max_results: int = 10, search_depth: str = "basic") -> list[str]:
    """Execute a Tavily web search and return the result URLs in rank order."""
    if not settings.tavily_api_key:
        raise ConfigError("TAVILY_API_KEY not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)
    try:
        response = await client.search(
            query=query,
            search_depth=search_depth,
            max_results=max_results,
        )
    except Exception as exc:
        raise ResearchError(f"Tavily search failed for {query!r}: {exc}") from exc
    urls = [r.get("url", "") for r in response.get("results", [])]
    return [url for url in urls if is_valid_url(url)][:max_results]
