from __future__ import annotations

import httpx
from loguru import logger

from deep_research.config import settings
from deep_research.errors import ConfigError, ResearchError
from deep_research.tools import duckduckgo_search, tavily_search


async def search(query: str, *, max_results: int | None = None) -> list[str]:
    """Ranked result URLs for ``query`` from the configured ``SEARCH_PROVIDER``."""
    provider = settings.search_provider.lower().strip()
    limit = max_results or settings.search_max_results

    try:
        if provider == "duckduckgo":
            urls = await duckduckgo_search.search(
                query,
                max_results=limit,
                timeout=settings.fetch_timeout_seconds,
            )
        elif provider == "tavily":
            urls = await tavily_search.search(query, max_results=limit)
        else:
            raise ConfigError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
    except httpx.HTTPError as exc:
        raise ResearchError(f"Search failed for {query!r} ({provider}): {exc}") from exc

    logger.debug(f"Search [{provider}] {query!r} returned {len(urls)} URLs")
    return urls
