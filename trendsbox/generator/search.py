"""Web search collaborator backed by the Tavily REST API."""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from trendsbox.core.logging import get_logger
from .errors import SearchError
from .models import SearchResult

logger = get_logger(__name__)


class SearchProvider(ABC):
    """Abstract base class for search collaborators."""

    @abstractmethod
    async def search(
        self,
        query: str,
        include_domains: List[str],
        max_results: int,
        search_depth: str = "advanced",
    ) -> List[SearchResult]:
        """
        Run one search.

        Returns hits in the provider's relevance order. Raises SearchError on
        any failure.
        """
        pass


class TavilySearchClient(SearchProvider):
    """Tavily search over a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "https://api.tavily.com"):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def search(
        self,
        query: str,
        include_domains: List[str],
        max_results: int,
        search_depth: str = "advanced",
    ) -> List[SearchResult]:
        payload = {
            "query": query,
            "search_depth": search_depth,
            "topic": "news",
            "max_results": max_results,
            "include_domains": include_domains,
            "include_answer": False,
        }
        logger.info(f"Searching Tavily: '{query[:80]}' (max {max_results}, {len(include_domains)} domains)")

        try:
            response = await self.client.post(
                f"{self.base_url}/search",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise SearchError(f"Tavily request failed: {e}") from e
        except ValueError as e:
            raise SearchError(f"Tavily returned invalid JSON: {e}") from e

        raw_results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(raw_results, list):
            raise SearchError("Tavily response has no results list")

        results = []
        for item in raw_results:
            if not isinstance(item, dict) or not item.get("url"):
                continue
            results.append(SearchResult(
                title=str(item.get("title") or ""),
                url=str(item["url"]),
                content=str(item.get("content") or ""),
            ))

        logger.info(f"Tavily returned {len(results)} results")
        return results[:max_results]


def create_search_provider(client: httpx.AsyncClient, api_key: str, base_url: str) -> Optional[SearchProvider]:
    """Tavily client when a key is configured, otherwise None (search disabled)."""
    if not api_key:
        logger.warning("TAVILY_API_KEY not set, latest-news search disabled")
        return None
    return TavilySearchClient(client, api_key, base_url)
