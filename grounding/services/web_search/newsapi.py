from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from .client import SearchProviderError, SearchResult, TimeRange

logger = logging.getLogger(__name__)

_TIME_RANGE_DAYS = {
    TimeRange.day: 1,
    TimeRange.week: 7,
    TimeRange.month: 30,
    TimeRange.year: 365,
}


class NewsApiSearchProvider:
    name = "newsapi"
    base_url = "https://newsapi.org/v2/everything"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10.0,
        language: str = "en",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Optional[date] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("A NewsAPI key is required.")
        self._api_key = api_key.strip()
        self._timeout = timeout
        self._language = language
        self._transport = transport
        self._today = today

    async def search(
        self,
        query: str,
        *,
        max_results: int = 10,
        time_range: TimeRange = TimeRange.all,
    ) -> List[SearchResult]:
        params: Dict[str, Any] = {
            "q": query,
            "apiKey": self._api_key,
            "pageSize": max_results,
            "language": self._language,
            "sortBy": "relevancy",
        }
        days = _TIME_RANGE_DAYS.get(TimeRange(time_range))
        if days:
            since = (self._today or date.today()) - timedelta(days=days)
            params["from"] = since.isoformat()

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            logger.error("grounding.search.newsapi.request_error", extra={"error": str(exc)})
            raise SearchProviderError(f"NewsAPI request failed: {exc}") from exc

        if not response.is_success:
            raise SearchProviderError(f"NewsAPI error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchProviderError("NewsAPI returned an invalid JSON payload.") from exc
        if data.get("status") != "ok":
            raise SearchProviderError(f"NewsAPI error: {data.get('message', 'unknown error')}")

        results: List[SearchResult] = []
        for index, article in enumerate(data.get("articles") or []):
            if not article.get("url"):
                continue
            results.append(
                SearchResult(
                    title=article.get("title") or "",
                    url=article["url"],
                    snippet=article.get("description") or "",
                    relevance_score=max(0.1, round(1 - index * 0.1, 2)),
                    published_at=article.get("publishedAt"),
                    source="newsapi",
                    result_type="news",
                    metadata={
                        "author": article.get("author"),
                        "publisher": (article.get("source") or {}).get("name"),
                    },
                )
            )

        logger.info("grounding.search.newsapi.results", extra={"query": query, "count": len(results)})
        return results
