from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .client import SearchProviderError, SearchResult, TimeRange

logger = logging.getLogger(__name__)

_TIME_RANGE_FILTERS = {
    TimeRange.day: "qdr:d1",
    TimeRange.week: "qdr:w1",
    TimeRange.month: "qdr:m1",
    TimeRange.year: "qdr:y1",
}


class SerperSearchProvider:
    """Google results through the Serper API."""

    name = "serper"
    base_url = "https://google.serper.dev/search"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10.0,
        region: str = "us",
        language: str = "en",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("A Serper API key is required.")
        self._api_key = api_key.strip()
        self._timeout = timeout
        self._region = region
        self._language = language
        self._transport = transport

    async def search(
        self,
        query: str,
        *,
        max_results: int = 10,
        time_range: TimeRange = TimeRange.all,
    ) -> List[SearchResult]:
        payload: Dict[str, Any] = {
            "q": query,
            "num": max_results,
            "gl": self._region,
            "hl": self._language,
        }
        time_filter = _TIME_RANGE_FILTERS.get(TimeRange(time_range))
        if time_filter:
            payload["tbs"] = time_filter

        headers = {"X-API-KEY": self._api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self.base_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("grounding.search.serper.request_error", extra={"error": str(exc)})
            raise SearchProviderError(f"Serper request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise SearchProviderError(f"Serper authentication failed ({response.status_code}); check the API key.")
        if response.status_code == 402:
            raise SearchProviderError("Serper quota exceeded; check billing.")
        if response.status_code == 429:
            raise SearchProviderError("Serper rate limit exceeded; try again later.")
        if not response.is_success:
            raise SearchProviderError(f"Serper error: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchProviderError("Serper returned an invalid JSON payload.") from exc

        results = _parse_results(data if isinstance(data, dict) else {})
        logger.info("grounding.search.serper.results", extra={"query": query, "count": len(results)})
        return results


def _parse_results(data: Dict[str, Any]) -> List[SearchResult]:
    results: List[SearchResult] = []

    for item in data.get("organic") or []:
        if not item.get("link"):
            continue
        results.append(
            SearchResult(
                title=item.get("title", ""),
                url=item["link"],
                snippet=item.get("snippet", ""),
                relevance_score=0.8,
                source="serper",
                result_type="web",
                metadata={"position": item.get("position"), "display_link": item.get("displayLink")},
            )
        )

    for item in data.get("news") or []:
        if not item.get("link"):
            continue
        results.append(
            SearchResult(
                title=item.get("title", ""),
                url=item["link"],
                snippet=item.get("snippet", ""),
                relevance_score=0.9,
                published_at=item.get("date"),
                source="serper",
                result_type="news",
                metadata={"publisher": item.get("source")},
            )
        )

    graph = data.get("knowledgeGraph")
    if graph:
        url = graph.get("website") or graph.get("descriptionLink") or ""
        if url:
            results.insert(
                0,
                SearchResult(
                    title=graph.get("title", ""),
                    url=url,
                    snippet=graph.get("description", ""),
                    relevance_score=1.0,
                    source="serper",
                    result_type="knowledge",
                    metadata={"type": graph.get("type")},
                ),
            )

    return results
