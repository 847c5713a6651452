from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol


class TimeRange(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    year = "year"
    all = "all"


class SearchProviderError(RuntimeError):
    """Raised when the general web search provider cannot produce results."""


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str
    relevance_score: float
    published_at: Optional[str] = None
    source: str = "web"
    result_type: str = "web"
    metadata: Dict[str, Any] = field(default_factory=dict)


class GeneralSearchProvider(Protocol):
    name: str

    async def search(
        self,
        query: str,
        *,
        max_results: int = 10,
        time_range: TimeRange = TimeRange.all,
    ) -> List[SearchResult]:
        ...


class NoopSearchProvider:
    name = "noop"

    async def search(
        self,
        query: str,
        *,
        max_results: int = 10,
        time_range: TimeRange = TimeRange.all,
    ) -> List[SearchResult]:
        return []
