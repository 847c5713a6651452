from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Union

from grounding.services.web_search.client import SearchResult

from .extractor import ExtractedContent
from .fetcher import FetchError, is_content_relevant
from .registry import SelectorHints, SourceDescriptor, search_url_for

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_KIND = "unexpected"


class PageFetcher(Protocol):
    async def fetch(
        self,
        url: str,
        *,
        timeout: float,
        max_content_length: int,
        selectors: Optional[SelectorHints] = None,
    ) -> ExtractedContent:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScrapeResult:
    source: Union[SourceDescriptor, SearchResult]
    content: Optional[ExtractedContent] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    relevant: bool = False
    fetched_url: Optional[str] = None
    scraped_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if (self.content is None) == (self.error is None):
            raise ValueError("a scrape result carries either content or an error")

    @property
    def ok(self) -> bool:
        return self.content is not None

    @property
    def url(self) -> str:
        return self.fetched_url or self.source.url

    def body_length(self) -> int:
        return len(self.content.body) if self.content is not None else 0

    @classmethod
    def failure(cls, source: Union[SourceDescriptor, SearchResult], exc: Exception) -> "ScrapeResult":
        return cls(
            source=source,
            error=str(exc) or exc.__class__.__name__,
            error_kind=getattr(exc, "kind", UNEXPECTED_ERROR_KIND),
        )


async def scrape_category_source(
    fetcher: PageFetcher,
    source: SourceDescriptor,
    query: str,
    *,
    timeout: float,
    max_content_length: int,
    use_search_urls: bool = True,
) -> ScrapeResult:
    """Main page first; the site's search page when the main page misses the query.

    Content is kept even when neither page passes the relevance check, with
    ``relevant`` left False.
    """
    try:
        main = await fetcher.fetch(
            source.url,
            timeout=timeout,
            max_content_length=max_content_length,
            selectors=source.selectors,
        )
    except FetchError as exc:
        logger.warning(
            "grounding.scraper.failed",
            extra={"source": source.name, "url": source.url, "kind": exc.kind, "error": str(exc)},
        )
        return ScrapeResult.failure(source, exc)
    except Exception as exc:
        logger.exception("grounding.scraper.unexpected_error", extra={"source": source.name, "url": source.url})
        return ScrapeResult.failure(source, exc)

    if is_content_relevant(main.body, query):
        return ScrapeResult(source=source, content=main, relevant=True, fetched_url=source.url)

    search_url = search_url_for(source, query) if use_search_urls else None
    if search_url and search_url != source.url:
        try:
            found = await fetcher.fetch(
                search_url,
                timeout=timeout,
                max_content_length=max_content_length,
                selectors=source.selectors,
            )
        except Exception as exc:
            logger.info(
                "grounding.scraper.search_page_failed",
                extra={"source": source.name, "url": search_url, "kind": getattr(exc, "kind", UNEXPECTED_ERROR_KIND)},
            )
        else:
            if is_content_relevant(found.body, query):
                return ScrapeResult(source=source, content=found, relevant=True, fetched_url=search_url)

    return ScrapeResult(source=source, content=main, relevant=False, fetched_url=source.url)


async def scrape_search_result(
    fetcher: PageFetcher,
    result: SearchResult,
    query: str,
    *,
    timeout: float,
    max_content_length: int,
) -> ScrapeResult:
    try:
        content = await fetcher.fetch(result.url, timeout=timeout, max_content_length=max_content_length)
    except FetchError as exc:
        logger.warning(
            "grounding.scraper.failed",
            extra={"source": result.source, "url": result.url, "kind": exc.kind, "error": str(exc)},
        )
        return ScrapeResult.failure(result, exc)
    except Exception as exc:
        logger.exception(
            "grounding.scraper.unexpected_error", extra={"source": result.source, "url": result.url}
        )
        return ScrapeResult.failure(result, exc)
    return ScrapeResult(
        source=result,
        content=content,
        relevant=is_content_relevant(content.body, query),
        fetched_url=result.url,
    )
