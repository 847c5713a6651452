from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from grounding.observability.metrics import MetricsRegistry, get_metrics_registry
from grounding.rag.classifier import CategoryClassifier, suggests_category_search
from grounding.rag.fetcher import ContentFetcher
from grounding.rag.registry import SourceDescriptor, SourceRegistry, build_default_registry
from grounding.rag.scraper import PageFetcher, ScrapeResult, scrape_category_source, scrape_search_result
from grounding.rag.splitter import (
    CategoryProvenance,
    Document,
    DocumentChunk,
    DocumentChunker,
    WebProvenance,
)
from grounding.services.web_search import (
    GeneralSearchProvider,
    SearchProviderError,
    SearchResult,
    TimeRange,
    build_search_provider,
)
from grounding.settings import Settings, settings as default_settings

from .citations import CitationEngine, CitationMap
from .context_builder import build_context
from .reranker import RelevanceRanker

logger = logging.getLogger(__name__)

QUALITY_MIN_CHARS = 300
MIN_SUCCESSFUL_SCRAPES = 2
WEB_MIN_CHARS = 100
BATCH_DEADLINE = "batch_deadline"


@dataclass
class RetrievalOptions:
    max_general_sources: int = 5
    max_category_sources_per_query: int = 3
    category_timeout: float = 10.0
    category_request_timeout: float = 8.0
    web_request_timeout: float = 6.0
    category_max_content_length: int = 15000
    web_max_content_length: int = 15000
    prefer_category_sources: bool = True
    min_relevance_score: float = 0.3
    time_range: TimeRange = TimeRange.all
    chunk_size: int = 1000
    chunk_overlap: int = 200
    min_chunk_size: int = 100
    top_k: int = 12
    max_context_chars: Optional[int] = None
    use_search_urls: bool = True

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "RetrievalOptions":
        return cls(
            max_general_sources=config.retrieval_max_general_sources,
            max_category_sources_per_query=config.retrieval_max_category_sources,
            category_timeout=config.retrieval_category_timeout,
            category_request_timeout=config.retrieval_category_request_timeout,
            web_request_timeout=config.retrieval_web_request_timeout,
            category_max_content_length=config.retrieval_category_max_content_length,
            web_max_content_length=config.retrieval_web_max_content_length,
            prefer_category_sources=config.retrieval_prefer_category_sources,
            min_relevance_score=config.retrieval_min_relevance_score,
            time_range=TimeRange(config.retrieval_time_range),
            chunk_size=config.rag_chunk_size,
            chunk_overlap=config.rag_chunk_overlap,
            min_chunk_size=config.rag_min_chunk_size,
            top_k=config.retrieval_top_k,
            max_context_chars=config.retrieval_max_context_chars,
            use_search_urls=config.category_search_urls_enabled,
        )


@dataclass
class SourceSummary:
    name: str
    url: str
    provenance: str
    ok: bool
    category: Optional[str] = None
    title: Optional[str] = None
    relevant: bool = False
    body_length: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass
class RetrievalMetadata:
    query: str
    total_sources: int = 0
    successful_scrapes: int = 0
    category_sources_used: int = 0
    web_sources_used: int = 0
    timed_out_sources: int = 0
    elapsed_ms: float = 0.0
    categories_matched: List[str] = field(default_factory=list)
    fallback_used: bool = False
    grounded: bool = False
    category_search_suggested: bool = False


@dataclass
class RetrievalResult:
    context: str
    chunks: List[DocumentChunk]
    sources: List[SourceSummary]
    category_results: List[ScrapeResult]
    web_results: List[ScrapeResult]
    metadata: RetrievalMetadata
    citations: Optional[CitationMap] = None
    formatted_citations: Optional[str] = None
    cited_text: Optional[str] = None


class RetrievalOrchestrator:
    """Category-first retrieval with a single web-search fallback.

    Source failures never escape ``retrieve``: they end up as failed
    ``ScrapeResult`` entries and in the metadata counters. Cancelling the
    caller cancels every fetch still in flight.
    """

    def __init__(
        self,
        *,
        registry: SourceRegistry | None = None,
        classifier: CategoryClassifier | None = None,
        fetcher: PageFetcher | None = None,
        search_provider: GeneralSearchProvider | None = None,
        ranker: RelevanceRanker | None = None,
        citation_engine: CitationEngine | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.registry = registry or build_default_registry()
        self.classifier = classifier or CategoryClassifier(self.registry)
        self.fetcher = fetcher or ContentFetcher()
        self.search_provider = search_provider or build_search_provider()
        self.ranker = ranker or RelevanceRanker()
        self.citation_engine = citation_engine or CitationEngine()
        self._metrics = metrics or get_metrics_registry()

    async def retrieve(self, query: str, options: RetrievalOptions | None = None) -> RetrievalResult:
        options = options or RetrievalOptions.from_settings()
        start_time = time.perf_counter()

        categories = self.classifier.classify(query)
        metadata = RetrievalMetadata(
            query=query,
            categories_matched=list(categories),
            category_search_suggested=suggests_category_search(query),
        )
        logger.info(
            "grounding.orchestrator.start",
            extra={"query": query, "categories": categories, "prefer_category": options.prefer_category_sources},
        )

        category_results: List[ScrapeResult] = []
        if categories and options.prefer_category_sources:
            category_results, metadata.timed_out_sources = await self._scrape_categories(query, categories, options)

        successful = [result for result in category_results if result.ok and result.body_length() > QUALITY_MIN_CHARS]
        web_results: List[ScrapeResult] = []
        if len(successful) < MIN_SUCCESSFUL_SCRAPES:
            metadata.fallback_used = True
            logger.info(
                "grounding.orchestrator.fallback",
                extra={"query": query, "successful_category_scrapes": len(successful)},
            )
            web_results = await self._search_web(query, options)

        category_documents = _category_documents(successful, categories[0] if categories else None)
        web_documents = _web_documents(web_results)
        documents = category_documents + web_documents

        chunker = DocumentChunker(
            chunk_size=options.chunk_size,
            overlap=options.chunk_overlap,
            min_chunk_size=options.min_chunk_size,
        )
        ranked = self.ranker.rank(chunker.chunk_documents(documents), query)
        context, selected = build_context(ranked[: options.top_k], max_chars=options.max_context_chars)

        all_results = category_results + web_results
        metadata.total_sources = len(all_results)
        metadata.successful_scrapes = sum(1 for result in all_results if result.ok)
        metadata.category_sources_used = len(category_documents)
        metadata.web_sources_used = len(web_documents)
        metadata.grounded = bool(context)
        metadata.elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)

        self._record_metrics(metadata, all_results)
        logger.info(
            "grounding.orchestrator.completed",
            extra={
                "query": query,
                "fallback_used": metadata.fallback_used,
                "documents": len(documents),
                "chunks": len(selected),
                "timed_out_sources": metadata.timed_out_sources,
                "latency_ms": metadata.elapsed_ms,
            },
        )

        return RetrievalResult(
            context=context,
            chunks=selected,
            sources=[_summarise(result, self.registry, categories) for result in all_results],
            category_results=category_results,
            web_results=web_results,
            metadata=metadata,
        )

    def attach_citations(self, result: RetrievalResult, generated_text: str) -> RetrievalResult:
        citations = self.citation_engine.generate_citations(result.chunks, generated_text)
        return replace(
            result,
            citations=citations,
            formatted_citations=self.citation_engine.format_citations(citations, result.chunks),
            cited_text=self.citation_engine.generate_inline_citations(generated_text, result.chunks),
        )

    async def _scrape_categories(
        self,
        query: str,
        categories: Sequence[str],
        options: RetrievalOptions,
    ) -> Tuple[List[ScrapeResult], int]:
        sources = self.registry.sources_for(categories)[: options.max_category_sources_per_query]
        if not sources:
            return [], 0

        tasks = [
            asyncio.ensure_future(
                scrape_category_source(
                    self.fetcher,
                    source,
                    query,
                    timeout=options.category_request_timeout,
                    max_content_length=options.category_max_content_length,
                    use_search_urls=options.use_search_urls,
                )
            )
            for source in sources
        ]
        try:
            done, _ = await asyncio.wait(tasks, timeout=options.category_timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        results: List[ScrapeResult] = []
        timed_out = 0
        for source, task in zip(sources, tasks):
            if task in done:
                results.append(task.result())
                continue
            timed_out += 1
            results.append(_deadline_failure(source, options.category_timeout))

        logger.info(
            "grounding.orchestrator.category_batch",
            extra={
                "sources": len(sources),
                "succeeded": sum(1 for result in results if result.ok),
                "timed_out": timed_out,
            },
        )
        return results, timed_out

    async def _search_web(self, query: str, options: RetrievalOptions) -> List[ScrapeResult]:
        try:
            found = await self.search_provider.search(
                query,
                max_results=options.max_general_sources * 2,
                time_range=options.time_range,
            )
        except SearchProviderError as exc:
            logger.warning(
                "grounding.orchestrator.search_failed",
                extra={"provider": getattr(self.search_provider, "name", "unknown"), "error": str(exc)},
            )
            self._metrics.increment_fetch_failure("search_provider")
            return []

        candidates = [result for result in found if result.relevance_score >= options.min_relevance_score]
        candidates = candidates[: options.max_general_sources]
        if not candidates:
            return []

        scraped = await asyncio.gather(
            *(
                scrape_search_result(
                    self.fetcher,
                    result,
                    query,
                    timeout=options.web_request_timeout,
                    max_content_length=options.web_max_content_length,
                )
                for result in candidates
            )
        )
        return list(scraped)

    def _record_metrics(self, metadata: RetrievalMetadata, results: Sequence[ScrapeResult]) -> None:
        self._metrics.increment_retrieval("fallback" if metadata.fallback_used else "category")
        for result in results:
            if result.error_kind:
                self._metrics.increment_fetch_failure(result.error_kind)
        if not metadata.grounded:
            self._metrics.increment_ungrounded()


def _deadline_failure(source: SourceDescriptor, timeout: float) -> ScrapeResult:
    return ScrapeResult(
        source=source,
        error=f"{source.url}: category batch deadline of {timeout:g}s exceeded",
        error_kind=BATCH_DEADLINE,
    )


def _category_documents(results: Sequence[ScrapeResult], primary_category: Optional[str]) -> List[Document]:
    if primary_category is None:
        return []
    documents: List[Document] = []
    for result in results:
        if result.content is None:
            continue
        documents.append(
            Document(
                text=result.content.body,
                url=result.url,
                provenance=CategoryProvenance(primary_category),
                title=result.content.title,
                source_name=result.source.name,
                scraped_at=result.scraped_at,
            )
        )
    return documents


def _web_documents(results: Sequence[ScrapeResult]) -> List[Document]:
    documents: List[Document] = []
    for result in results:
        if result.content is None or len(result.content.body) <= WEB_MIN_CHARS:
            continue
        search_result = result.source
        title = result.content.title
        if isinstance(search_result, SearchResult) and (not title or title == "Untitled"):
            title = search_result.title or title
        documents.append(
            Document(
                text=result.content.body,
                url=result.url,
                provenance=WebProvenance(),
                title=title,
                source_name=urlparse(result.url).netloc or None,
                scraped_at=result.scraped_at,
            )
        )
    return documents


def _summarise(result: ScrapeResult, registry: SourceRegistry, categories: Sequence[str]) -> SourceSummary:
    source = result.source
    if isinstance(source, SourceDescriptor):
        name = source.name
        provenance = "category"
        category = _category_of(source, registry, categories)
    else:
        name = source.title or urlparse(source.url).netloc
        provenance = "web"
        category = None
    return SourceSummary(
        name=name,
        url=result.url,
        provenance=provenance,
        ok=result.ok,
        category=category,
        title=result.content.title if result.content is not None else None,
        relevant=result.relevant,
        body_length=result.body_length(),
        error=result.error,
        error_kind=result.error_kind,
    )


def _category_of(source: SourceDescriptor, registry: SourceRegistry, categories: Sequence[str]) -> Optional[str]:
    for name in categories:
        category = registry.get(name)
        if category is not None and source in category.sources:
            return name
    return None


_orchestrator: RetrievalOrchestrator | None = None


def get_orchestrator() -> RetrievalOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RetrievalOrchestrator()
    return _orchestrator
