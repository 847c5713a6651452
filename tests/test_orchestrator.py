import asyncio
from typing import Dict, List, Optional

import httpx
import pytest

from grounding.observability.metrics import MetricsRegistry
from grounding.rag.extractor import ExtractedContent
from grounding.rag.fetcher import ContentFetcher, FetchBadStatus, FetchError
from grounding.rag.registry import Category, SourceDescriptor, SourceRegistry
from grounding.services.rag.orchestrator import RetrievalOptions, RetrievalOrchestrator
from grounding.services.web_search import SearchProviderError, SearchResult, TimeRange

QUANTUM_BODY = "Quantum computing research advances quickly as labs scale up qubits. " * 10

SOURCES = (
    SourceDescriptor(name="First", url="https://first.example", priority=9),
    SourceDescriptor(name="Second", url="https://second.example", priority=8),
    SourceDescriptor(name="Third", url="https://third.example", priority=7),
)


def _registry() -> SourceRegistry:
    return SourceRegistry(
        [Category(name="science", description="Science", keywords=("quantum",), sources=SOURCES)]
    )


def _page(title: str, body: str = QUANTUM_BODY) -> ExtractedContent:
    return ExtractedContent(title=title, body=body)


class StubFetcher:
    def __init__(
        self,
        pages: Dict[str, object],
        *,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.pages = pages
        self.delays = delays or {}
        self.calls: List[str] = []
        self.cancelled: List[str] = []

    async def fetch(self, url, *, timeout, max_content_length, selectors=None):
        self.calls.append(url)
        delay = self.delays.get(url)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(url)
                raise
        page = self.pages.get(url)
        if isinstance(page, FetchError):
            raise page
        if page is None:
            raise FetchBadStatus(url, 404)
        return page


class StubSearch:
    name = "stub"

    def __init__(self, results: Optional[List[SearchResult]] = None, error: Optional[Exception] = None) -> None:
        self.results = results or []
        self.error = error
        self.calls: List[dict] = []

    async def search(self, query, *, max_results=10, time_range=TimeRange.all):
        self.calls.append({"query": query, "max_results": max_results, "time_range": time_range})
        if self.error is not None:
            raise self.error
        return list(self.results)


def _orchestrator(fetcher, search=None, metrics=None) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(
        registry=_registry(),
        fetcher=fetcher,
        search_provider=search or StubSearch(),
        metrics=metrics or MetricsRegistry(),
    )


def _options(**overrides) -> RetrievalOptions:
    return RetrievalOptions(**overrides)


def test_enough_category_sources_skip_fallback():
    fetcher = StubFetcher(
        {
            "https://first.example": _page("First page"),
            "https://second.example": _page("Second page"),
            "https://third.example": _page("Third page"),
        }
    )
    search = StubSearch()

    result = asyncio.run(_orchestrator(fetcher, search).retrieve("quantum computing", _options()))

    assert search.calls == []
    assert result.metadata.fallback_used is False
    assert result.metadata.grounded is True
    assert result.metadata.categories_matched == ["science"]
    assert result.metadata.category_sources_used == 3
    assert result.metadata.web_sources_used == 0
    assert result.citations is None
    assert result.context.startswith("[Category source 1:")
    assert all(chunk.category == "science" for chunk in result.chunks)
    assert [source.name for source in result.sources] == ["First", "Second", "Third"]
    assert all(source.category == "science" for source in result.sources)


def test_category_sources_capped_by_priority():
    fetcher = StubFetcher({source.url: _page(source.name) for source in SOURCES})

    result = asyncio.run(
        _orchestrator(fetcher).retrieve("quantum computing", _options(max_category_sources_per_query=2))
    )

    assert sorted(fetcher.calls) == ["https://first.example", "https://second.example"]
    assert result.metadata.total_sources == 2


def test_batch_deadline_records_unfinished_sources():
    fetcher = StubFetcher(
        {source.url: _page(source.name) for source in SOURCES},
        delays={"https://second.example": 5.0},
    )
    search = StubSearch()

    result = asyncio.run(
        _orchestrator(fetcher, search).retrieve("quantum computing", _options(category_timeout=0.1))
    )

    assert result.metadata.timed_out_sources == 1
    assert [item.source.name for item in result.category_results] == ["First", "Second", "Third"]
    assert result.category_results[1].error_kind == "batch_deadline"
    assert result.metadata.fallback_used is False
    assert search.calls == []
    assert fetcher.cancelled == ["https://second.example"]


def test_single_success_triggers_one_fallback_search():
    web_page = "https://web.example/quantum"
    fetcher = StubFetcher(
        {
            "https://first.example": _page("First page"),
            "https://second.example": _page("Thin", body="Too short."),
            web_page: _page("Web page"),
        }
    )
    search = StubSearch(
        [
            SearchResult(title="Good", url=web_page, snippet="", relevance_score=0.9),
            SearchResult(title="Weak", url="https://weak.example", snippet="", relevance_score=0.1),
        ]
    )

    result = asyncio.run(
        _orchestrator(fetcher, search).retrieve("quantum computing", _options(time_range=TimeRange.month))
    )

    assert len(search.calls) == 1
    assert search.calls[0]["max_results"] == 10
    assert search.calls[0]["time_range"] == TimeRange.month
    assert "https://weak.example" not in fetcher.calls
    assert result.metadata.fallback_used is True
    assert result.metadata.web_sources_used == 1
    assert result.metadata.successful_scrapes == 3
    assert any(chunk.provenance.kind == "web" for chunk in result.chunks)
    assert [source.provenance for source in result.sources] == ["category", "category", "category", "web"]


def test_no_category_match_goes_straight_to_search():
    web_page = "https://web.example/bread"
    fetcher = StubFetcher({web_page: _page("Bread", body="Sourdough bread needs a lively starter and time. " * 10)})
    search = StubSearch([SearchResult(title="Bread", url=web_page, snippet="", relevance_score=0.8)])

    result = asyncio.run(_orchestrator(fetcher, search).retrieve("sourdough bread", _options()))

    assert result.metadata.categories_matched == []
    assert result.category_results == []
    assert result.metadata.fallback_used is True
    assert result.context.startswith("[Web source 1: Bread]")


def test_prefer_category_sources_off_skips_category_fetches():
    fetcher = StubFetcher({source.url: _page(source.name) for source in SOURCES})
    search = StubSearch()

    result = asyncio.run(
        _orchestrator(fetcher, search).retrieve("quantum computing", _options(prefer_category_sources=False))
    )

    assert fetcher.calls == []
    assert result.metadata.fallback_used is True
    assert len(search.calls) == 1


def test_short_web_bodies_are_dropped():
    web_page = "https://web.example/short"
    fetcher = StubFetcher({web_page: _page("Short", body="Tiny page about bread.")})
    search = StubSearch([SearchResult(title="Short", url=web_page, snippet="", relevance_score=0.8)])

    result = asyncio.run(_orchestrator(fetcher, search).retrieve("sourdough bread", _options()))

    assert result.metadata.web_sources_used == 0
    assert result.metadata.successful_scrapes == 1


def test_total_failure_returns_ungrounded_result():
    metrics = MetricsRegistry()
    fetcher = StubFetcher({})
    search = StubSearch(error=SearchProviderError("quota exceeded"))

    result = asyncio.run(_orchestrator(fetcher, search, metrics).retrieve("quantum computing", _options()))

    assert result.context == ""
    assert result.chunks == []
    assert result.metadata.grounded is False
    assert result.metadata.fallback_used is True
    assert all(not source.ok for source in result.sources)
    snapshot = metrics.snapshot()
    assert snapshot["ungrounded_total"] == 1
    assert snapshot["retrievals"] == {"fallback": 1}
    assert snapshot["fetch_failures"]["bad_status"] == 3
    assert snapshot["fetch_failures"]["search_provider"] == 1


def test_caller_cancellation_cancels_in_flight_fetches():
    fetcher = StubFetcher(
        {source.url: _page(source.name) for source in SOURCES},
        delays={source.url: 5.0 for source in SOURCES},
    )
    orchestrator = _orchestrator(fetcher)

    async def scenario():
        task = asyncio.ensure_future(orchestrator.retrieve("quantum computing", _options()))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert sorted(fetcher.cancelled) == sorted(source.url for source in SOURCES)


def test_attach_citations_second_pass():
    fetcher = StubFetcher({source.url: _page(source.name) for source in SOURCES})
    orchestrator = _orchestrator(fetcher)
    result = asyncio.run(orchestrator.retrieve("quantum computing", _options()))

    cited = orchestrator.attach_citations(result, "Quantum computing research advances quickly.")

    assert result.citations is None
    assert cited.citations and 0 in cited.citations
    assert cited.formatted_citations.startswith("\n\n**Sources:**\n[1] ")
    assert cited.cited_text.endswith(".")
    assert cited.context == result.context


def test_options_from_settings(monkeypatch):
    from grounding.settings import settings

    monkeypatch.setattr(settings, "retrieval_top_k", 4)
    monkeypatch.setattr(settings, "retrieval_time_range", "week")
    monkeypatch.setattr(settings, "category_search_urls_enabled", False)

    options = RetrievalOptions.from_settings()

    assert options.top_k == 4
    assert options.time_range is TimeRange.week
    assert options.use_search_urls is False
    assert options.category_timeout == settings.retrieval_category_timeout


def test_thin_category_pages_are_not_chunked():
    thin_body = "Quantum computing notes. " * 8
    web_page = "https://web.example/quantum"
    fetcher = StubFetcher(
        {
            "https://first.example": _page("Thin", body=thin_body),
            web_page: _page("Web page"),
        }
    )
    search = StubSearch([SearchResult(title="Web", url=web_page, snippet="", relevance_score=0.9)])

    result = asyncio.run(_orchestrator(fetcher, search).retrieve("quantum computing", _options()))

    assert 100 < len(thin_body) <= 300
    assert result.metadata.fallback_used is True
    assert result.metadata.category_sources_used == 0
    assert result.metadata.web_sources_used == 1
    assert {chunk.url for chunk in result.chunks} == {web_page}
    assert result.category_results[0].ok


def test_malformed_search_url_does_not_escape_retrieve():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    metrics = MetricsRegistry()
    search = StubSearch([SearchResult(title="Broken", url="http://[::1", snippet="", relevance_score=0.9)])
    orchestrator = _orchestrator(ContentFetcher(transport=httpx.MockTransport(handler)), search, metrics)

    result = asyncio.run(orchestrator.retrieve("xqzplk fhjwo", _options()))

    assert result.metadata.grounded is False
    assert [item.error_kind for item in result.web_results] == ["invalid_url"]
    assert metrics.snapshot()["fetch_failures"]["invalid_url"] == 1


def test_retrieved_chunks_keep_chunker_numbering():
    long_body = "Quantum computing research advances quickly as labs scale up qubits. " * 40
    fetcher = StubFetcher({source.url: _page(source.name, body=long_body) for source in SOURCES})

    result = asyncio.run(_orchestrator(fetcher).retrieve("quantum computing", _options(top_k=100)))

    first_chunks = [chunk for chunk in result.chunks if chunk.url == "https://first.example"]
    assert len(first_chunks) >= 3
    assert sorted(chunk.chunk_index for chunk in first_chunks) == list(range(first_chunks[0].total_chunks))
    assert all(chunk.text in long_body for chunk in first_chunks)
