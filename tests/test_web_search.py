import asyncio
import json
from datetime import date

import httpx
import pytest

from grounding.services.web_search import (
    NewsApiSearchProvider,
    NoopSearchProvider,
    SearchProviderError,
    SerperSearchProvider,
    TimeRange,
    build_search_provider,
)
from grounding.settings import settings


SERPER_PAYLOAD = {
    "organic": [
        {"title": "Qubits explained", "link": "https://a.example/qubits", "snippet": "What qubits are", "position": 1},
        {"title": "No link"},
    ],
    "news": [
        {"title": "Quantum milestone", "link": "https://news.example/q", "snippet": "New record", "date": "1 day ago"},
    ],
    "knowledgeGraph": {"title": "Quantum computing", "website": "https://wiki.example/qc", "description": "Field"},
}


def test_serper_request_and_parsing():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["api_key"] = request.headers["x-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=SERPER_PAYLOAD)

    provider = SerperSearchProvider("key-123", transport=httpx.MockTransport(handler))
    results = asyncio.run(provider.search("quantum", max_results=10, time_range=TimeRange.week))

    assert seen["api_key"] == "key-123"
    assert seen["body"]["num"] == 10
    assert seen["body"]["tbs"] == "qdr:w1"
    assert [result.result_type for result in results] == ["knowledge", "web", "news"]
    assert [result.relevance_score for result in results] == [1.0, 0.8, 0.9]
    assert results[2].published_at == "1 day ago"


def test_serper_omits_time_filter_for_all():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"organic": []})

    provider = SerperSearchProvider("key", transport=httpx.MockTransport(handler))
    assert asyncio.run(provider.search("quantum")) == []
    assert "tbs" not in seen["body"]


@pytest.mark.parametrize("status, fragment", [(401, "authentication"), (402, "quota"), (429, "rate limit"), (500, "HTTP 500")])
def test_serper_error_statuses(status, fragment):
    provider = SerperSearchProvider("key", transport=httpx.MockTransport(lambda request: httpx.Response(status)))

    with pytest.raises(SearchProviderError) as excinfo:
        asyncio.run(provider.search("quantum"))

    assert fragment in str(excinfo.value)


def test_serper_requires_key():
    with pytest.raises(ValueError):
        SerperSearchProvider("  ")


def test_newsapi_request_and_scores():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        articles = [
            {"title": f"Story {index}", "url": f"https://news.example/{index}", "description": "d", "source": {"name": "Wire"}}
            for index in range(12)
        ]
        return httpx.Response(200, json={"status": "ok", "articles": articles})

    provider = NewsApiSearchProvider("news-key", transport=httpx.MockTransport(handler), today=date(2024, 5, 10))
    results = asyncio.run(provider.search("quantum", max_results=12, time_range=TimeRange.week))

    assert seen["params"]["from"] == "2024-05-03"
    assert seen["params"]["apiKey"] == "news-key"
    assert results[0].relevance_score == 1.0
    assert results[3].relevance_score == 0.7
    assert results[-1].relevance_score == 0.1
    assert results[0].metadata["publisher"] == "Wire"


def test_newsapi_error_status_in_payload():
    provider = NewsApiSearchProvider(
        "key",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"status": "error", "message": "bad key"})),
    )

    with pytest.raises(SearchProviderError) as excinfo:
        asyncio.run(provider.search("quantum"))

    assert "bad key" in str(excinfo.value)


def test_build_search_provider_selection():
    serper = build_search_provider(settings.model_copy(update={"search_provider": "serper", "serper_api_key": "k"}))
    news = build_search_provider(settings.model_copy(update={"search_provider": "newsapi", "newsapi_api_key": "k"}))
    missing_key = build_search_provider(settings.model_copy(update={"search_provider": "serper", "serper_api_key": None}))
    disabled = build_search_provider(settings.model_copy(update={"search_provider": None}))

    assert isinstance(serper, SerperSearchProvider)
    assert isinstance(news, NewsApiSearchProvider)
    assert isinstance(missing_key, NoopSearchProvider)
    assert isinstance(disabled, NoopSearchProvider)
