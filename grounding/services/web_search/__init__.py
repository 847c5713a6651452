from grounding.settings import Settings, settings as default_settings

from .client import GeneralSearchProvider, NoopSearchProvider, SearchProviderError, SearchResult, TimeRange
from .newsapi import NewsApiSearchProvider
from .serper import SerperSearchProvider


def build_search_provider(config: Settings = default_settings) -> GeneralSearchProvider:
    provider = (config.search_provider or "").strip().lower()
    if provider == "serper" and config.serper_api_key:
        return SerperSearchProvider(
            config.serper_api_key,
            timeout=config.search_timeout,
            region=config.search_region,
            language=config.search_language,
        )
    if provider == "newsapi" and config.newsapi_api_key:
        return NewsApiSearchProvider(
            config.newsapi_api_key,
            timeout=config.search_timeout,
            language=config.search_language,
        )
    return NoopSearchProvider()


__all__ = [
    "GeneralSearchProvider",
    "NewsApiSearchProvider",
    "NoopSearchProvider",
    "SearchProviderError",
    "SearchResult",
    "SerperSearchProvider",
    "TimeRange",
    "build_search_provider",
]
