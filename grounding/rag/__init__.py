from .classifier import CategoryClassifier, suggests_category_search
from .extractor import ContentMetadata, ExtractedContent, ExtractionEmpty, extract_content
from .fetcher import ContentFetcher, FetchError, is_content_relevant
from .registry import Category, SelectorHints, SourceDescriptor, SourceRegistry, build_default_registry
from .scraper import ScrapeResult, scrape_category_source, scrape_search_result
from .splitter import (
    CategoryProvenance,
    Document,
    DocumentChunk,
    DocumentChunker,
    WebProvenance,
    merge_overlapping_chunks,
)
