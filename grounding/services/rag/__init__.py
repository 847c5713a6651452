from .citations import Citation, CitationEngine, CitationMap
from .context_builder import build_context
from .orchestrator import (
    RetrievalMetadata,
    RetrievalOptions,
    RetrievalOrchestrator,
    RetrievalResult,
    SourceSummary,
    get_orchestrator,
)
from .reranker import RelevanceRanker
