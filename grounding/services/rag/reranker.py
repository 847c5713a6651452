from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Sequence

from grounding.rag.splitter import CategoryProvenance, DocumentChunk
from grounding.utils.text import query_terms

logger = logging.getLogger(__name__)


class RelevanceRanker:
    def __init__(self, *, category_boost: float = 1.3, title_boost: float = 2.0) -> None:
        self.category_boost = category_boost
        self.title_boost = title_boost

    def rank(self, chunks: Iterable[DocumentChunk], query: str) -> List[DocumentChunk]:
        terms = query_terms(query)
        scored = [replace(chunk, relevance_score=self.score(chunk, terms)) for chunk in chunks]
        scored.sort(key=lambda chunk: chunk.relevance_score or 0.0, reverse=True)
        logger.info(
            "grounding.reranker.results",
            extra={
                "query": query,
                "count": len(scored),
                "top_score": scored[0].relevance_score if scored else 0.0,
            },
        )
        return scored

    def score(self, chunk: DocumentChunk, terms: Sequence[str]) -> float:
        if not chunk.text:
            return 0.0

        lowered = chunk.text.lower()
        score = 0.0
        for term in terms:
            score += lowered.count(term) * (len(term) / 10)

        if isinstance(chunk.provenance, CategoryProvenance):
            score *= self.category_boost

        if chunk.title:
            lowered_title = chunk.title.lower()
            score += self.title_boost * sum(1 for term in terms if term in lowered_title)

        return score / (len(chunk.text) / 1000)
