from __future__ import annotations

import logging
import re
from typing import List, Tuple

from .registry import SourceRegistry

logger = logging.getLogger(__name__)

_CATEGORY_INDICATORS = (
    re.compile(r"\b(latest|recent|current|new|breakthrough|development)\b", re.IGNORECASE),
    re.compile(r"\b(research|study|paper|publication|journal)\b", re.IGNORECASE),
    re.compile(r"\b(technology|tech|ai|artificial intelligence|machine learning)\b", re.IGNORECASE),
    re.compile(r"\b(biology|medical|health|drug|treatment|disease)\b", re.IGNORECASE),
    re.compile(r"\b(environment|climate|sustainability|renewable)\b", re.IGNORECASE),
    re.compile(r"\b(startup|funding|investment|venture|business)\b", re.IGNORECASE),
    re.compile(r"\b(science|scientific|discovery|experiment)\b", re.IGNORECASE),
)


class CategoryClassifier:
    def __init__(self, registry: SourceRegistry, *, limit: int = 2) -> None:
        self._registry = registry
        self._limit = limit

    def scores(self, query: str) -> List[Tuple[str, int]]:
        """Non-zero keyword scores per category, best first, ties in registry order."""
        lowered = query.lower()
        scored: List[Tuple[str, int]] = []
        for category in self._registry.categories():
            score = 0
            for keyword in category.keywords:
                if keyword.lower() in lowered:
                    score += 2 if len(keyword) > 3 else 1
            if score > 0:
                scored.append((category.name, score))

        scored.sort(key=lambda item: item[1], reverse=True)
        return scored

    def classify(self, query: str) -> List[str]:
        matched = [name for name, _ in self.scores(query)[: self._limit]]
        logger.info("grounding.classifier.results", extra={"query": query, "categories": matched})
        return matched


def suggests_category_search(query: str) -> bool:
    return any(pattern.search(query) for pattern in _CATEGORY_INDICATORS)
