"""Text helpers shared by the fetch, ranking and citation stages."""

from __future__ import annotations

import re
from typing import List

_WHITESPACE_RE = re.compile(r"\s+")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def query_terms(query: str, *, min_length: int = 3) -> List[str]:
    """Lowercase whitespace tokens of ``query`` at least ``min_length`` long."""

    return [term for term in query.lower().split() if len(term) >= min_length]


def collapse_whitespace(text: str) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalise_paragraphs(text: str) -> str:
    """Collapse whitespace inside paragraphs and keep one blank line between them."""

    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = (collapse_whitespace(part) for part in _PARAGRAPH_BREAK_RE.split(text))
    return "\n\n".join(part for part in paragraphs if part)
