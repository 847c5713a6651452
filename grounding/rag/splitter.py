from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union


@dataclass(frozen=True)
class CategoryProvenance:
    category: str
    kind: str = "category"


@dataclass(frozen=True)
class WebProvenance:
    kind: str = "web"


DocumentProvenance = Union[CategoryProvenance, WebProvenance]


@dataclass(frozen=True)
class Document:
    text: str
    url: str
    provenance: DocumentProvenance
    title: Optional[str] = None
    source_name: Optional[str] = None
    scraped_at: Optional[datetime] = None

    @property
    def category(self) -> Optional[str]:
        if isinstance(self.provenance, CategoryProvenance):
            return self.provenance.category
        return None


@dataclass(frozen=True)
class DocumentChunk:
    id: str
    text: str
    start_offset: int
    end_offset: int
    chunk_index: int
    total_chunks: int
    url: str
    provenance: DocumentProvenance
    title: Optional[str] = None
    source_name: Optional[str] = None
    scraped_at: Optional[datetime] = None
    relevance_score: Optional[float] = None

    @property
    def category(self) -> Optional[str]:
        if isinstance(self.provenance, CategoryProvenance):
            return self.provenance.category
        return None


_SENTENCE_END_RE = re.compile(r"[.!?]+\s")


class DocumentChunker:
    """Splits text into overlapping chunks that prefer to end on a sentence."""

    def __init__(self, *, chunk_size: int = 1000, overlap: int = 200, min_chunk_size: int = 100) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0:
            raise ValueError("overlap must not be negative")
        if overlap >= chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_chunk_size = min_chunk_size

    def chunk(self, text: str, source_id: str) -> List[DocumentChunk]:
        return self.chunk_document(Document(text=text, url=source_id, provenance=WebProvenance()))

    def chunk_document(self, document: Document) -> List[DocumentChunk]:
        windows = self._windows(document.text)
        return [
            DocumentChunk(
                id=f"{document.url}-chunk-{index}",
                text=chunk_text,
                start_offset=start,
                end_offset=end,
                chunk_index=index,
                total_chunks=len(windows),
                url=document.url,
                provenance=document.provenance,
                title=document.title,
                source_name=document.source_name,
                scraped_at=document.scraped_at,
            )
            for index, (chunk_text, start, end) in enumerate(windows)
        ]

    def chunk_documents(self, documents: Iterable[Document]) -> List[DocumentChunk]:
        chunks: List[DocumentChunk] = []
        for document in documents:
            chunks.extend(self.chunk_document(document))
        return chunks

    def _windows(self, text: str) -> List[Tuple[str, int, int]]:
        if not text or len(text.strip()) < self.min_chunk_size:
            return []

        windows: List[Tuple[str, int, int]] = []
        position = 0
        length = len(text)

        while position < length:
            window_end = min(position + self.chunk_size, length)
            window = text[position:window_end]
            is_final = window_end >= length

            if not is_final:
                cut = _find_sentence_end(window)
                if cut > self.min_chunk_size and cut > self.overlap:
                    window = window[:cut]

            trimmed = window.strip()
            if len(trimmed) >= self.min_chunk_size or is_final:
                if trimmed:
                    windows.append((trimmed, position, position + len(window)))

            if is_final:
                break
            position += max(len(window) - self.overlap, 1)

        return windows


def _find_sentence_end(window: str) -> int:
    last_end = 0
    for match in _SENTENCE_END_RE.finditer(window):
        last_end = match.end()
    if last_end:
        return last_end

    paragraph_break = window.rfind("\n\n")
    if paragraph_break > 0:
        return paragraph_break + 2

    period = window.rfind(".")
    if period > len(window) * 0.5:
        return period + 1

    return len(window)


def merge_overlapping_chunks(chunks: List[DocumentChunk], threshold: float = 0.8) -> List[DocumentChunk]:
    """Fold adjacent chunks of the same document whose word sets mostly coincide."""
    if len(chunks) <= 1:
        return list(chunks)

    merged: List[DocumentChunk] = []
    current = chunks[0]
    for following in chunks[1:]:
        if current.url == following.url and _word_overlap(current.text, following.text) > threshold:
            current = replace(
                current,
                text=_merge_text(current.text, following.text),
                end_offset=following.end_offset,
            )
            continue
        merged.append(current)
        current = following
    merged.append(current)

    totals: dict[str, int] = {}
    for chunk in merged:
        totals[chunk.url] = totals.get(chunk.url, 0) + 1
    return [replace(chunk, total_chunks=totals[chunk.url]) for chunk in merged]


def _word_overlap(first: str, second: str) -> float:
    words_a = set(first.lower().split())
    words_b = set(second.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def _merge_text(first: str, second: str) -> str:
    sentences_a = [part.strip() for part in re.split(r"[.!?]+", first) if part.strip()]
    sentences_b = [part.strip() for part in re.split(r"[.!?]+", second) if part.strip()]
    combined = list(sentences_a)
    for sentence in sentences_b:
        if not any(_word_overlap(existing, sentence) > 0.7 for existing in sentences_a):
            combined.append(sentence)
    return ". ".join(combined) + "."
