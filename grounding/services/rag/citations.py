from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from grounding.rag.splitter import DocumentChunk

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_SENTENCE_SPLIT_KEEP_RE = re.compile(r"([.!?]+)")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "can", "this", "that", "these", "those",
    }
)

SIMILARITY_THRESHOLD = 0.3
MAX_SUPPORTING_CHUNKS = 3
MAX_KEYWORDS = 10
_INLINE_MIN_CHARS = 20

CitationMap = Dict[int, List[str]]


@dataclass
class Citation:
    number: int
    title: str
    url: str
    provenance: str


class CitationEngine:
    """Links sentences of generated text back to the chunks that support them."""

    def generate_citations(self, chunks: Sequence[DocumentChunk], generated_text: str) -> CitationMap:
        citations: CitationMap = {}
        for index, sentence in enumerate(split_sentences(generated_text)):
            supporting = self.find_supporting_chunks(sentence, chunks)
            if supporting:
                citations[index] = [chunk.id for chunk in supporting]
        return citations

    def find_supporting_chunks(self, sentence: str, chunks: Sequence[DocumentChunk]) -> List[DocumentChunk]:
        keywords = extract_keywords(sentence)
        scored: List[Tuple[DocumentChunk, float]] = []
        for chunk in chunks:
            similarity = keyword_similarity(keywords, chunk.text)
            if similarity > SIMILARITY_THRESHOLD:
                scored.append((chunk, similarity))
        scored.sort(key=lambda item: item[1], reverse=True)
        return [chunk for chunk, _ in scored[:MAX_SUPPORTING_CHUNKS]]

    def citation_sources(self, citations: Mapping[int, Sequence[str]], chunks: Sequence[DocumentChunk]) -> List[Citation]:
        by_id = {chunk.id: chunk for chunk in chunks}
        urls: List[str] = []
        for index in sorted(citations):
            for chunk_id in citations[index]:
                chunk = by_id.get(chunk_id)
                if chunk is not None and chunk.url and chunk.url not in urls:
                    urls.append(chunk.url)

        sources: List[Citation] = []
        for number, url in enumerate(urls, start=1):
            first = next(chunk for chunk in chunks if chunk.url == url)
            sources.append(
                Citation(
                    number=number,
                    title=first.title or "Unknown Title",
                    url=url,
                    provenance=first.provenance.kind,
                )
            )
        return sources

    def format_citations(self, citations: Mapping[int, Sequence[str]], chunks: Sequence[DocumentChunk]) -> str:
        sources = self.citation_sources(citations, chunks)
        if not sources:
            return ""
        lines = [f"[{source.number}] {source.title} - {source.url}" for source in sources]
        return "\n\n**Sources:**\n" + "\n".join(lines)

    def generate_inline_citations(self, text: str, chunks: Sequence[DocumentChunk]) -> str:
        counter = 1
        used_urls: set[str] = set()
        parts: List[str] = []

        for part in _SENTENCE_SPLIT_KEEP_RE.split(text):
            if not _SENTENCE_SPLIT_RE.fullmatch(part) and len(part.strip()) > _INLINE_MIN_CHARS:
                new_urls: List[str] = []
                for chunk in self.find_supporting_chunks(part, chunks):
                    if chunk.url and chunk.url not in used_urls and chunk.url not in new_urls:
                        new_urls.append(chunk.url)
                if new_urls:
                    used_urls.update(new_urls)
                    numbers = ",".join(str(counter + offset) for offset in range(len(new_urls)))
                    counter += len(new_urls)
                    part = f"{part} [{numbers}]"
            parts.append(part)

        return "".join(parts)


def split_sentences(text: str) -> List[str]:
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(text or "") if part.strip()]


def extract_keywords(text: str) -> List[str]:
    cleaned = _PUNCTUATION_RE.sub(" ", text.lower())
    keywords = [word for word in cleaned.split() if len(word) > 2 and word not in STOP_WORDS]
    return keywords[:MAX_KEYWORDS]


def keyword_similarity(keywords: Sequence[str], content: str) -> float:
    lowered = content.lower()
    total = 0.0
    matched = 0.0
    for keyword in keywords:
        weight = len(keyword) / 5
        total += weight
        if keyword in lowered:
            matched += weight
    return matched / total if total > 0 else 0.0
