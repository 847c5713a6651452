from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from grounding.rag.splitter import CategoryProvenance, DocumentChunk

_DIVIDER = "\n---\n\n"


def build_context(
    chunks: Iterable[DocumentChunk],
    *,
    max_chars: Optional[int] = None,
) -> Tuple[str, List[DocumentChunk]]:
    selected: List[DocumentChunk] = []
    context_parts: List[str] = []
    total_chars = 0

    for chunk in chunks:
        snippet = chunk.text.strip()
        if not snippet:
            continue
        part = f"{_marker(chunk, len(selected) + 1)}\n{snippet}\n"
        added = len(part) + (len(_DIVIDER) if context_parts else 0)
        if max_chars is not None and total_chars + added > max_chars:
            break
        context_parts.append(part)
        selected.append(chunk)
        total_chars += added

    return _DIVIDER.join(context_parts), selected


def _marker(chunk: DocumentChunk, number: int) -> str:
    label = chunk.title or chunk.source_name or chunk.url or "Unknown source"
    if isinstance(chunk.provenance, CategoryProvenance):
        return f"[Category source {number}: {label}]"
    return f"[Web source {number}: {label}]"
