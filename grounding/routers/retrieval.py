from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Request

from grounding.rag.splitter import CategoryProvenance, DocumentChunk, DocumentProvenance, WebProvenance
from grounding.schemas import (
    ChunkPayload,
    CitationRequest,
    CitationResponse,
    CitationSourcePayload,
    RetrievalMetadataPayload,
    RetrieveRequest,
    RetrieveResponse,
    SourcePayload,
)
from grounding.services.rag import RetrievalOptions, RetrievalOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/retrieve", response_model=RetrieveResponse)
async def retrieve_endpoint(
    payload: RetrieveRequest,
    request: Request,
    orchestrator: RetrievalOrchestrator = Depends(get_orchestrator),
) -> RetrieveResponse:
    options = RetrievalOptions.from_settings()
    if payload.options is not None:
        options = replace(options, **payload.options.model_dump(exclude_none=True))

    correlation_id = getattr(request.state, "correlation_id", None)
    result = await orchestrator.retrieve(payload.query, options)
    metadata = result.metadata
    logger.info(
        "grounding.retrieve.completed",
        extra={
            "correlation_id": correlation_id,
            "route": "/retrieve",
            "latency_ms": metadata.elapsed_ms,
            "flags": {"fallback_used": metadata.fallback_used, "grounded": metadata.grounded},
        },
    )
    return RetrieveResponse(
        context=result.context,
        chunks=[_chunk_payload(chunk) for chunk in result.chunks],
        sources=[SourcePayload(**vars(source)) for source in result.sources],
        metadata=RetrievalMetadataPayload(**vars(metadata)),
        correlation_id=correlation_id,
    )


@router.post("/citations", response_model=CitationResponse)
def citations_endpoint(
    payload: CitationRequest,
    orchestrator: RetrievalOrchestrator = Depends(get_orchestrator),
) -> CitationResponse:
    engine = orchestrator.citation_engine
    chunks = [_chunk_from_payload(item) for item in payload.chunks]
    citations = engine.generate_citations(chunks, payload.generated_text)
    sources = engine.citation_sources(citations, chunks)
    return CitationResponse(
        citations=citations,
        sources=[CitationSourcePayload(**vars(source)) for source in sources],
        formatted=engine.format_citations(citations, chunks),
        inline_text=engine.generate_inline_citations(payload.generated_text, chunks) if payload.inline else None,
    )


def _chunk_payload(chunk: DocumentChunk) -> ChunkPayload:
    return ChunkPayload(
        id=chunk.id,
        text=chunk.text,
        url=chunk.url,
        provenance=chunk.provenance.kind,
        category=chunk.category,
        title=chunk.title,
        source_name=chunk.source_name,
        chunk_index=chunk.chunk_index,
        total_chunks=chunk.total_chunks,
        start_offset=chunk.start_offset,
        end_offset=chunk.end_offset,
        relevance_score=chunk.relevance_score,
    )


def _chunk_from_payload(payload: ChunkPayload) -> DocumentChunk:
    provenance: DocumentProvenance
    if payload.provenance == "category" and payload.category:
        provenance = CategoryProvenance(payload.category)
    else:
        provenance = WebProvenance()
    return DocumentChunk(
        id=payload.id,
        text=payload.text,
        start_offset=payload.start_offset,
        end_offset=payload.end_offset or len(payload.text),
        chunk_index=payload.chunk_index,
        total_chunks=payload.total_chunks,
        url=payload.url,
        provenance=provenance,
        title=payload.title,
        source_name=payload.source_name,
        relevance_score=payload.relevance_score,
    )
