from .retrieval import (
    CategoryPayload,
    CategorySourcePayload,
    ChunkPayload,
    CitationRequest,
    CitationResponse,
    CitationSourcePayload,
    ClassifyRequest,
    ClassifyResponse,
    RetrievalMetadataPayload,
    RetrievalOptionsPayload,
    RetrieveRequest,
    RetrieveResponse,
    SourcePayload,
)

__all__ = [
    "CategoryPayload",
    "CategorySourcePayload",
    "ChunkPayload",
    "CitationRequest",
    "CitationResponse",
    "CitationSourcePayload",
    "ClassifyRequest",
    "ClassifyResponse",
    "RetrievalMetadataPayload",
    "RetrievalOptionsPayload",
    "RetrieveRequest",
    "RetrieveResponse",
    "SourcePayload",
]
