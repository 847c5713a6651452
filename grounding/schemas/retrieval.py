from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, constr
from pydantic.config import ConfigDict

from grounding.services.web_search import TimeRange


class RetrievalOptionsPayload(BaseModel):
    max_general_sources: Optional[int] = Field(default=None, ge=0, le=20)
    max_category_sources_per_query: Optional[int] = Field(default=None, ge=0, le=20)
    category_timeout: Optional[float] = Field(default=None, gt=0)
    category_request_timeout: Optional[float] = Field(default=None, gt=0)
    web_request_timeout: Optional[float] = Field(default=None, gt=0)
    category_max_content_length: Optional[int] = Field(default=None, gt=0)
    web_max_content_length: Optional[int] = Field(default=None, gt=0)
    prefer_category_sources: Optional[bool] = None
    min_relevance_score: Optional[float] = Field(default=None, ge=0)
    time_range: Optional[TimeRange] = None
    chunk_size: Optional[int] = Field(default=None, gt=0)
    chunk_overlap: Optional[int] = Field(default=None, ge=0)
    min_chunk_size: Optional[int] = Field(default=None, ge=0)
    top_k: Optional[int] = Field(default=None, gt=0)
    max_context_chars: Optional[int] = Field(default=None, gt=0)

    model_config = ConfigDict(extra="forbid")


class RetrieveRequest(BaseModel):
    query: constr(strip_whitespace=True, min_length=1, max_length=2000)
    options: Optional[RetrievalOptionsPayload] = None


class ChunkPayload(BaseModel):
    id: str
    text: str
    url: str
    provenance: Literal["category", "web"] = "web"
    category: Optional[str] = None
    title: Optional[str] = None
    source_name: Optional[str] = None
    chunk_index: int = 0
    total_chunks: int = 1
    start_offset: int = 0
    end_offset: int = 0
    relevance_score: Optional[float] = None


class SourcePayload(BaseModel):
    name: str
    url: str
    provenance: Literal["category", "web"]
    ok: bool
    category: Optional[str] = None
    title: Optional[str] = None
    relevant: bool = False
    body_length: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None


class RetrievalMetadataPayload(BaseModel):
    query: str
    total_sources: int
    successful_scrapes: int
    category_sources_used: int
    web_sources_used: int
    timed_out_sources: int
    elapsed_ms: float
    categories_matched: List[str] = Field(default_factory=list)
    fallback_used: bool
    grounded: bool
    category_search_suggested: bool


class RetrieveResponse(BaseModel):
    context: str
    chunks: List[ChunkPayload] = Field(default_factory=list)
    sources: List[SourcePayload] = Field(default_factory=list)
    metadata: RetrievalMetadataPayload
    correlation_id: Optional[str] = None


class CitationRequest(BaseModel):
    generated_text: constr(min_length=1, max_length=20000)
    chunks: List[ChunkPayload] = Field(default_factory=list)
    inline: bool = False


class CitationSourcePayload(BaseModel):
    number: int
    title: str
    url: str
    provenance: str


class CitationResponse(BaseModel):
    citations: Dict[int, List[str]] = Field(default_factory=dict)
    sources: List[CitationSourcePayload] = Field(default_factory=list)
    formatted: str = ""
    inline_text: Optional[str] = None


class CategorySourcePayload(BaseModel):
    name: str
    url: str
    priority: int
    update_frequency: Optional[str] = None


class CategoryPayload(BaseModel):
    name: str
    description: str
    keywords: List[str]
    sources: List[CategorySourcePayload]


class ClassifyRequest(BaseModel):
    query: constr(strip_whitespace=True, min_length=1, max_length=2000)


class ClassifyResponse(BaseModel):
    categories: List[str]
    scores: Dict[str, int] = Field(default_factory=dict)
    category_search_suggested: bool = False
