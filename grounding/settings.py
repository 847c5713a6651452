from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Grounding Service"
    app_version: str = "0.1.0"
    app_port: int = 8000

    retrieval_max_general_sources: int = 5
    retrieval_max_category_sources: int = 3
    retrieval_category_timeout: float = 10.0
    retrieval_category_request_timeout: float = 8.0
    retrieval_web_request_timeout: float = 6.0
    retrieval_category_max_content_length: int = 15000
    retrieval_web_max_content_length: int = 15000
    retrieval_prefer_category_sources: bool = True
    retrieval_min_relevance_score: float = 0.3
    retrieval_time_range: str = "all"
    retrieval_top_k: int = 12
    retrieval_max_context_chars: Optional[int] = None
    category_search_urls_enabled: bool = True

    rag_chunk_size: int = 1000
    rag_chunk_overlap: int = 200
    rag_min_chunk_size: int = 100

    search_provider: Optional[str] = None
    search_timeout: float = 10.0
    search_region: str = "us"
    search_language: str = "en"
    serper_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SERPER_API_KEY", "SEARCH_API_KEY"),
    )
    newsapi_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NEWSAPI_API_KEY", "NEWSAPI_KEY"),
    )

    metrics_enabled: bool = True
    log_format: str = "json"
    log_level: str = "INFO"
    correlation_id_header: str = "X-Correlation-ID"
    readiness_enabled: bool = True
    readiness_cpu_threshold: int = 90
    readiness_memory_threshold_mb: int = 1024
    frontend_allowed_origins: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
