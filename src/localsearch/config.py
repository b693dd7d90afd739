"""Runtime configuration for the local search services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="localsearch_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Search index
    search_backend: Literal["elasticsearch", "chroma"] = "elasticsearch"
    default_corpus: str = "knowledge"
    elasticsearch_url: str = "http://localhost:9200"
    search_title_field: str = "filename"
    search_body_field: str = "content"
    search_path_field: str = "filename"
    search_size: int = 10

    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "localsearch"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Generation model (any OpenAI-compatible endpoint)
    chat_model: str = "gpt-4o-mini"
    chat_base_url: str | None = None
    chat_api_key: str | None = None
    chat_temperature: float | None = None
    chat_max_tokens: int | None = None

    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_dim: int = 384
    use_model_embeddings: bool = False

    # Precomputed summaries / embeddings
    cache_enabled: bool = True
    cache_dir: Path = Path(".")
    summaries_file: str = "final_summaries.json"
    embeddings_file: str = "final_embeddings.json"
    cache_root_token: str = "Knowledge"

    # Pipeline
    group_fragment_cap: int = 10
    rerank_top_k: int = 5
    max_concurrent_calls: int = 8
    retrieval_timeout_seconds: float = 10.0
    retrieval_retries: int = 1
    retrieval_strict: bool = False
    summary_timeout_seconds: float = 60.0
    embedding_timeout_seconds: float = 30.0
    answer_timeout_seconds: float = 60.0  # max wait between two answer chunks
    rephrase_fallback_to_question: bool = False
    rephrase_timeout_seconds: float = 60.0

    # API
    api_key: str | None = None  # if set, required in X-API-Key header
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def summaries_path(self) -> Path:
        return self.cache_dir / self.summaries_file

    @property
    def embeddings_path(self) -> Path:
        return self.cache_dir / self.embeddings_file


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
