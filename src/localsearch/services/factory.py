"""Wire pipeline components from settings."""

from __future__ import annotations

import chromadb
from langchain_openai import ChatOpenAI

from localsearch.cache import CacheStore, InMemoryCacheStore, JsonCacheStore
from localsearch.config import Settings
from localsearch.embeddings import EmbeddingBackend, EmbeddingConfig, HuggingFaceEmbeddingBackend
from localsearch.retrieval import (
    ChromaSearchBackend,
    DocumentGrouper,
    ElasticsearchSearchBackend,
    Reranker,
    Retriever,
    SearchBackend,
)
from localsearch.services.answer import AnswerGenerator
from localsearch.services.generation import ChatBackend, GenerationOptions, LangChainChatBackend
from localsearch.services.pipeline import LocalSearchPipeline
from localsearch.services.rephrase import QueryRephraser
from localsearch.services.summarizer import SourceSummarizer


def build_cache(settings: Settings) -> CacheStore:
    if not settings.cache_enabled:
        return InMemoryCacheStore(root_token=settings.cache_root_token)
    return JsonCacheStore.load(
        settings.summaries_path,
        settings.embeddings_path,
        root_token=settings.cache_root_token,
    )


def build_embeddings(settings: Settings) -> EmbeddingBackend:
    return HuggingFaceEmbeddingBackend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            use_model=settings.use_model_embeddings,
            normalize=True,
        ),
    )


def build_chat(settings: Settings) -> ChatBackend:
    model = ChatOpenAI(
        model=settings.chat_model,
        base_url=settings.chat_base_url,
        api_key=settings.chat_api_key,
        streaming=True,
    )
    return LangChainChatBackend(model)


def build_search_backend(settings: Settings, embeddings: EmbeddingBackend) -> SearchBackend:
    if settings.search_backend == "chroma":
        client = None
        if settings.chroma_host:
            client = chromadb.HttpClient(
                host=settings.chroma_host,
                port=settings.chroma_port or 8000,
                ssl=settings.chroma_ssl,
            )
        return ChromaSearchBackend(
            embeddings,
            collection_name=settings.chroma_collection,
            client=client,
            persist_directory=None if client else settings.chroma_persist_dir,
            size=settings.search_size,
        )
    return ElasticsearchSearchBackend.from_url(
        settings.elasticsearch_url,
        title_field=settings.search_title_field,
        body_field=settings.search_body_field,
        path_field=settings.search_path_field,
        size=settings.search_size,
    )


def build_pipeline(
    settings: Settings,
    *,
    chat: ChatBackend | None = None,
    embeddings: EmbeddingBackend | None = None,
    search: SearchBackend | None = None,
    cache: CacheStore | None = None,
) -> LocalSearchPipeline:
    """Build a pipeline, constructing any collaborator not supplied from ``settings``."""

    chat = chat or build_chat(settings)
    embeddings = embeddings or build_embeddings(settings)
    search = search or build_search_backend(settings, embeddings)
    cache = cache if cache is not None else build_cache(settings)
    return LocalSearchPipeline(
        rephraser=QueryRephraser(
            chat,
            fallback_to_question=settings.rephrase_fallback_to_question,
            timeout_seconds=settings.rephrase_timeout_seconds,
        ),
        retriever=Retriever(
            search,
            timeout_seconds=settings.retrieval_timeout_seconds,
            retries=settings.retrieval_retries,
            strict=settings.retrieval_strict,
        ),
        grouper=DocumentGrouper(cap=settings.group_fragment_cap),
        summarizer=SourceSummarizer(
            chat,
            cache,
            max_concurrency=settings.max_concurrent_calls,
            timeout_seconds=settings.summary_timeout_seconds,
        ),
        reranker=Reranker(
            embeddings,
            cache,
            top_k=settings.rerank_top_k,
            timeout_seconds=settings.embedding_timeout_seconds,
        ),
        answerer=AnswerGenerator(
            chat,
            options=GenerationOptions(
                temperature=settings.chat_temperature,
                max_tokens=settings.chat_max_tokens,
            ),
            chunk_timeout_seconds=settings.answer_timeout_seconds,
        ),
        default_corpus=settings.default_corpus,
    )
