from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from docqa.adapters.context_building.simple_context_builder import SimpleContextBuilder
from docqa.adapters.documents.in_memory_repository import InMemoryDocumentRepository
from docqa.adapters.documents.sqlite_repository import SqliteDocumentRepository
from docqa.adapters.embedding.client import EmbeddingClient
from docqa.adapters.embedding.dummy_embedder import HashingEmbedder
from docqa.adapters.embedding.openai_embedder import OpenAIEmbedder
from docqa.adapters.generation.openai_chat import OpenAIChatGenerator
from docqa.adapters.generation.synthesizer import AnswerSynthesizer
from docqa.adapters.openai_client import build_openai_client
from docqa.adapters.retrieval.vector_retriever import VectorRetriever
from docqa.adapters.tracing.jsonl_logger import JsonlQueryLogger
from docqa.adapters.vectorstores.chroma_store import ChromaVectorIndex
from docqa.adapters.vectorstores.in_memory_store import InMemoryVectorIndex
from docqa.app.document_store import DocumentStore
from docqa.ports import DocumentRepository, EmbeddingProvider, GenerationProvider, QueryLogger, VectorIndex
from docqa.settings import Settings
from docqa.utils.retry import Deadline, RetryPolicy


@dataclass(frozen=True, slots=True)
class Container:
    """
    Lightweight dependency container.
    Holds the process-wide components, built once from Settings.
    """
    settings: Settings
    embedder: EmbeddingClient
    index: VectorIndex
    documents: DocumentStore
    retriever: VectorRetriever
    synthesizer: AnswerSynthesizer
    tracer: Optional[QueryLogger] = None

    def deadline(self) -> Deadline:
        return Deadline.after(self.settings.service.request_deadline_s)


def build_container(
    settings: Settings,
    *,
    embedding_provider: Optional[EmbeddingProvider] = None,
    generation_provider: Optional[GenerationProvider] = None,
    index: Optional[VectorIndex] = None,
    repository: Optional[DocumentRepository] = None,
) -> Container:
    """
    Wire every component from settings. Keyword overrides replace the
    corresponding backend (tests, embedding the service elsewhere).
    """
    providers = settings.providers
    policy = RetryPolicy(
        max_attempts=providers.max_attempts,
        initial_backoff_s=providers.initial_backoff_s,
        max_backoff_s=providers.max_backoff_s,
    )

    openai_client = None
    needs_openai = generation_provider is None or (
        embedding_provider is None and settings.embeddings.backend == "openai"
    )
    if needs_openai:
        openai_client = build_openai_client(
            providers.api_key,
            pool_size=providers.pool_size,
            timeout_s=providers.request_timeout_s,
            base_url=providers.base_url,
        )

    if embedding_provider is None:
        if settings.embeddings.backend == "hashing":
            embedding_provider = HashingEmbedder(dim=settings.embeddings.dim)
        else:
            embedding_provider = OpenAIEmbedder(client=openai_client, model=settings.embeddings.model)

    if generation_provider is None:
        generation_provider = OpenAIChatGenerator(
            client=openai_client,
            model=settings.llm.model,
            temperature=settings.llm.temperature,
        )

    if index is None:
        vi = settings.vector_index
        if vi.backend == "memory":
            index = InMemoryVectorIndex()
        else:
            index = ChromaVectorIndex(
                collection_name=vi.collection,
                persist_directory=vi.chroma_path,
                chroma_host=vi.chroma_host,
                chroma_port=vi.chroma_port,
            )

    if repository is None:
        if settings.documents.backend == "memory":
            repository = InMemoryDocumentRepository()
        else:
            repository = SqliteDocumentRepository(db_path=Path(settings.documents.sqlite_path))

    embedder = EmbeddingClient(
        provider=embedding_provider,
        policy=policy,
        batch_size=settings.embeddings.batch_size,
        timeout_s=providers.request_timeout_s,
    )
    retriever = VectorRetriever(
        embedder=embedder,
        index=index,
        default_top_k=settings.retrieval.default_top_k,
        default_min_score=settings.retrieval.min_score,
    )
    synthesizer = AnswerSynthesizer(
        generator=generation_provider,
        context_builder=SimpleContextBuilder(),
        budget_chars=settings.synthesis.context_budget_chars,
        policy=policy,
        timeout_s=providers.request_timeout_s,
    )
    tracer = JsonlQueryLogger(Path(settings.service.trace_dir)) if settings.service.trace_dir else None

    return Container(
        settings=settings,
        embedder=embedder,
        index=index,
        documents=DocumentStore(embedder=embedder, index=index, repository=repository),
        retriever=retriever,
        synthesizer=synthesizer,
        tracer=tracer,
    )
