"""Shared fakes and fixtures.

KeywordEmbedder gives texts a vector over a tiny vocabulary so similarity
is predictable; FakeGenerator counts calls and can be scripted to fail.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

import pytest

from docqa.adapters.context_building.simple_context_builder import SimpleContextBuilder
from docqa.adapters.documents.in_memory_repository import InMemoryDocumentRepository
from docqa.adapters.embedding.client import EmbeddingClient
from docqa.adapters.generation.synthesizer import AnswerSynthesizer
from docqa.adapters.retrieval.vector_retriever import VectorRetriever
from docqa.adapters.vectorstores.in_memory_store import InMemoryVectorIndex
from docqa.app.document_store import DocumentStore
from docqa.domain.models import ProviderFailure, ProviderResult, ProviderSuccess, Vector
from docqa.utils.retry import RetryPolicy

VOCAB = ["paris", "france", "capital", "berlin", "germany", "lyon", "city", "thyroid", "cholesterol"]


def keyword_vector(text: str) -> Vector:
    tokens = re.findall(r"\w+", text.lower())
    return [float(tokens.count(word)) for word in VOCAB]


@dataclass
class KeywordEmbedder:
    """EmbeddingProvider double; failures are popped before successes."""
    failures: list[ProviderFailure] = field(default_factory=list)
    calls: list[list[str]] = field(default_factory=list)
    model: str = "keyword-test"

    @property
    def model_name(self) -> str:
        return self.model

    def embed_texts(self, texts: Sequence[str], *, timeout: Optional[float] = None) -> ProviderResult[list[Vector]]:
        self.calls.append(list(texts))
        if self.failures:
            return self.failures.pop(0)
        return ProviderSuccess([keyword_vector(t) for t in texts])


@dataclass
class FakeGenerator:
    """GenerationProvider double recording every prompt it receives."""
    reply: str = "Paris is the capital of France."
    failures: list[ProviderFailure] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)
    model: str = "fake-chat"

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str, *, timeout: Optional[float] = None) -> ProviderResult[str]:
        self.prompts.append(prompt)
        if self.failures:
            return self.failures.pop(0)
        return ProviderSuccess(self.reply)


def no_sleep(_seconds: float) -> None:
    pass


FAST_POLICY = RetryPolicy(max_attempts=3, initial_backoff_s=0.01, max_backoff_s=0.02)


# ---------------------------------------------------------------------------
# FIXTURES
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def embedder(embedding_provider) -> EmbeddingClient:
    return EmbeddingClient(provider=embedding_provider, policy=FAST_POLICY, sleep=no_sleep)


@pytest.fixture
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def store(embedder, index, repository) -> DocumentStore:
    return DocumentStore(embedder=embedder, index=index, repository=repository)


@pytest.fixture
def retriever(embedder, index) -> VectorRetriever:
    return VectorRetriever(embedder=embedder, index=index, default_top_k=5, default_min_score=0.5)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def synthesizer(generator) -> AnswerSynthesizer:
    return AnswerSynthesizer(
        generator=generator,
        context_builder=SimpleContextBuilder(),
        budget_chars=1000,
        policy=FAST_POLICY,
        sleep=no_sleep,
    )
