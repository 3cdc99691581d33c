from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Mapping, Optional, Sequence, TypeVar, Union

Vector = list[float]
MetadataValue = Union[str, int, float, bool]
Metadata = Mapping[str, MetadataValue]

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------
# Core content objects
# -------------------------

@dataclass(frozen=True, slots=True)
class Document:
    """
    A stored unit of knowledge.

    id is assigned by the DocumentStore and never changes.
    embedding is derived from content; callers never set it directly.
    """
    id: str
    content: str
    metadata: Metadata = field(default_factory=dict)
    embedding: Optional[Vector] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """
    One record of the vector index: (id, vector, content, metadata).
    """
    id: str
    vector: Vector
    content: str
    metadata: Metadata = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """
    One page of a cursor-paginated listing.

    next_cursor is None on the last page.
    """
    items: Sequence[T]
    next_cursor: Optional[str] = None


# -------------------------
# Retrieval / answer objects
# -------------------------

@dataclass(frozen=True, slots=True)
class Query:
    text: str
    filters: Optional[Metadata] = None
    top_k: Optional[int] = None
    min_score: Optional[float] = None


@dataclass(frozen=True, slots=True)
class RetrievedMatch:
    """
    A document returned by nearest-neighbour search.

    score: similarity in the index's range, higher is more relevant.
    """
    document_id: str
    content: str
    score: float
    metadata: Metadata = field(default_factory=dict)


def rank_key(match: RetrievedMatch) -> tuple[float, str]:
    """Sort key giving score descending, then document_id ascending."""
    return (-match.score, match.document_id)


@dataclass(frozen=True, slots=True)
class ContextPack:
    """
    The evidence handed to the generator plus the exact rendered prompt.
    """
    question: str
    matches: Sequence[RetrievedMatch]
    rendered_prompt: str
    budget_chars: int
    chars_used: int

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(m.document_id for m in self.matches)


@dataclass(frozen=True, slots=True)
class Answer:
    text: str
    sources: Sequence[str] = field(default_factory=tuple)
    insufficient_context: bool = False


@dataclass(frozen=True, slots=True)
class SearchResult:
    answer: Answer
    matches: Sequence[RetrievedMatch] = field(default_factory=tuple)


# -------------------------
# Provider boundary results
# -------------------------

class FailureKind(str, Enum):
    RETRYABLE = "retryable"  # timeouts, connection errors, 5xx
    REJECTED = "rejected"    # 4xx, quota, auth


@dataclass(frozen=True, slots=True)
class ProviderSuccess(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class ProviderFailure:
    kind: FailureKind
    message: str
    status_code: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.RETRYABLE


ProviderResult = Union[ProviderSuccess[T], ProviderFailure]


# -------------------------
# Query tracing
# -------------------------

@dataclass(frozen=True, slots=True)
class QueryTrace:
    """
    A structured record of one search, written as a JSONL line.
    """
    trace_id: str
    query: str
    created_at: datetime = field(default_factory=utc_now)
    top_k: int = 0
    min_score: float = 0.0
    filters: Metadata = field(default_factory=dict)
    retrieved: Sequence[tuple[str, float]] = field(default_factory=tuple)
    sources: Sequence[str] = field(default_factory=tuple)
    insufficient_context: bool = False
    latency_ms: Optional[int] = None
