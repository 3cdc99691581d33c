from __future__ import annotations

import threading
from dataclasses import dataclass, field
from math import sqrt
from typing import Optional, Sequence

from docqa.domain.errors import InvalidInput, NotFound
from docqa.domain.models import IndexEntry, Metadata, Page, RetrievedMatch, Vector, rank_key
from docqa.domain.schema import matches_filters, paginate


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


def _norm(a: Sequence[float]) -> float:
    return sqrt(sum(x * x for x in a)) or 1.0


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    return _dot(a, b) / (_norm(a) * _norm(b))


def validate_top_k(top_k: int) -> int:
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
        raise InvalidInput(f"top_k must be an integer >= 1, got {top_k!r}")
    return top_k


@dataclass(slots=True)
class InMemoryVectorIndex:
    """
    Cosine-similarity vector index held in process memory.

    Linear scan search; one entry per id. The lock only guards the dict,
    so callers never hold it across provider calls.
    """
    _entries: dict[str, IndexEntry] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def upsert(self, entry: IndexEntry) -> None:
        with self._lock:
            self._entries[entry.id] = IndexEntry(
                id=entry.id,
                vector=list(entry.vector),
                content=entry.content,
                metadata=dict(entry.metadata),
            )

    def delete(self, id: str) -> None:
        with self._lock:
            self._entries.pop(id, None)

    def get(self, id: str) -> IndexEntry:
        with self._lock:
            entry = self._entries.get(id)
        if entry is None:
            raise NotFound("index entry", id)
        return entry

    def query(
        self,
        vector: Vector,
        *,
        top_k: int,
        filters: Optional[Metadata] = None,
    ) -> list[RetrievedMatch]:
        validate_top_k(top_k)
        with self._lock:
            entries = list(self._entries.values())

        scored: list[RetrievedMatch] = []
        for entry in entries:
            if not matches_filters(entry.metadata, filters):
                continue
            if len(entry.vector) != len(vector):
                raise InvalidInput(
                    f"query vector has dimension {len(vector)}, index entry {entry.id} has {len(entry.vector)}"
                )
            scored.append(
                RetrievedMatch(
                    document_id=entry.id,
                    content=entry.content,
                    score=_cosine(vector, entry.vector),
                    metadata=entry.metadata,
                )
            )

        scored.sort(key=rank_key)
        return scored[:top_k]

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[IndexEntry]:
        with self._lock:
            entries = list(self._entries.values())
        return paginate(entries, key=lambda e: e.id, cursor=cursor, limit=limit)

    def count(self) -> int:
        with self._lock:
            return len(self._entries)
