from __future__ import annotations

from typing import Optional, Protocol

from docqa.domain.models import IndexEntry, Metadata, Page, RetrievedMatch, Vector


class VectorIndex(Protocol):
    """
    Stores (id, vector, content, metadata) entries and supports similarity search.

    Connectivity failures raise IndexUnavailable. Implementations do not retry.
    """

    def upsert(self, entry: IndexEntry) -> None:
        ...

    def delete(self, id: str) -> None:
        ...

    def get(self, id: str) -> IndexEntry:
        ...

    def query(
        self,
        vector: Vector,
        *,
        top_k: int,
        filters: Optional[Metadata] = None,
    ) -> list[RetrievedMatch]:
        ...

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[IndexEntry]:
        ...

    def count(self) -> int:
        ...
