from __future__ import annotations

from typing import Optional, Protocol

from docqa.domain.models import Document, Page


class DocumentRepository(Protocol):
    """
    Authoritative storage of document records (without embeddings).
    """

    def save(self, doc: Document) -> None:
        ...

    def get(self, id: str) -> Document:
        ...

    def delete(self, id: str) -> None:
        ...

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[Document]:
        ...
