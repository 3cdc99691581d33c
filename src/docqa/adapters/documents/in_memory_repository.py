from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Optional

from docqa.domain.errors import NotFound
from docqa.domain.models import Document, Page
from docqa.domain.schema import paginate


@dataclass(slots=True)
class InMemoryDocumentRepository:
    """
    Document records in a dict. Embeddings are not kept here; the vector
    index is the only place they live.
    """
    _docs: dict[str, Document] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def save(self, doc: Document) -> None:
        with self._lock:
            self._docs[doc.id] = replace(doc, metadata=dict(doc.metadata), embedding=None)

    def get(self, id: str) -> Document:
        with self._lock:
            doc = self._docs.get(id)
        if doc is None:
            raise NotFound("document", id)
        return doc

    def delete(self, id: str) -> None:
        with self._lock:
            self._docs.pop(id, None)

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[Document]:
        with self._lock:
            docs = list(self._docs.values())
        return paginate(docs, key=lambda d: d.id, cursor=cursor, limit=limit)
