"""
Ingestion pipeline: the only writer of the vector index.

Every mutation finishes its index write before the document record changes,
so once a call returns the index entry for an id always holds the embedding
of that document's current content.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from docqa.adapters.embedding.client import EmbeddingClient
from docqa.domain.errors import IndexUnavailable, NotFound
from docqa.domain.models import Document, IndexEntry, Page, Vector, utc_now
from docqa.domain.schema import validate_content, validate_metadata
from docqa.ports import DocumentRepository, VectorIndex
from docqa.utils.retry import Deadline

logger = logging.getLogger(__name__)


def new_document_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class DocumentStore:
    embedder: EmbeddingClient
    index: VectorIndex
    repository: DocumentRepository
    id_factory: Callable[[], str] = new_document_id

    def create(
        self,
        content: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> Document:
        content = validate_content(content)
        metadata = validate_metadata(metadata)

        # embed before any write: a failed embedding leaves nothing behind
        vector = self.embedder.embed(content, deadline=deadline)

        now = utc_now()
        doc = Document(
            id=self.id_factory(),
            content=content,
            metadata=metadata,
            embedding=vector,
            created_at=now,
            updated_at=now,
        )
        self.index.upsert(IndexEntry(id=doc.id, vector=vector, content=content, metadata=metadata))
        self._save_or_restore(doc, previous=None)

        logger.info("Created document %s (%d chars)", doc.id, len(content))
        return doc

    def update(
        self,
        id: str,
        content: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> Document:
        if content is not None:
            content = validate_content(content)
        if metadata is not None:
            metadata = validate_metadata(metadata)

        current = self.repository.get(id)
        new_content = content if content is not None else current.content
        new_metadata = metadata if metadata is not None else dict(current.metadata)

        # an indexed vector is only reused when it was computed from new_content
        previous = self._index_entry(id)
        if previous is not None and previous.content == new_content:
            vector: Vector = list(previous.vector)
        else:
            if previous is None:
                logger.warning("Document %s has no index entry; re-embedding", id)
            vector = self.embedder.embed(new_content, deadline=deadline)

        doc = replace(
            current,
            content=new_content,
            metadata=new_metadata,
            embedding=vector,
            updated_at=utc_now(),
        )
        self.index.upsert(IndexEntry(id=id, vector=vector, content=new_content, metadata=new_metadata))
        self._save_or_restore(doc, previous=previous)

        logger.info(
            "Updated document %s (%s)", id,
            "re-embedded" if new_content != current.content else "content unchanged",
        )
        return doc

    def delete(self, id: str, *, missing_ok: bool = False) -> None:
        """
        Remove a document: index entry first, then the record.

        A concurrent search may briefly see an index entry whose record is
        already gone, never the reverse.
        """
        try:
            self.repository.get(id)
        except NotFound:
            if not missing_ok:
                raise
            # still clear a possible orphaned index entry
            self.index.delete(id)
            return

        self.index.delete(id)
        self.repository.delete(id)
        logger.info("Deleted document %s", id)

    def get(self, id: str) -> Document:
        """
        Read a document with its indexed embedding.

        The record is authoritative: if the index cannot be reached the
        document is returned with embedding=None.
        """
        doc = self.repository.get(id)
        try:
            entry = self._index_entry(id)
        except IndexUnavailable as e:
            logger.warning("Index unavailable, returning document %s without embedding: %s", id, e)
            entry = None
        return replace(doc, embedding=list(entry.vector) if entry is not None else None)

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[Document]:
        return self.repository.list(cursor=cursor, limit=limit)

    def _index_entry(self, id: str) -> Optional[IndexEntry]:
        try:
            return self.index.get(id)
        except NotFound:
            return None

    def _save_or_restore(self, doc: Document, *, previous: Optional[IndexEntry]) -> None:
        """Save the record; if that fails put the index back as it was."""
        try:
            self.repository.save(doc)
        except Exception:
            if previous is None:
                logger.error("Saving document %s failed; removing its index entry", doc.id)
                self.index.delete(doc.id)
            else:
                logger.error("Saving document %s failed; restoring its previous index entry", doc.id)
                self.index.upsert(previous)
            raise
