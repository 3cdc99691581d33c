"""
Chroma-backed vector index.

Chroma operates in three modes:
- HttpClient: connects to a running Chroma server (chroma_host set)
- PersistentClient: embedded, persisted under persist_directory
- EphemeralClient: embedded, in-memory (tests, local runs)

Vectors are always computed by the EmbeddingClient and passed in; the
collection has no embedding function of its own.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

import httpx

# Requires: pip install chromadb
import chromadb
from chromadb.errors import ChromaError, InvalidArgumentError, InvalidDimensionException

from docqa.adapters.vectorstores.in_memory_store import validate_top_k
from docqa.domain.errors import IndexUnavailable, InvalidInput, NotFound
from docqa.domain.models import IndexEntry, Metadata, Page, RetrievedMatch, Vector, rank_key
from docqa.domain.schema import validate_page_limit

logger = logging.getLogger(__name__)

# Chroma rejects empty metadata dicts, so every entry carries this marker key
_MARKER_KEY = "__docqa__"

# Extra candidates fetched so the id tie-break is applied before the top_k cut
_OVERFETCH = 2


def _to_chroma_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    return {**dict(metadata), _MARKER_KEY: True}


def _from_chroma_metadata(metadata: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    return {k: v for k, v in (metadata or {}).items() if k != _MARKER_KEY}


def _where(filters: Optional[Metadata]) -> Optional[dict[str, Any]]:
    if not filters:
        return None
    clauses = [{k: {"$eq": v}} for k, v in filters.items()]
    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


def _is_caller_error(e: Exception) -> bool:
    if isinstance(e, (InvalidDimensionException, InvalidArgumentError, ValueError)):
        return True
    if not isinstance(e, ChromaError):
        return False
    # some backends report a dimension mismatch as a bare ChromaError
    if "dimension" in str(e).lower():
        return True
    # 4xx reported by a Chroma server, apart from rate limiting
    return 400 <= e.code() < 500 and e.code() != 429


def _is_outage(e: Exception) -> bool:
    if isinstance(e, (httpx.TransportError, ConnectionError)):
        return True
    return isinstance(e, ChromaError) and (e.code() >= 500 or e.code() == 429)


@contextmanager
def _translate_errors(op: str) -> Iterator[None]:
    """
    Bad arguments (dimension mismatch, invalid filters) become InvalidInput,
    connectivity and server failures become IndexUnavailable. Anything else
    propagates unchanged.
    """
    try:
        yield
    except Exception as e:
        if _is_caller_error(e):
            raise InvalidInput(f"chroma {op} rejected: {e}") from e
        if _is_outage(e):
            raise IndexUnavailable(f"chroma {op} failed: {e}") from e
        raise


class ChromaVectorIndex:
    """
    VectorIndex over a Chroma collection using cosine distance.

    score = 1 - cosine distance, so scores match InMemoryVectorIndex.
    """

    def __init__(
        self,
        collection_name: str = "documents",
        persist_directory: Optional[str] = None,
        chroma_host: Optional[str] = None,
        chroma_port: int = 8000,
        client: Any = None,
    ) -> None:
        with _translate_errors("connect"):
            if client is not None:
                self._client = client
            elif chroma_host:
                self._client = chromadb.HttpClient(host=chroma_host, port=chroma_port)
                logger.info("Chroma: connected to %s:%d", chroma_host, chroma_port)
            elif persist_directory:
                Path(persist_directory).mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=persist_directory)
                logger.info("Chroma: persistent at %s", persist_directory)
            else:
                self._client = chromadb.EphemeralClient()
                logger.info("Chroma: ephemeral (in-memory)")

            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )

    def upsert(self, entry: IndexEntry) -> None:
        with _translate_errors("upsert"):
            self._collection.upsert(
                ids=[entry.id],
                embeddings=[list(entry.vector)],
                documents=[entry.content],
                metadatas=[_to_chroma_metadata(entry.metadata)],
            )

    def delete(self, id: str) -> None:
        with _translate_errors("delete"):
            self._collection.delete(ids=[id])

    def get(self, id: str) -> IndexEntry:
        entries = self._get_many([id])
        if not entries:
            raise NotFound("index entry", id)
        return entries[0]

    def query(
        self,
        vector: Vector,
        *,
        top_k: int,
        filters: Optional[Metadata] = None,
    ) -> list[RetrievedMatch]:
        validate_top_k(top_k)
        with _translate_errors("query"):
            total = self._collection.count()
            if total == 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [list(vector)],
                "n_results": min(total, top_k * _OVERFETCH),
                "include": ["documents", "metadatas", "distances"],
            }
            where = _where(filters)
            if where is not None:
                kwargs["where"] = where

            results = self._collection.query(**kwargs)

        out: list[RetrievedMatch] = []
        ids = (results.get("ids") or [[]])[0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        for i, doc_id in enumerate(ids):
            out.append(
                RetrievedMatch(
                    document_id=doc_id,
                    content=documents[i] or "",
                    score=1.0 - float(distances[i]),
                    metadata=_from_chroma_metadata(metadatas[i]),
                )
            )

        out.sort(key=rank_key)
        return out[:top_k]

    def list(self, *, cursor: Optional[str] = None, limit: Optional[int] = None) -> Page[IndexEntry]:
        limit = validate_page_limit(limit)
        with _translate_errors("list"):
            all_ids = sorted(self._collection.get(include=[])["ids"])

        if cursor:
            all_ids = [i for i in all_ids if i > cursor]
        page_ids = all_ids[:limit]
        next_cursor = page_ids[-1] if len(all_ids) > limit else None
        return Page(items=tuple(self._get_many(page_ids)), next_cursor=next_cursor)

    def count(self) -> int:
        with _translate_errors("count"):
            return self._collection.count()

    def _get_many(self, ids: list[str]) -> list[IndexEntry]:
        if not ids:
            return []
        with _translate_errors("get"):
            results = self._collection.get(ids=ids, include=["embeddings", "documents", "metadatas"])

        embeddings = results.get("embeddings")
        documents = results.get("documents")
        metadatas = results.get("metadatas")
        by_id: dict[str, IndexEntry] = {}
        for i, doc_id in enumerate(results["ids"]):
            # embeddings may come back as a numpy array; avoid truthiness checks
            vector = [float(x) for x in embeddings[i]] if embeddings is not None else []
            by_id[doc_id] = IndexEntry(
                id=doc_id,
                vector=vector,
                content=(documents[i] if documents is not None else "") or "",
                metadata=_from_chroma_metadata(metadatas[i] if metadatas is not None else None),
            )
        return [by_id[i] for i in ids if i in by_id]
