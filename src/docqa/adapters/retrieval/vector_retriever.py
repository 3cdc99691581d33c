from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from docqa.adapters.embedding.client import EmbeddingClient
from docqa.domain.errors import InvalidInput
from docqa.domain.models import Query, RetrievedMatch
from docqa.domain.schema import validate_metadata
from docqa.ports import VectorIndex
from docqa.utils.retry import Deadline

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VectorRetriever:
    """
    Retrieves matches by embedding the query and searching the vector index,
    then drops everything scoring below the relevance threshold.
    """
    embedder: EmbeddingClient
    index: VectorIndex
    default_top_k: int = 5
    default_min_score: float = 0.0

    def with_defaults(self, query: Query) -> Query:
        return replace(
            query,
            top_k=query.top_k if query.top_k is not None else self.default_top_k,
            min_score=query.min_score if query.min_score is not None else self.default_min_score,
        )

    def retrieve(self, query: Query, *, deadline: Optional[Deadline] = None) -> list[RetrievedMatch]:
        query = self.with_defaults(query)
        top_k, min_score = query.top_k, query.min_score
        if isinstance(min_score, bool) or not isinstance(min_score, (int, float)):
            raise InvalidInput(f"min_score must be a number, got {min_score!r}")
        filters = validate_metadata(query.filters, what="filters") or None

        q_vec = self.embedder.embed(query.text, deadline=deadline)
        matches = self.index.query(q_vec, top_k=top_k, filters=filters)

        kept = [m for m in matches if m.score >= min_score]
        logger.debug(
            "Retrieved %d match(es), %d at or above min_score=%.3f (top_k=%d)",
            len(matches), len(kept), min_score, top_k,
        )
        return kept
