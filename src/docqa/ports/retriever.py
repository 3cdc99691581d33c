from __future__ import annotations

from typing import Optional, Protocol

from docqa.domain.models import Query, RetrievedMatch
from docqa.utils.retry import Deadline


class Retriever(Protocol):
    """
    Retrieves ranked matches for a query.
    """

    def with_defaults(self, query: Query) -> Query:
        """Return the query with top_k and min_score filled in as retrieve applies them."""
        ...

    def retrieve(self, query: Query, *, deadline: Optional[Deadline] = None) -> list[RetrievedMatch]:
        ...
