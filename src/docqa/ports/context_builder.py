from __future__ import annotations

from typing import Protocol, Sequence

from docqa.domain.models import ContextPack, RetrievedMatch


class ContextBuilder(Protocol):
    """
    Takes ranked matches and constructs the final prompt within a character budget.
    """

    def build(
        self,
        question: str,
        matches: Sequence[RetrievedMatch],
        *,
        budget_chars: int,
    ) -> ContextPack:
        ...
