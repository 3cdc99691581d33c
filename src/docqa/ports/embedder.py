from __future__ import annotations

from typing import Optional, Protocol, Sequence

from docqa.domain.models import ProviderResult, Vector


class EmbeddingProvider(Protocol):
    """
    Turns text into dense vectors.

    Implementations never raise for provider-side failures: they classify
    them into a ProviderFailure so retry policy lives in one place.
    """

    @property
    def model_name(self) -> str: ...

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResult[list[Vector]]:
        ...
