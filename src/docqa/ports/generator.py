from __future__ import annotations

from typing import Optional, Protocol

from docqa.domain.models import ProviderResult


class GenerationProvider(Protocol):
    """
    Produces completion text for a fully rendered prompt.
    """

    @property
    def model_name(self) -> str: ...

    def generate(
        self,
        prompt: str,
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResult[str]:
        ...
