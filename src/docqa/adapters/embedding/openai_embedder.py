from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

# Requires: pip install openai, and set OPENAI_API_KEY in env
import openai
from openai import OpenAI

from docqa.adapters.openai_client import classify_openai_error, timeout_options
from docqa.domain.models import ProviderFailure, ProviderResult, ProviderSuccess, Vector


@dataclass(frozen=True, slots=True)
class OpenAIEmbedder:
    """
    OpenAI embeddings adapter.

    Notes:
      - shares one pooled OpenAI client (see build_openai_client)
      - returns vectors in the same order as inputs
      - SDK exceptions come back as ProviderFailure, never raised
    """
    client: OpenAI
    model: str = "text-embedding-3-small"

    @property
    def model_name(self) -> str:
        return self.model

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResult[list[Vector]]:
        try:
            resp = self.client.embeddings.create(
                model=self.model,
                input=list(texts),
                **timeout_options(timeout),
            )
        except openai.OpenAIError as e:
            return classify_openai_error(e)

        # OpenAI tags each item with its input index; don't rely on list order
        data = sorted(resp.data, key=lambda item: item.index)
        return ProviderSuccess([list(item.embedding) for item in data])
