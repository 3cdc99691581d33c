from __future__ import annotations

import re
from dataclasses import dataclass
from hashlib import sha256
from math import sqrt
from typing import Optional, Sequence

from docqa.domain.models import ProviderResult, ProviderSuccess, Vector

_TOKEN = re.compile(r"\w+", re.UNICODE)


@dataclass(frozen=True, slots=True)
class HashingEmbedder:
    """
    Deterministic offline embeddings (feature hashing of lowercase word tokens).

    Texts sharing words land close together, which is enough for local
    development and wiring tests without an API key. Stable across runs.
    """
    dim: int = 256
    model: str = "hashing-embedder-v1"

    @property
    def model_name(self) -> str:
        return self.model

    def embed_texts(
        self,
        texts: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResult[list[Vector]]:
        return ProviderSuccess([self._embed_one(text) for text in texts])

    def _embed_one(self, text: str) -> Vector:
        vector = [0.0] * self.dim
        for token in _TOKEN.findall(text.lower()):
            digest = sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dim
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = sqrt(sum(x * x for x in vector))
        if norm == 0.0:
            return vector
        return [x / norm for x in vector]
