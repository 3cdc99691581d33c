from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from docqa.domain.errors import InvalidInput, ProviderRejected
from docqa.domain.models import Vector
from docqa.ports import EmbeddingProvider
from docqa.utils.retry import Deadline, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmbeddingClient:
    """
    Retrying, validating front for an EmbeddingProvider.

    - empty/blank text -> InvalidInput
    - retryable failures -> bounded exponential backoff, then ProviderUnavailable
    - rejected failures -> ProviderRejected, no retry
    - malformed responses -> ProviderRejected
    """
    provider: EmbeddingProvider
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    batch_size: int = 64
    timeout_s: Optional[float] = 30.0
    sleep: Callable[[float], None] = time.sleep

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    def embed(self, text: str, *, deadline: Optional[Deadline] = None) -> Vector:
        return self.embed_batch([text], deadline=deadline)[0]

    def embed_batch(self, texts: Sequence[str], *, deadline: Optional[Deadline] = None) -> list[Vector]:
        for i, text in enumerate(texts):
            if not isinstance(text, str) or not text.strip():
                raise InvalidInput(f"text to embed must be non-empty (item {i})")
        if not texts:
            return []

        out: list[Vector] = []
        for start in range(0, len(texts), self.batch_size):
            batch = list(texts[start:start + self.batch_size])
            vectors = call_with_retry(
                lambda timeout: self.provider.embed_texts(batch, timeout=timeout),
                policy=self.policy,
                what=f"embedding ({self.provider.model_name})",
                timeout=self.timeout_s,
                deadline=deadline,
                sleep=self.sleep,
            )
            out.extend(_validate_vectors(vectors, expected=len(batch)))

        _check_dimensions(out)
        logger.debug("Embedded %d text(s) with %s", len(texts), self.provider.model_name)
        return out


def _validate_vectors(vectors: object, *, expected: int) -> list[Vector]:
    if not isinstance(vectors, list) or len(vectors) != expected:
        got = len(vectors) if isinstance(vectors, list) else type(vectors).__name__
        raise ProviderRejected(f"malformed embedding response: expected {expected} vectors, got {got}")

    out: list[Vector] = []
    for vec in vectors:
        if not isinstance(vec, (list, tuple)) or not vec:
            raise ProviderRejected("malformed embedding response: empty or non-list vector")
        floats: Vector = []
        for x in vec:
            if isinstance(x, bool) or not isinstance(x, (int, float)) or not math.isfinite(x):
                raise ProviderRejected("malformed embedding response: non-numeric component")
            floats.append(float(x))
        out.append(floats)
    return out


def _check_dimensions(vectors: list[Vector]) -> None:
    dims = {len(v) for v in vectors}
    if len(dims) > 1:
        raise ProviderRejected(f"malformed embedding response: mixed dimensions {sorted(dims)}")
