from __future__ import annotations

import httpx

# Requires: pip install openai
import openai
from openai import OpenAI

from docqa.domain.models import FailureKind, ProviderFailure


def build_openai_client(
    api_key: str,
    *,
    pool_size: int = 10,
    timeout_s: float = 30.0,
    base_url: str | None = None,
) -> OpenAI:
    """
    One pooled client per process.

    The SDK's own retries are disabled: EmbeddingClient and AnswerSynthesizer
    own the retry budget, and stacking both would multiply attempts.
    """
    http_client = openai.DefaultHttpxClient(
        limits=httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size),
    )
    return OpenAI(
        api_key=api_key,
        base_url=base_url,
        max_retries=0,
        timeout=timeout_s,
        http_client=http_client,
    )


def classify_openai_error(exc: openai.OpenAIError) -> ProviderFailure:
    """
    Map an SDK exception onto the retryable / rejected split.

    Timeouts, connection errors, 408 and 5xx are retryable. Every other
    status (bad request, auth, quota, rate limit) is a rejection.
    """
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return ProviderFailure(kind=FailureKind.RETRYABLE, message=f"{type(exc).__name__}: {exc}")

    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        kind = FailureKind.RETRYABLE if status == 408 or status >= 500 else FailureKind.REJECTED
        return ProviderFailure(kind=kind, message=f"HTTP {status}: {exc.message}", status_code=status)

    # Response parsing and other client-side SDK errors
    return ProviderFailure(kind=FailureKind.REJECTED, message=f"{type(exc).__name__}: {exc}")


def timeout_options(timeout: float | None) -> dict[str, float]:
    # timeout=None means "no timeout" to the SDK, so only pass a real value
    return {} if timeout is None else {"timeout": timeout}
