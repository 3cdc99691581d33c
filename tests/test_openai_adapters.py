"""
OpenAI adapters against a mocked SDK client: response mapping and the
retryable / rejected split.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from docqa.adapters.embedding.dummy_embedder import HashingEmbedder
from docqa.adapters.embedding.openai_embedder import OpenAIEmbedder
from docqa.adapters.generation.openai_chat import OpenAIChatGenerator
from docqa.adapters.openai_client import classify_openai_error
from docqa.domain.models import FailureKind, ProviderFailure, ProviderSuccess

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def status_error(status: int, cls=openai.APIStatusError):
    return cls(f"status {status}", response=httpx.Response(status, request=REQUEST), body=None)


class TestClassifyOpenAIError:

    @pytest.mark.parametrize("exc", [
        openai.APITimeoutError(request=REQUEST),
        openai.APIConnectionError(request=REQUEST),
        status_error(500, openai.InternalServerError),
        status_error(503),
        status_error(408),
    ])
    def test_retryable(self, exc):
        assert classify_openai_error(exc).kind is FailureKind.RETRYABLE

    @pytest.mark.parametrize("exc", [
        status_error(429, openai.RateLimitError),
        status_error(401, openai.AuthenticationError),
        status_error(400, openai.BadRequestError),
    ])
    def test_rejected(self, exc):
        failure = classify_openai_error(exc)
        assert failure.kind is FailureKind.REJECTED
        assert failure.status_code == exc.status_code


class TestOpenAIEmbedder:

    def test_vectors_follow_input_order(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.0, 1.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0]),
        ])

        result = OpenAIEmbedder(client=client, model="m").embed_texts(["a", "b"], timeout=2.5)

        assert result == ProviderSuccess([[1.0, 0.0], [0.0, 1.0]])
        client.embeddings.create.assert_called_once_with(model="m", input=["a", "b"], timeout=2.5)

    def test_no_timeout_leaves_sdk_default(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(data=[])

        OpenAIEmbedder(client=client).embed_texts([])

        assert "timeout" not in client.embeddings.create.call_args.kwargs

    def test_sdk_error_becomes_failure(self):
        client = MagicMock()
        client.embeddings.create.side_effect = status_error(429, openai.RateLimitError)

        result = OpenAIEmbedder(client=client).embed_texts(["a"])

        assert isinstance(result, ProviderFailure)
        assert not result.retryable


class TestOpenAIChatGenerator:

    def test_returns_stripped_completion(self):
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="  Paris.\n"))]
        )

        result = OpenAIChatGenerator(client=client, model="chat").generate("prompt")

        assert result == ProviderSuccess("Paris.")
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1] == {"role": "user", "content": "prompt"}

    def test_timeout_is_retryable(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.APITimeoutError(request=REQUEST)

        result = OpenAIChatGenerator(client=client).generate("prompt", timeout=1.0)

        assert isinstance(result, ProviderFailure)
        assert result.retryable


class TestHashingEmbedder:

    def test_deterministic_and_normalized(self):
        embedder = HashingEmbedder(dim=64)

        first = embedder.embed_texts(["Paris is the capital of France"]).value[0]
        again = embedder.embed_texts(["Paris is the capital of France"]).value[0]

        assert first == again
        assert len(first) == 64
        assert sum(x * x for x in first) == pytest.approx(1.0)

    def test_no_tokens_gives_zero_vector(self):
        assert HashingEmbedder(dim=8).embed_texts(["..."]).value[0] == [0.0] * 8
