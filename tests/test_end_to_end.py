"""
Store -> retrieve -> answer, wired the way the service wires it.
"""

import json

import pytest

from docqa.adapters.tracing.jsonl_logger import JsonlQueryLogger
from docqa.app.pipeline import answer_query
from docqa.domain.errors import ProviderUnavailable
from docqa.domain.models import FailureKind, ProviderFailure, Query

QUESTION = "What is the capital of France?"


@pytest.fixture
def corpus(store):
    paris = store.create("Paris is the capital of France")
    berlin = store.create("Berlin is the capital of Germany")
    return paris, berlin


class TestCapitalScenario:

    def test_question_finds_and_cites_paris(self, corpus, retriever, synthesizer, generator):
        paris, _ = corpus

        result = answer_query(Query(text=QUESTION, top_k=1), retriever=retriever, synthesizer=synthesizer)

        assert [m.document_id for m in result.matches] == [paris.id]
        assert result.matches[0].score > 0.5
        assert list(result.answer.sources) == [paris.id]
        assert result.answer.insufficient_context is False
        assert "Paris is the capital of France" in generator.prompts[0]

    def test_update_re_syncs_embedding(self, corpus, store, retriever, synthesizer, generator):
        paris, _ = corpus

        store.update(paris.id, content="Lyon is a city in France")
        result = answer_query(Query(text=QUESTION, top_k=1), retriever=retriever, synthesizer=synthesizer)

        assert paris.id not in [m.document_id for m in result.matches]
        assert result.answer.insufficient_context is True
        assert generator.call_count == 0

    def test_deleted_document_is_not_retrieved(self, corpus, store, retriever, synthesizer):
        paris, _ = corpus

        store.delete(paris.id)
        result = answer_query(Query(text=QUESTION), retriever=retriever, synthesizer=synthesizer)

        assert paris.id not in [m.document_id for m in result.matches]


class TestFailureSurfacing:

    def test_provider_error_is_not_replaced_by_canned_answer(self, corpus, retriever, synthesizer, generator):
        generator.failures.extend([ProviderFailure(kind=FailureKind.RETRYABLE, message="503")] * 3)

        with pytest.raises(ProviderUnavailable):
            answer_query(Query(text=QUESTION), retriever=retriever, synthesizer=synthesizer)


class TestTracing:

    def test_search_is_traced_as_jsonl(self, tmp_path, corpus, retriever, synthesizer):
        paris, _ = corpus
        tracer = JsonlQueryLogger(tmp_path)

        answer_query(Query(text=QUESTION, top_k=1), retriever=retriever, synthesizer=synthesizer, tracer=tracer)
        answer_query(Query(text="thyroid"), retriever=retriever, synthesizer=synthesizer, tracer=tracer)

        lines = (tmp_path / "queries.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first, second = (json.loads(line) for line in lines)
        assert first["query"] == QUESTION
        assert first["sources"] == [paris.id]
        assert first["retrieved"][0][0] == paris.id
        assert second["insufficient_context"] is True

    def test_trace_records_applied_defaults(self, tmp_path, corpus, retriever, synthesizer):
        tracer = JsonlQueryLogger(tmp_path)

        answer_query(Query(text=QUESTION), retriever=retriever, synthesizer=synthesizer, tracer=tracer)
        answer_query(Query(text=QUESTION, top_k=2, min_score=0.1), retriever=retriever, synthesizer=synthesizer, tracer=tracer)

        lines = (tmp_path / "queries.jsonl").read_text(encoding="utf-8").splitlines()
        defaulted, explicit = (json.loads(line) for line in lines)
        assert (defaulted["top_k"], defaulted["min_score"]) == (5, 0.5)
        assert (explicit["top_k"], explicit["min_score"]) == (2, 0.1)
