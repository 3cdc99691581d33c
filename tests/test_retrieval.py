"""
VectorRetriever: threshold, defaults, filters and determinism.
"""

import pytest
from unittest.mock import MagicMock

from docqa.adapters.retrieval.vector_retriever import VectorRetriever
from docqa.domain.errors import IndexUnavailable, InvalidInput, ProviderUnavailable
from docqa.domain.models import FailureKind, ProviderFailure, Query


@pytest.fixture
def seeded(store):
    paris = store.create("Paris is the capital of France", {"lang": "en"})
    berlin = store.create("Berlin is the capital of Germany", {"lang": "en"})
    lyon = store.create("Lyon is a city in France", {"lang": "fr"})
    return {"paris": paris.id, "berlin": berlin.id, "lyon": lyon.id}


class TestRetrieve:

    def test_scores_respect_default_threshold(self, retriever, seeded):
        matches = retriever.retrieve(Query(text="What is the capital of France?"))

        assert matches
        assert all(m.score >= 0.5 for m in matches)
        assert matches[0].document_id == seeded["paris"]

    def test_query_threshold_overrides_default(self, retriever, seeded):
        loose = retriever.retrieve(Query(text="What is the capital of France?", min_score=0.0))
        strict = retriever.retrieve(Query(text="What is the capital of France?", min_score=0.8))

        assert len(loose) == 3
        assert [m.document_id for m in strict] == [seeded["paris"]]

    def test_nothing_above_threshold_is_empty_not_error(self, retriever, seeded):
        assert retriever.retrieve(Query(text="thyroid cholesterol")) == []

    def test_top_k_limits_results(self, retriever, seeded):
        matches = retriever.retrieve(Query(text="capital of France", top_k=1, min_score=0.0))
        assert len(matches) == 1

    def test_default_top_k_is_passed_to_index(self, embedder):
        index = MagicMock()
        index.query.return_value = []
        retriever = VectorRetriever(embedder=embedder, index=index, default_top_k=7)

        retriever.retrieve(Query(text="Paris", filters={"lang": "en"}))

        _, kwargs = index.query.call_args
        assert kwargs["top_k"] == 7
        assert kwargs["filters"] == {"lang": "en"}

    def test_filters_restrict_matches(self, retriever, seeded):
        matches = retriever.retrieve(Query(text="France", filters={"lang": "fr"}, min_score=0.0))
        assert [m.document_id for m in matches] == [seeded["lyon"]]

    def test_invalid_filter_value(self, retriever):
        with pytest.raises(InvalidInput):
            retriever.retrieve(Query(text="France", filters={"lang": ["fr"]}))

    def test_invalid_top_k(self, retriever, seeded):
        with pytest.raises(InvalidInput):
            retriever.retrieve(Query(text="France", top_k=0))

    def test_identical_queries_give_identical_results(self, retriever, seeded):
        q = Query(text="capital", min_score=0.0)
        assert retriever.retrieve(q) == retriever.retrieve(q)

    def test_equal_scores_ordered_by_id(self, retriever, seeded):
        matches = retriever.retrieve(Query(text="capital", min_score=0.0))
        tied = [m for m in matches if m.document_id in (seeded["paris"], seeded["berlin"])]

        assert tied[0].score == pytest.approx(tied[1].score)
        assert [m.document_id for m in tied] == sorted([seeded["paris"], seeded["berlin"]])


class TestErrorPropagation:

    def test_embedding_failure_propagates(self, retriever, embedding_provider):
        embedding_provider.failures.extend([ProviderFailure(kind=FailureKind.RETRYABLE, message="503")] * 3)

        with pytest.raises(ProviderUnavailable):
            retriever.retrieve(Query(text="Paris"))

    def test_index_failure_propagates(self, embedder):
        index = MagicMock()
        index.query.side_effect = IndexUnavailable("down")
        retriever = VectorRetriever(embedder=embedder, index=index)

        with pytest.raises(IndexUnavailable):
            retriever.retrieve(Query(text="Paris"))
        assert index.query.call_count == 1


class TestWithDefaults:

    def test_fills_only_missing_values(self, retriever):
        assert retriever.with_defaults(Query(text="q")) == Query(text="q", top_k=5, min_score=0.5)
        assert retriever.with_defaults(Query(text="q", top_k=1, min_score=0.0)) == Query(text="q", top_k=1, min_score=0.0)
