"""
AnswerSynthesizer: canned answer, budget truncation and source attribution.
"""

import pytest

from docqa.adapters.context_building.simple_context_builder import SimpleContextBuilder
from docqa.adapters.generation.synthesizer import INSUFFICIENT_CONTEXT_ANSWER, AnswerSynthesizer
from docqa.domain.errors import ProviderRejected, ProviderUnavailable
from docqa.domain.models import FailureKind, ProviderFailure, RetrievedMatch

from conftest import FAST_POLICY, FakeGenerator, no_sleep


def match(id, content, score):
    return RetrievedMatch(document_id=id, content=content, score=score)


def synth(generator, budget):
    return AnswerSynthesizer(
        generator=generator,
        context_builder=SimpleContextBuilder(),
        budget_chars=budget,
        policy=FAST_POLICY,
        sleep=no_sleep,
    )


class TestEmptyContext:

    def test_no_matches_gives_canned_answer_without_model_call(self, synthesizer, generator):
        answer = synthesizer.answer("What is the capital of France?", [])

        assert answer.text == INSUFFICIENT_CONTEXT_ANSWER
        assert answer.sources == ()
        assert answer.insufficient_context is True
        assert generator.call_count == 0

    def test_nothing_fitting_budget_gives_canned_answer(self, generator):
        answer = synth(generator, budget=5).answer("q", [match("a", "far too long", 0.9)])

        assert answer.insufficient_context is True
        assert generator.call_count == 0


class TestTruncation:

    def test_included_content_stays_within_budget(self, generator):
        matches = [match("a", "x" * 40, 0.9), match("b", "y" * 40, 0.8), match("c", "z" * 40, 0.7)]

        answer = synth(generator, budget=100).answer("q", matches)

        assert answer.sources == ("a", "b")
        prompt = generator.prompts[0]
        assert "x" * 40 in prompt and "y" * 40 in prompt
        assert "z" * 40 not in prompt

    def test_lowest_ranked_dropped_even_if_a_later_one_fits(self, generator):
        matches = [match("a", "x" * 60, 0.9), match("b", "y" * 60, 0.8), match("c", "z", 0.7)]

        answer = synth(generator, budget=100).answer("q", matches)

        assert answer.sources == ("a",)

    def test_sources_keep_rank_order(self, generator):
        matches = [match("m", "one", 0.9), match("a", "two", 0.8), match("z", "three", 0.7)]

        answer = synth(generator, budget=1000).answer("q", matches)

        assert answer.sources == ("m", "a", "z")
        prompt = generator.prompts[0]
        assert prompt.index("[m]") < prompt.index("[a]") < prompt.index("[z]")

    def test_exact_budget_is_allowed(self, generator):
        answer = synth(generator, budget=6).answer("q", [match("a", "abc", 0.9), match("b", "def", 0.8)])
        assert answer.sources == ("a", "b")

    def test_prompt_contains_question(self, synthesizer, generator):
        synthesizer.answer("What is the capital of France?", [match("a", "Paris", 0.9)])
        assert "What is the capital of France?" in generator.prompts[0]


class TestGenerationFailures:

    def test_transient_failures_are_retried(self):
        generator = FakeGenerator(failures=[ProviderFailure(kind=FailureKind.RETRYABLE, message="timeout")])

        answer = synth(generator, budget=100).answer("q", [match("a", "Paris", 0.9)])

        assert generator.call_count == 2
        assert answer.sources == ("a",)

    def test_exhausted_retries_raise_unavailable(self):
        generator = FakeGenerator(failures=[ProviderFailure(kind=FailureKind.RETRYABLE, message="503")] * 3)

        with pytest.raises(ProviderUnavailable):
            synth(generator, budget=100).answer("q", [match("a", "Paris", 0.9)])
        assert generator.call_count == 3

    def test_rejection_is_not_retried(self):
        generator = FakeGenerator(failures=[ProviderFailure(kind=FailureKind.REJECTED, message="401", status_code=401)])

        with pytest.raises(ProviderRejected):
            synth(generator, budget=100).answer("q", [match("a", "Paris", 0.9)])
        assert generator.call_count == 1

    def test_blank_completion_is_rejected(self):
        generator = FakeGenerator(reply="   ")

        with pytest.raises(ProviderRejected):
            synth(generator, budget=100).answer("q", [match("a", "Paris", 0.9)])
