from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from docqa.domain.errors import ProviderRejected
from docqa.domain.models import Answer, RetrievedMatch
from docqa.ports import ContextBuilder, GenerationProvider
from docqa.utils.retry import Deadline, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

INSUFFICIENT_CONTEXT_ANSWER = (
    "I couldn't find any stored documents relevant enough to answer this question."
)


def insufficient_context() -> Answer:
    return Answer(text=INSUFFICIENT_CONTEXT_ANSWER, sources=(), insufficient_context=True)


@dataclass(frozen=True, slots=True)
class AnswerSynthesizer:
    """
    Turns ranked matches into a cited answer.

    No matches (or nothing fitting the budget) short-circuits to the canned
    answer without touching the generation model.
    """
    generator: GenerationProvider
    context_builder: ContextBuilder
    budget_chars: int = 6000
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    timeout_s: Optional[float] = 60.0
    sleep: Callable[[float], None] = time.sleep

    def answer(
        self,
        question: str,
        matches: Sequence[RetrievedMatch],
        *,
        deadline: Optional[Deadline] = None,
    ) -> Answer:
        if not matches:
            return insufficient_context()

        context = self.context_builder.build(question, matches, budget_chars=self.budget_chars)
        if not context.matches:
            logger.info(
                "No match fits the %d char context budget (top match is %d chars)",
                self.budget_chars, len(matches[0].content),
            )
            return insufficient_context()

        text = call_with_retry(
            lambda timeout: self.generator.generate(context.rendered_prompt, timeout=timeout),
            policy=self.policy,
            what=f"generation ({self.generator.model_name})",
            timeout=self.timeout_s,
            deadline=deadline,
            sleep=self.sleep,
        )
        if not isinstance(text, str) or not text.strip():
            raise ProviderRejected("malformed generation response: empty completion")

        logger.debug(
            "Generated answer from %d/%d matches (%d chars of context)",
            len(context.matches), len(matches), context.chars_used,
        )
        return Answer(text=text.strip(), sources=context.sources)
