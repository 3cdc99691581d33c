from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from docqa.adapters.generation.synthesizer import AnswerSynthesizer
from docqa.domain.models import Query, QueryTrace, RetrievedMatch, SearchResult
from docqa.ports import QueryLogger, Retriever
from docqa.utils.retry import Deadline

logger = logging.getLogger(__name__)


def answer_query(
    query: Query,
    *,
    retriever: Retriever,
    synthesizer: AnswerSynthesizer,
    tracer: Optional[QueryLogger] = None,
    deadline: Optional[Deadline] = None,
) -> SearchResult:
    """
    Retrieve, then synthesize. Provider errors propagate; only a genuinely
    empty retrieval produces the insufficient-context answer.
    """
    query = retriever.with_defaults(query)
    started = time.perf_counter()
    matches = retriever.retrieve(query, deadline=deadline)
    answer = synthesizer.answer(query.text, matches, deadline=deadline)
    latency_ms = int((time.perf_counter() - started) * 1000)

    logger.info(
        "Answered query with %d match(es), %d source(s) in %dms",
        len(matches), len(answer.sources), latency_ms,
    )
    if tracer is not None:
        tracer.log(
            QueryTrace(
                trace_id=uuid.uuid4().hex,
                query=query.text,
                top_k=query.top_k,
                min_score=query.min_score,
                filters=dict(query.filters or {}),
                retrieved=tuple((m.document_id, m.score) for m in matches),
                sources=tuple(answer.sources),
                insufficient_context=answer.insufficient_context,
                latency_ms=latency_ms,
            )
        )

    return SearchResult(answer=answer, matches=tuple(matches))


def retrieve_matches(
    query: Query,
    *,
    retriever: Retriever,
    deadline: Optional[Deadline] = None,
) -> list[RetrievedMatch]:
    return retriever.retrieve(query, deadline=deadline)
