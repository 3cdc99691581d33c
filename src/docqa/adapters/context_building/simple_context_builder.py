from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from docqa.domain.models import ContextPack, RetrievedMatch


@dataclass(frozen=True, slots=True)
class SimpleContextBuilder:
    """
    Packs ranked matches into a prompt:
      - matches are taken in the given (rank) order
      - the summed content length stays within budget_chars
      - the first match that does not fit ends packing, so the lowest
        ranked are the ones dropped and no document is cut mid-text
    """
    include_scores: bool = False

    def build(
        self,
        question: str,
        matches: Sequence[RetrievedMatch],
        *,
        budget_chars: int,
    ) -> ContextPack:
        chosen: list[RetrievedMatch] = []
        used = 0

        for match in matches:
            size = len(match.content)
            if used + size > budget_chars:
                break
            chosen.append(match)
            used += size

        return ContextPack(
            question=question,
            matches=tuple(chosen),
            rendered_prompt=self._render_prompt(question, chosen),
            budget_chars=budget_chars,
            chars_used=used,
        )

    def _render_prompt(self, question: str, matches: Sequence[RetrievedMatch]) -> str:
        lines: list[str] = []
        lines.append("You are given CONTEXT documents. Answer the QUESTION using only the CONTEXT.\n")
        lines.append("If the answer is not supported by the CONTEXT, say you don't know.\n")
        lines.append("CONTEXT:\n")

        for match in matches:
            label = f"[{match.document_id}]"
            if self.include_scores:
                label += f" score={match.score:.4f}"
            lines.append(label)
            lines.append(match.content.strip())
            lines.append("")  # blank line

        lines.append("QUESTION:")
        lines.append(question.strip())
        lines.append("")
        lines.append("Answer clearly and cite document ids like [id] where relevant.")
        return "\n".join(lines).strip() + "\n"
