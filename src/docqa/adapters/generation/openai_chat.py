from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Requires: pip install openai
import openai
from openai import OpenAI

from docqa.adapters.openai_client import classify_openai_error, timeout_options
from docqa.domain.models import ProviderResult, ProviderSuccess

SYSTEM_PROMPT = (
    "You are a precise assistant. Use only the provided CONTEXT. "
    "If the answer cannot be found in the CONTEXT, say you don't know."
)


@dataclass(frozen=True, slots=True)
class OpenAIChatGenerator:
    """
    OpenAI chat generator.
    """
    client: OpenAI
    model: str = "gpt-4o-mini"
    temperature: float = 0.2

    @property
    def model_name(self) -> str:
        return self.model

    def generate(
        self,
        prompt: str,
        *,
        timeout: Optional[float] = None,
    ) -> ProviderResult[str]:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                **timeout_options(timeout),
            )
        except openai.OpenAIError as e:
            return classify_openai_error(e)

        if not resp.choices:
            return ProviderSuccess("")
        return ProviderSuccess((resp.choices[0].message.content or "").strip())
