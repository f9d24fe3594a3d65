"""OpenAI chat-completion adapter used to condense text before synthesis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
import openai

from ..errors import InternalTransportError
from .openai_errors import translate_openai_error

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "Summarize the user's text so it can be read aloud. Keep the key facts, "
    "names and conclusions in their original order. Write plain flowing prose "
    "in the language of the source text, with no headings, lists or markdown."
)

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class SummaryConstraints:
    max_output_tokens: int
    temperature: float = 0.3
    instructions: str = SUMMARY_SYSTEM_PROMPT


class SummaryClient:
    """Stream a summary from the chat completions API."""

    def __init__(self, client: openai.AsyncOpenAI, *, model: str) -> None:
        self._client = client
        self.model = model

    async def summarize(
        self,
        text: str,
        constraints: SummaryConstraints,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Return the summary of ``text``.

        Progress is estimated from streamed chunks against the output token
        budget and reported as 0-99 until the stream ends, then 100.
        """
        budget = max(1, constraints.max_output_tokens)
        fragments: list[str] = []
        received = 0

        logger.info(
            "Requesting summary of %d chars from %s (max %d tokens)",
            len(text),
            self.model,
            budget,
        )
        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": constraints.instructions},
                    {"role": "user", "content": text},
                ],
                max_tokens=budget,
                temperature=constraints.temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if not delta:
                    continue
                fragments.append(delta)
                received += 1
                if on_progress is not None:
                    on_progress(min(99, received * 100 // budget))
        except openai.OpenAIError as exc:
            raise translate_openai_error(exc) from exc
        except httpx.HTTPError as exc:
            raise InternalTransportError(
                f"Summary stream interrupted: {exc}"
            ) from exc

        summary = "".join(fragments).strip()
        if on_progress is not None:
            on_progress(100)
        logger.info("Summary complete: %d chars -> %d chars", len(text), len(summary))
        return summary


__all__ = ["SUMMARY_SYSTEM_PROMPT", "SummaryClient", "SummaryConstraints"]
