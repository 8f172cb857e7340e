"""Summarization providers used by the worker's summary loop."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

import structlog
from openai import AsyncOpenAI

from learnd.core.config import settings
from learnd.core.constants import Summary
from learnd.core.errors import SummarizerError
from learnd.core.openai_client import get_openai_client
from learnd.models.entities import SummaryInput, SummaryResult

logger = structlog.get_logger(__name__)


@runtime_checkable
class Summarizer(Protocol):
    provider: str
    model: str
    version: str

    async def summarize(self, data: SummaryInput) -> SummaryResult: ...


def build_prompt(data: SummaryInput) -> str:
    """Render the learning-log prompt for one entry."""
    source_type = getattr(data.source_type, "value", data.source_type)
    parts = [
        f"Summarize this {source_type} in 1-2 concise sentences for a learning log. "
        "Focus on the key takeaway or main topic. Be direct and informative.\n\n"
    ]
    if data.title:
        parts.append(f"Title: {data.title}\n\n")
    if data.description:
        description = data.description
        if len(description) > Summary.PROMPT_DESCRIPTION_CHARS:
            description = description[: Summary.PROMPT_DESCRIPTION_CHARS] + "..."
        parts.append(f"Description: {description}\n\n")
    if data.tag:
        parts.append(f"Topics: {data.tag}\n\n")
    parts.append("Summary:")
    return "".join(parts)


class OpenAISummarizer:
    provider = Summary.PROVIDER_OPENAI
    version = Summary.VERSION

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._client = client
        self.model = model or settings.SUMMARIZER_MODEL
        self.temperature = (
            temperature if temperature is not None else settings.SUMMARIZER_TEMPERATURE
        )
        self.max_tokens = max_tokens if max_tokens is not None else settings.SUMMARIZER_MAX_TOKENS

    async def summarize(self, data: SummaryInput) -> SummaryResult:
        client = self._client or get_openai_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(data)}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            logger.error("summarizer.openai_failed", model=self.model, error=str(exc))
            raise SummarizerError(f"openai generation failed: {exc}") from exc

        text = ""
        if response.choices:
            text = (response.choices[0].message.content or "").strip()
        if not text:
            raise SummarizerError("no text generated")

        return SummaryResult(
            text=text,
            provider=self.provider,
            model=self.model,
            version=self.version,
            generated_at=datetime.now(UTC),
        )
