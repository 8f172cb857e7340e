"""Shared OpenAI client singleton.

One AsyncOpenAI instance (and therefore one httpx connection pool) per worker
process, reused by every summarization call.
"""

from openai import AsyncOpenAI

from learnd.core.config import settings

_openai_client: AsyncOpenAI | None = None


def get_openai_client() -> AsyncOpenAI:
    """Return (or lazily create) the module-level AsyncOpenAI client."""
    global _openai_client
    if _openai_client is None:
        _openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _openai_client


async def close_openai_client() -> None:
    global _openai_client
    if _openai_client is not None:
        await _openai_client.close()
        _openai_client = None
