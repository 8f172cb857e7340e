"""Process entry point: wire settings, storage and strategies into the worker.

Run with ``python -m learnd.tasks.runner`` or the ``learnd-worker`` script.
"""

from __future__ import annotations

import asyncio
import signal

import asyncpg
import structlog

from learnd.core.config import settings
from learnd.core.db import close_db_pool, get_db_pool
from learnd.core.logging_setup import configure_logging
from learnd.core.openai_client import close_openai_client, get_openai_client
from learnd.enrichers.podcast import PodcastEnricher
from learnd.enrichers.registry import EnricherRegistry
from learnd.enrichers.web import WebEnricher
from learnd.enrichers.youtube import YouTubeEnricher
from learnd.repositories.entry import EntryRepository
from learnd.repositories.summary_cache import SummaryCacheRepository
from learnd.services.safe_fetch import SafeFetcher
from learnd.services.summarizer import OpenAISummarizer, Summarizer
from learnd.tasks.worker import PipelineWorker

logger = structlog.get_logger(__name__)

# Upper bound for draining in-flight batches on shutdown before cancelling them.
SHUTDOWN_TIMEOUT_SECONDS = 30.0


def build_registry(fetcher: SafeFetcher) -> EnricherRegistry:
    registry = EnricherRegistry(fallback=WebEnricher(fetcher))
    registry.register(PodcastEnricher(fetcher))
    if settings.YOUTUBE_API_KEY:
        registry.register(
            YouTubeEnricher(
                settings.YOUTUBE_API_KEY,
                fetcher,
                api_base_url=settings.YOUTUBE_API_BASE_URL,
            )
        )
    else:
        logger.warning("runner.youtube_disabled", reason="YOUTUBE_API_KEY not set")
    return registry


def build_summarizer() -> Summarizer | None:
    if not settings.OPENAI_API_KEY:
        logger.warning("runner.summarizer_disabled", reason="OPENAI_API_KEY not set")
        return None
    return OpenAISummarizer(get_openai_client())


def build_worker(pool: asyncpg.Pool) -> PipelineWorker:
    fetcher = SafeFetcher()
    return PipelineWorker(
        EntryRepository(pool),
        SummaryCacheRepository(pool),
        build_registry(fetcher),
        build_summarizer(),
    )


async def run() -> None:
    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
    logger.info("runner.starting", environment=settings.ENVIRONMENT)

    pool = await get_db_pool()
    worker = build_worker(pool)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    await worker.start()
    try:
        await shutdown.wait()
        logger.info("runner.shutdown_requested")
    finally:
        await worker.stop(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        await close_openai_client()
        await close_db_pool()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        logger.info("runner.stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
