"""Background pipeline worker: two independent polling loops over ``entries``.

The enrichment loop drives ``pending`` records through the enricher registry;
the summarization loop picks up records whose enrichment finished ``ok`` and
either copies a cached summary or asks the summarizer for a new one.

Every status change is a conditional update at the storage layer (claim with
``expected=pending``, write with ``expected=processing``). A ``False`` return
means a concurrent refresh won and the record is left alone for this tick.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from learnd.core.config import settings
from learnd.core.constants import ProcessingStatus
from learnd.enrichers.registry import EnricherRegistry
from learnd.models.entities import (
    EnrichmentResult,
    Entry,
    SummaryCacheEntry,
    SummaryInput,
    SummaryResult,
)
from learnd.repositories.entry import EntryRepository
from learnd.repositories.summary_cache import SummaryCacheRepository, hash_url
from learnd.services.summarizer import Summarizer
from learnd.services.text import sanitize_json, sanitize_text

logger = structlog.get_logger(__name__)

_PENDING = ProcessingStatus.PENDING
_PROCESSING = ProcessingStatus.PROCESSING


def _error_message(exc: BaseException) -> str:
    return sanitize_text(str(exc)) or type(exc).__name__


def _sanitize_enrichment(result: EnrichmentResult) -> EnrichmentResult:
    return EnrichmentResult(
        canonical_url=sanitize_text(result.canonical_url),
        domain=sanitize_text(result.domain),
        source_type=result.source_type,
        title=sanitize_text(result.title),
        description=sanitize_text(result.description),
        published_at=result.published_at,
        runtime_seconds=result.runtime_seconds,
        metadata=sanitize_json(result.metadata or {}),
    )


class PipelineWorker:
    def __init__(
        self,
        entries: EntryRepository,
        cache: SummaryCacheRepository,
        registry: EnricherRegistry,
        summarizer: Summarizer | None = None,
        *,
        interval: float | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._entries = entries
        self._cache = cache
        self._registry = registry
        self._summarizer = summarizer
        self.interval = interval if interval is not None else settings.WORKER_INTERVAL_SECONDS
        self.batch_size = batch_size if batch_size is not None else settings.WORKER_BATCH_SIZE
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Spawn the enrichment and summarization loops."""
        if self.running:
            logger.warning("worker.already_running")
            return
        self._stop_event.clear()
        logger.info(
            "worker.starting",
            interval=self.interval,
            batch_size=self.batch_size,
            summarizer=getattr(self._summarizer, "provider", None),
        )
        self._tasks = [
            asyncio.create_task(
                self._run_loop("enrichment", self.process_enrichment_batch),
                name="learnd-enrichment-loop",
            ),
            asyncio.create_task(
                self._run_loop("summarization", self.process_summary_batch),
                name="learnd-summarization-loop",
            ),
        ]

    async def stop(self, timeout: float | None = None) -> None:
        """Signal both loops and wait until they have exited.

        In-flight batches finish first. When ``timeout`` elapses before that,
        the loop tasks are cancelled and awaited.
        """
        self._stop_event.set()
        if not self._tasks:
            return
        logger.info("worker.stopping")
        _, pending = await asyncio.wait(self._tasks, timeout=timeout)
        if pending:
            logger.warning("worker.stop_timeout", cancelled=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        logger.info("worker.stopped")

    async def _run_loop(self, name: str, step: Callable[[], Awaitable[None]]) -> None:
        logger.info("worker.loop_started", loop=name)
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except TimeoutError:
                try:
                    await step()
                except Exception:
                    logger.exception("worker.tick_failed", loop=name)
        logger.info("worker.loop_stopped", loop=name)

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def process_enrichment_batch(self) -> None:
        try:
            batch = await self._entries.list_pending_enrichment(self.batch_size)
        except Exception:
            logger.exception("enrichment.list_failed")
            return
        for entry in batch:
            try:
                await self._enrich_entry(entry)
            except Exception:
                # Storage write failed; the record is picked up again on a later tick.
                logger.exception("enrichment.storage_failed", entry_id=entry.id)

    async def _enrich_entry(self, entry: Entry) -> None:
        claimed = await self._entries.update_enrichment_status(
            entry.id, _PROCESSING, expected=_PENDING
        )
        if not claimed:
            logger.info("enrichment.claim_lost", entry_id=entry.id)
            return

        try:
            await self._run_enrichment(entry)
        except BaseException:
            # Storage failure or cancellation: hand the claim back for a later tick.
            await self._release_claim(
                self._entries.update_enrichment_status, entry.id, "enrichment"
            )
            raise

    async def _run_enrichment(self, entry: Entry) -> None:
        try:
            result = await self._registry.enrich(entry.source_url)
        except Exception as exc:
            logger.warning(
                "enrichment.failed",
                entry_id=entry.id,
                url=entry.source_url[:200],
                error=str(exc),
            )
            await self._entries.update_enrichment_status(
                entry.id, ProcessingStatus.FAILED, _error_message(exc), expected=_PROCESSING
            )
            return

        stored = await self._entries.update_enrichment_result(
            entry.id, _sanitize_enrichment(result), expected=_PROCESSING
        )
        if not stored:
            logger.info("enrichment.result_discarded", entry_id=entry.id)
            return
        logger.info(
            "enrichment.completed",
            entry_id=entry.id,
            source_type=result.source_type.value,
            runtime_seconds=result.runtime_seconds,
        )

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    async def process_summary_batch(self) -> None:
        if self._summarizer is None:
            return
        try:
            batch = await self._entries.list_pending_summary(self.batch_size)
        except Exception:
            logger.exception("summary.list_failed")
            return
        for entry in batch:
            try:
                await self._summarize_entry(entry)
            except Exception:
                logger.exception("summary.storage_failed", entry_id=entry.id)

    async def _summarize_entry(self, entry: Entry) -> None:
        if not entry.has_summarizable_text:
            await self._entries.update_summary_status(
                entry.id, ProcessingStatus.SKIPPED, expected=_PENDING
            )
            logger.info("summary.skipped", entry_id=entry.id, reason="no_title_or_description")
            return

        cache_url = entry.cache_url
        url_hash = hash_url(cache_url)

        cached = await self._lookup_cache(url_hash)
        if cached is not None:
            copied = await self._entries.update_summary_result(
                entry.id, cached.to_result(datetime.now(UTC)), expected=_PENDING
            )
            logger.info("summary.cache_hit", entry_id=entry.id, copied=copied)
            return

        claimed = await self._entries.update_summary_status(
            entry.id, _PROCESSING, expected=_PENDING
        )
        if not claimed:
            logger.info("summary.claim_lost", entry_id=entry.id)
            return

        try:
            await self._run_summary(entry, url_hash, cache_url)
        except BaseException:
            await self._release_claim(self._entries.update_summary_status, entry.id, "summary")
            raise

    async def _run_summary(self, entry: Entry, url_hash: str, cache_url: str) -> None:
        summary_input = SummaryInput(
            title=entry.title or "",
            description=entry.description or "",
            source_type=entry.source_type,
            url=entry.source_url,
            tag=entry.tag or "",
        )
        try:
            result = await self._summarizer.summarize(summary_input)
        except Exception as exc:
            logger.warning("summary.failed", entry_id=entry.id, error=str(exc))
            await self._entries.update_summary_status(
                entry.id, ProcessingStatus.FAILED, _error_message(exc), expected=_PROCESSING
            )
            return

        result = SummaryResult(
            text=sanitize_text(result.text),
            provider=result.provider,
            model=result.model,
            version=result.version,
            generated_at=result.generated_at,
        )
        stored = await self._entries.update_summary_result(
            entry.id, result, expected=_PROCESSING
        )
        if not stored:
            logger.info("summary.result_discarded", entry_id=entry.id)
            return
        logger.info("summary.completed", entry_id=entry.id, model=result.model)

        await self._store_cache(url_hash, cache_url, result)

    async def _lookup_cache(self, url_hash: str) -> SummaryCacheEntry | None:
        # A broken cache only costs a summarizer call.
        try:
            return await self._cache.get_by_hash(url_hash)
        except Exception:
            logger.exception("summary.cache_lookup_failed", url_hash=url_hash)
            return None

    async def _store_cache(self, url_hash: str, cache_url: str, result: SummaryResult) -> None:
        try:
            await self._cache.put(
                SummaryCacheEntry(
                    url_hash=url_hash,
                    canonical_url=cache_url,
                    summary_text=result.text,
                    provider=result.provider,
                    model=result.model,
                    version=result.version,
                )
            )
        except Exception:
            logger.exception("summary.cache_write_failed", url_hash=url_hash)

    async def _release_claim(self, update_status, entry_id: str, stage: str) -> None:
        """Best-effort move of a ``processing`` record back to ``pending``."""
        try:
            released = await update_status(entry_id, _PENDING, expected=_PROCESSING)
        except Exception:
            logger.exception("worker.release_failed", stage=stage, entry_id=entry_id)
            return
        logger.info("worker.claim_released", stage=stage, entry_id=entry_id, released=released)
