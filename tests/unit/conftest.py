"""Shared fixtures: in-memory repositories, stub enrichers and a stub summarizer."""

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from urllib.parse import urlsplit

import pytest

from learnd.core.constants import ProcessingStatus, SourceType
from learnd.models.entities import (
    EnrichmentResult,
    Entry,
    SummaryCacheEntry,
    SummaryInput,
    SummaryResult,
)

_BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


def _allowed(current: ProcessingStatus, expected) -> bool:
    if expected is None:
        return True
    if isinstance(expected, ProcessingStatus):
        return current == expected
    return current in set(expected)


class InMemoryEntryRepository:
    """Mirrors EntryRepository's conditional-update contract without Postgres."""

    def __init__(self) -> None:
        self.rows: dict[str, Entry] = {}
        self.failing_ids: set[str] = set()
        # Method names whose next call raises once.
        self.fail_once: set[str] = set()
        self.fail_listing = False

    def add(self, entry: Entry) -> Entry:
        self.rows[entry.id] = entry
        return entry

    def get(self, entry_id: str) -> Entry:
        return self.rows[entry_id]

    def _check(self, entry_id: str, operation: str) -> None:
        if entry_id in self.failing_ids:
            raise RuntimeError(f"write failed for {entry_id}")
        if operation in self.fail_once:
            self.fail_once.discard(operation)
            raise RuntimeError(f"{operation} failed for {entry_id}")

    async def get_entry(self, entry_id: str) -> Entry | None:
        row = self.rows.get(entry_id)
        return replace(row) if row else None

    async def list_pending_enrichment(self, limit: int) -> list[Entry]:
        if self.fail_listing:
            raise RuntimeError("database unavailable")
        rows = [r for r in self.rows.values() if r.enrichment_status == ProcessingStatus.PENDING]
        rows.sort(key=lambda r: r.created_at)
        return [replace(r) for r in rows[:limit]]

    async def list_pending_summary(self, limit: int) -> list[Entry]:
        if self.fail_listing:
            raise RuntimeError("database unavailable")
        rows = [
            r
            for r in self.rows.values()
            if r.summary_status == ProcessingStatus.PENDING
            and r.enrichment_status == ProcessingStatus.OK
        ]
        rows.sort(key=lambda r: r.created_at)
        return [replace(r) for r in rows[:limit]]

    async def update_enrichment_status(self, entry_id, status, error=None, *, expected=None):
        self._check(entry_id, "update_enrichment_status")
        row = self.rows.get(entry_id)
        if row is None or not _allowed(row.enrichment_status, expected):
            return False
        row.enrichment_status = status
        row.enrichment_error = error
        if status in (ProcessingStatus.OK, ProcessingStatus.FAILED):
            row.enriched_at = datetime.now(UTC)
        return True

    async def update_enrichment_result(self, entry_id, result: EnrichmentResult, *, expected=None):
        self._check(entry_id, "update_enrichment_result")
        row = self.rows.get(entry_id)
        if row is None or not _allowed(row.enrichment_status, expected):
            return False
        row.canonical_url = result.canonical_url or None
        row.domain = result.domain or None
        row.source_type = result.source_type
        row.title = result.title or None
        row.description = result.description or None
        row.published_at = result.published_at
        row.runtime_seconds = result.runtime_seconds
        row.metadata = dict(result.metadata)
        row.enrichment_status = ProcessingStatus.OK
        row.enrichment_error = None
        row.enriched_at = datetime.now(UTC)
        return True

    async def update_summary_status(self, entry_id, status, error=None, *, expected=None):
        self._check(entry_id, "update_summary_status")
        row = self.rows.get(entry_id)
        if row is None or not _allowed(row.summary_status, expected):
            return False
        row.summary_status = status
        row.summary_error = error
        return True

    async def update_summary_result(self, entry_id, result: SummaryResult, *, expected=None):
        self._check(entry_id, "update_summary_result")
        row = self.rows.get(entry_id)
        if row is None or not _allowed(row.summary_status, expected):
            return False
        row.summary_text = result.text
        row.summary_provider = result.provider
        row.summary_model = result.model
        row.summary_version = result.version
        row.summary_generated_at = result.generated_at
        row.summary_status = ProcessingStatus.OK
        row.summary_error = None
        return True

    async def reset_enrichment(self, entry_id: str) -> bool:
        row = self.rows.get(entry_id)
        if row is None:
            return False
        row.enrichment_status = ProcessingStatus.PENDING
        row.enrichment_error = None
        row.enriched_at = None
        return True

    async def reset_summary(self, entry_id: str) -> bool:
        row = self.rows.get(entry_id)
        if row is None:
            return False
        row.summary_status = ProcessingStatus.PENDING
        row.summary_error = None
        row.summary_generated_at = None
        return True


class InMemorySummaryCache:
    def __init__(self) -> None:
        self.rows: dict[str, SummaryCacheEntry] = {}
        self.puts: list[SummaryCacheEntry] = []

    async def get_by_hash(self, url_hash: str) -> SummaryCacheEntry | None:
        return self.rows.get(url_hash)

    async def put(self, entry: SummaryCacheEntry) -> None:
        stored = replace(entry, created_at=datetime.now(UTC))
        self.rows[entry.url_hash] = stored
        self.puts.append(stored)


class StubEnricher:
    def __init__(
        self,
        name: str = "stub",
        priority: int = 100,
        *,
        handles: Callable[[str], bool] | None = None,
        results: dict[str, EnrichmentResult] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self._handles = handles
        self.results = results or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    def can_handle(self, url: str) -> bool:
        return True if self._handles is None else self._handles(url)

    async def enrich(self, url: str) -> EnrichmentResult:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.results:
            return self.results[url]
        return EnrichmentResult(
            canonical_url=url,
            domain=urlsplit(url).hostname or "",
            source_type=SourceType.ARTICLE,
            title=f"Title of {url}",
            description="A page about something worth remembering.",
        )


class StubSummarizer:
    provider = "stub"
    model = "stub-model"
    version = "1.0.0"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[SummaryInput] = []

    async def summarize(self, data: SummaryInput) -> SummaryResult:
        self.calls.append(data)
        if self.error is not None:
            raise self.error
        return SummaryResult(
            text=f"Summary of {data.title}",
            provider=self.provider,
            model=self.model,
            version=self.version,
            generated_at=datetime.now(UTC),
        )


@pytest.fixture
def entry_repo() -> InMemoryEntryRepository:
    return InMemoryEntryRepository()


@pytest.fixture
def cache_repo() -> InMemorySummaryCache:
    return InMemorySummaryCache()


@pytest.fixture
def make_entry(entry_repo: InMemoryEntryRepository) -> Callable[..., Entry]:
    """Create and store an entry; later calls get later ``created_at`` values."""
    counter = {"n": 0}

    def _make(**overrides) -> Entry:
        counter["n"] += 1
        n = counter["n"]
        source_url = overrides.pop("source_url", f"https://example.com/post-{n}")
        entry = Entry(
            id=overrides.pop("id", f"entry-{n}"),
            source_url=source_url,
            normalized_url=source_url,
            created_at=_BASE_TIME + timedelta(seconds=n),
            updated_at=_BASE_TIME + timedelta(seconds=n),
            **overrides,
        )
        return entry_repo.add(entry)

    return _make


@pytest.fixture
def stub_enricher() -> type[StubEnricher]:
    return StubEnricher


@pytest.fixture
def stub_summarizer() -> type[StubSummarizer]:
    return StubSummarizer
