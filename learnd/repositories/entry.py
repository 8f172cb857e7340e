"""EntryRepository: all asyncpg queries the pipeline runs against ``entries``.

Rule: SQL only, no pipeline logic. Every status write is a single conditional
UPDATE; passing ``expected`` turns it into "update only if the stage is still
in one of these statuses", and the boolean return says whether a row changed.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

import asyncpg

from learnd.core.constants import ProcessingStatus
from learnd.models.entities import EnrichmentResult, Entry, SummaryResult


_ENTRY_COLUMNS = """
    id::text, created_at, updated_at, source_url, normalized_url,
    tag, notes, time_spent_seconds, quantity,
    canonical_url, domain, source_type, title, description,
    published_at, runtime_seconds, metadata_json AS metadata,
    enrichment_status, enrichment_error, enriched_at,
    summary_text, summary_status, summary_error,
    summary_provider, summary_model, summary_version, summary_generated_at
"""

Expected = ProcessingStatus | Iterable[ProcessingStatus] | None


def _expected_param(expected: Expected) -> list[str] | None:
    if expected is None:
        return None
    if isinstance(expected, ProcessingStatus):
        return [expected.value]
    return [status.value for status in expected]


def _changed(command_tag: str) -> bool:
    # asyncpg returns the command tag, e.g. "UPDATE 1".
    try:
        return int(command_tag.split()[-1]) > 0
    except (AttributeError, IndexError, ValueError):
        return False


def _nullable(value: str | None) -> str | None:
    return value if value else None


class EntryRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def insert_entry(
        self,
        *,
        source_url: str,
        normalized_url: str,
        tag: str | None = None,
        notes: str | None = None,
        time_spent_seconds: int | None = None,
        quantity: int | None = None,
    ) -> Entry:
        """Insert a captured URL with both stages pending."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO entries (
                    source_url, normalized_url, tag, notes, time_spent_seconds, quantity,
                    enrichment_status, summary_status
                ) VALUES ($1, $2, $3, $4, $5, $6, 'pending', 'pending')
                RETURNING {_ENTRY_COLUMNS}
                """,
                source_url,
                normalized_url,
                tag,
                notes,
                time_spent_seconds,
                quantity,
            )
        return Entry.from_row(dict(row))

    async def get_entry(self, entry_id: str) -> Entry | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ENTRY_COLUMNS} FROM entries WHERE id = $1::uuid",
                entry_id,
            )
        return Entry.from_row(dict(row)) if row else None

    async def list_pending_enrichment(self, limit: int) -> list[Entry]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM entries
                WHERE enrichment_status = 'pending'
                ORDER BY created_at ASC
                LIMIT $1
                """,
                limit,
            )
        return [Entry.from_row(dict(row)) for row in rows]

    async def list_pending_summary(self, limit: int) -> list[Entry]:
        """Summary work is only visible once enrichment finished with ``ok``."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM entries
                WHERE summary_status = 'pending' AND enrichment_status = 'ok'
                ORDER BY created_at ASC
                LIMIT $1
                """,
                limit,
            )
        return [Entry.from_row(dict(row)) for row in rows]

    async def update_enrichment_status(
        self,
        entry_id: str,
        status: ProcessingStatus,
        error: str | None = None,
        *,
        expected: Expected = None,
    ) -> bool:
        """Set the enrichment status; stamps ``enriched_at`` for ok/failed."""
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET enrichment_status = $2,
                    enrichment_error = $3,
                    enriched_at = CASE WHEN $2 IN ('ok', 'failed') THEN NOW() ELSE enriched_at END,
                    updated_at = NOW()
                WHERE id = $1::uuid
                  AND ($4::text[] IS NULL OR enrichment_status = ANY($4::text[]))
                """,
                entry_id,
                status.value,
                error,
                _expected_param(expected),
            )
        return _changed(tag)

    async def update_enrichment_result(
        self,
        entry_id: str,
        result: EnrichmentResult,
        *,
        expected: Expected = None,
    ) -> bool:
        """Persist enrichment fields, mark ``ok`` and clear any prior error."""
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET canonical_url = $2,
                    domain = $3,
                    source_type = $4,
                    title = $5,
                    description = $6,
                    published_at = $7,
                    runtime_seconds = $8,
                    metadata_json = $9::jsonb,
                    enrichment_status = 'ok',
                    enrichment_error = NULL,
                    enriched_at = NOW(),
                    updated_at = NOW()
                WHERE id = $1::uuid
                  AND ($10::text[] IS NULL OR enrichment_status = ANY($10::text[]))
                """,
                entry_id,
                _nullable(result.canonical_url),
                _nullable(result.domain),
                result.source_type.value,
                _nullable(result.title),
                _nullable(result.description),
                result.published_at,
                result.runtime_seconds,
                json.dumps(result.metadata) if result.metadata else None,
                _expected_param(expected),
            )
        return _changed(tag)

    async def update_summary_status(
        self,
        entry_id: str,
        status: ProcessingStatus,
        error: str | None = None,
        *,
        expected: Expected = None,
    ) -> bool:
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET summary_status = $2,
                    summary_error = $3,
                    updated_at = NOW()
                WHERE id = $1::uuid
                  AND ($4::text[] IS NULL OR summary_status = ANY($4::text[]))
                """,
                entry_id,
                status.value,
                error,
                _expected_param(expected),
            )
        return _changed(tag)

    async def update_summary_result(
        self,
        entry_id: str,
        result: SummaryResult,
        *,
        expected: Expected = None,
    ) -> bool:
        """Persist summary fields, mark ``ok`` and clear any prior error."""
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET summary_text = $2,
                    summary_provider = $3,
                    summary_model = $4,
                    summary_version = $5,
                    summary_generated_at = $6,
                    summary_status = 'ok',
                    summary_error = NULL,
                    updated_at = NOW()
                WHERE id = $1::uuid
                  AND ($7::text[] IS NULL OR summary_status = ANY($7::text[]))
                """,
                entry_id,
                result.text,
                result.provider,
                result.model,
                result.version,
                result.generated_at,
                _expected_param(expected),
            )
        return _changed(tag)

    async def reset_enrichment(self, entry_id: str) -> bool:
        """Re-queue enrichment (user-triggered refresh)."""
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET enrichment_status = 'pending',
                    enrichment_error = NULL,
                    enriched_at = NULL,
                    updated_at = NOW()
                WHERE id = $1::uuid
                """,
                entry_id,
            )
        return _changed(tag)

    async def reset_summary(self, entry_id: str) -> bool:
        """Re-queue summarization (user-triggered refresh)."""
        async with self._pool.acquire() as conn:
            tag = await conn.execute(
                """
                UPDATE entries
                SET summary_status = 'pending',
                    summary_error = NULL,
                    summary_generated_at = NULL,
                    updated_at = NOW()
                WHERE id = $1::uuid
                """,
                entry_id,
            )
        return _changed(tag)
