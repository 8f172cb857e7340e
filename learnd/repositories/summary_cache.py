"""SummaryCacheRepository: content-addressed summaries keyed by URL hash."""

from __future__ import annotations

import hashlib

import asyncpg

from learnd.models.entities import SummaryCacheEntry


def hash_url(url: str) -> str:
    """SHA-256 hex digest used as the cache key."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class SummaryCacheRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get_by_hash(self, url_hash: str) -> SummaryCacheEntry | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT url_hash, canonical_url, summary_text, provider, model, version, created_at
                FROM summary_cache
                WHERE url_hash = $1
                """,
                url_hash,
            )
        return SummaryCacheEntry(**dict(row)) if row else None

    async def put(self, entry: SummaryCacheEntry) -> None:
        """Upsert on ``url_hash``; the latest write wins."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO summary_cache (
                    url_hash, canonical_url, summary_text, provider, model, version
                )
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (url_hash) DO UPDATE SET
                    summary_text = EXCLUDED.summary_text,
                    provider = EXCLUDED.provider,
                    model = EXCLUDED.model,
                    version = EXCLUDED.version,
                    created_at = NOW()
                """,
                entry.url_hash,
                entry.canonical_url,
                entry.summary_text,
                entry.provider,
                entry.model,
                entry.version,
            )
