"""Typed value objects for entries, stage results and the summary cache.

Runtime DB access goes through asyncpg; rows are mapped into these dataclasses
by the repositories.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from learnd.core.constants import ProcessingStatus, SourceType


@dataclass
class Entry:
    id: str
    source_url: str
    normalized_url: str
    created_at: datetime
    updated_at: datetime

    # Owned by the capture/edit UI; the pipeline only reads them.
    tag: str | None = None
    notes: str | None = None
    time_spent_seconds: int | None = None
    quantity: int | None = None

    canonical_url: str | None = None
    domain: str | None = None
    source_type: SourceType = SourceType.OTHER
    title: str | None = None
    description: str | None = None
    published_at: datetime | None = None
    runtime_seconds: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    enrichment_status: ProcessingStatus = ProcessingStatus.PENDING
    enrichment_error: str | None = None
    enriched_at: datetime | None = None

    summary_text: str | None = None
    summary_status: ProcessingStatus = ProcessingStatus.PENDING
    summary_error: str | None = None
    summary_provider: str | None = None
    summary_model: str | None = None
    summary_version: str | None = None
    summary_generated_at: datetime | None = None

    @property
    def cache_url(self) -> str:
        """URL the summary cache is keyed on: canonical when known, else the source."""
        return self.canonical_url or self.source_url

    @property
    def has_summarizable_text(self) -> bool:
        return bool((self.title or "").strip() or (self.description or "").strip())

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Entry:
        metadata = row.get("metadata")
        if isinstance(metadata, str):
            metadata = json.loads(metadata or "{}")
        return cls(
            id=str(row["id"]),
            source_url=row["source_url"],
            normalized_url=row.get("normalized_url") or row["source_url"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            tag=row.get("tag"),
            notes=row.get("notes"),
            time_spent_seconds=row.get("time_spent_seconds"),
            quantity=row.get("quantity"),
            canonical_url=row.get("canonical_url"),
            domain=row.get("domain"),
            source_type=SourceType(row.get("source_type") or SourceType.OTHER.value),
            title=row.get("title"),
            description=row.get("description"),
            published_at=row.get("published_at"),
            runtime_seconds=row.get("runtime_seconds"),
            metadata=dict(metadata or {}),
            enrichment_status=ProcessingStatus(row["enrichment_status"]),
            enrichment_error=row.get("enrichment_error"),
            enriched_at=row.get("enriched_at"),
            summary_text=row.get("summary_text"),
            summary_status=ProcessingStatus(row["summary_status"]),
            summary_error=row.get("summary_error"),
            summary_provider=row.get("summary_provider"),
            summary_model=row.get("summary_model"),
            summary_version=row.get("summary_version"),
            summary_generated_at=row.get("summary_generated_at"),
        )


@dataclass
class EnrichmentResult:
    canonical_url: str
    domain: str
    source_type: SourceType
    title: str = ""
    description: str = ""
    published_at: datetime | None = None
    runtime_seconds: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SummaryInput:
    title: str
    description: str
    source_type: SourceType
    url: str
    tag: str = ""


@dataclass
class SummaryResult:
    text: str
    provider: str
    model: str
    version: str
    generated_at: datetime


@dataclass
class SummaryCacheEntry:
    url_hash: str
    canonical_url: str
    summary_text: str
    provider: str
    model: str
    version: str
    created_at: datetime | None = None

    def to_result(self, fallback_time: datetime) -> SummaryResult:
        return SummaryResult(
            text=self.summary_text,
            provider=self.provider,
            model=self.model,
            version=self.version,
            generated_at=self.created_at or fallback_time,
        )
