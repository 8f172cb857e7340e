"""Exception hierarchy for the enrichment and summarization pipeline.

Every error raised inside a stage is caught per record by the worker and stored
as that record's stage error message, so messages should read well on their own.
"""


class LearndError(Exception):
    """Base class for pipeline errors."""


class InvalidURLError(LearndError, ValueError):
    """URL is malformed or points at a destination the fetcher refuses to contact."""


class FetchError(LearndError):
    """Outbound HTTP failed (transport error, bad status, redirect overflow)."""


class EnrichmentError(LearndError):
    """A strategy could not extract metadata from an otherwise reachable source."""


class SummarizerError(LearndError):
    """The summarization provider failed or returned nothing usable."""
