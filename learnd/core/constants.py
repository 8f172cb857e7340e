from enum import Enum


class DatabasePool:
    MIN_SIZE = 1
    MAX_SIZE = 5


class ProcessingStatus(str, Enum):
    """Per-stage lifecycle shared by enrichment and summarization."""

    PENDING = "pending"
    PROCESSING = "processing"
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


# ok / failed / skipped never move again without an explicit refresh.
TERMINAL_STATUSES: frozenset[ProcessingStatus] = frozenset(
    {ProcessingStatus.OK, ProcessingStatus.FAILED, ProcessingStatus.SKIPPED}
)


class SourceType(str, Enum):
    YOUTUBE = "youtube"
    PODCAST = "podcast"
    ARTICLE = "article"
    DOC = "doc"
    OTHER = "other"


class EnricherPriority:
    """Lower runs first. The web fallback always sorts last."""

    YOUTUBE = 10
    PODCAST = 20
    WEB = 100


class Reading:
    WORDS_PER_MINUTE = 200


class Summary:
    PROVIDER_OPENAI = "openai"
    VERSION = "1.0.0"
    PROMPT_DESCRIPTION_CHARS = 1000


class YouTube:
    DESCRIPTION_MAX_CHARS = 500
    # A sentence break must fall after this index to be used as the cut point.
    DESCRIPTION_MIN_SENTENCE_CUT = 200


PODCAST_HOST = "podcasts.apple.com"
