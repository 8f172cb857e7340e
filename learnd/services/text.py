"""Make scraped text safe for Postgres TEXT/JSONB columns."""

from __future__ import annotations

from typing import Any


def sanitize_text(value: str | bytes | None) -> str:
    """Drop invalid UTF-8 sequences, lone surrogates and NUL characters."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="ignore")
    else:
        text = value.encode("utf-8", errors="ignore").decode("utf-8")
    return text.replace("\x00", "")


def sanitize_json(value: Any) -> Any:
    """Apply :func:`sanitize_text` to every string in a JSON-like structure."""
    if isinstance(value, (str, bytes)):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {sanitize_text(str(k)): sanitize_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_json(v) for v in value]
    return value
