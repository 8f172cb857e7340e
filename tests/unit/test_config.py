"""Unit tests for settings validation and file-backed secrets."""

import pytest
from pydantic import ValidationError

from learnd.core.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("WORKER_INTERVAL_SECONDS", "WORKER_BATCH_SIZE", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY_FILE", raising=False)

    s = Settings(_env_file=None)

    assert s.WORKER_INTERVAL_SECONDS == 10.0
    assert s.WORKER_BATCH_SIZE == 5
    assert s.FETCH_MAX_REDIRECTS == 10
    assert s.OPENAI_API_KEY is None


def test_file_secret_overrides_plain_value(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    secret = tmp_path / "openai_key"
    secret.write_text("sk-from-file\n", encoding="utf-8")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")
    monkeypatch.setenv("OPENAI_API_KEY_FILE", str(secret))

    assert Settings(_env_file=None).OPENAI_API_KEY == "sk-from-file"


def test_unreadable_secret_file_keeps_plain_value(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("YOUTUBE_API_KEY", "yt-env")
    monkeypatch.setenv("YOUTUBE_API_KEY_FILE", str(tmp_path / "missing"))

    assert Settings(_env_file=None).YOUTUBE_API_KEY == "yt-env"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("WORKER_INTERVAL_SECONDS", "0"),
        ("WORKER_INTERVAL_SECONDS", "7200"),
        ("WORKER_BATCH_SIZE", "0"),
        ("WORKER_BATCH_SIZE", "101"),
        ("FETCH_MAX_BYTES", "100"),
    ],
)
def test_invalid_values_rejected(name: str, value: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
