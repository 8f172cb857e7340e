"""Unit tests for choosing the log renderer from the configured environment."""

import io
import sys

import pytest
import structlog
from structlog.dev import ConsoleRenderer

from learnd.core import logging_setup


@pytest.fixture
def captured_config(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    """Run configure_logging without touching the process-wide logging state."""
    configs: list[dict] = []
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    monkeypatch.setattr(logging_setup.logging.config, "dictConfig", configs.append)
    monkeypatch.setattr(logging_setup.structlog, "configure", lambda **kwargs: None)
    monkeypatch.setattr(sys, "stdout", io.StringIO())
    monkeypatch.setattr(sys, "stderr", io.StringIO())
    return configs


def _renderer(config: dict):
    return config["formatters"]["structured"]["processors"][-1]


@pytest.mark.parametrize("environment", ["production", "staging", "PROD"])
def test_deployed_environment_logs_json(captured_config, environment: str) -> None:
    logging_setup.configure_logging("INFO", environment)

    [config] = captured_config
    assert isinstance(_renderer(config), structlog.processors.JSONRenderer)
    assert config["root"]["level"] == "INFO"


@pytest.mark.parametrize("environment", [None, "", "local", "Development", "dev"])
def test_local_environment_logs_to_console(captured_config, environment) -> None:
    logging_setup.configure_logging("DEBUG", environment)

    [config] = captured_config
    assert isinstance(_renderer(config), ConsoleRenderer)


def test_environment_variable_is_not_consulted(
    captured_config, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ENVIRONMENT", "local")

    logging_setup.configure_logging("INFO", "production")

    [config] = captured_config
    assert isinstance(_renderer(config), structlog.processors.JSONRenderer)


def test_second_call_is_a_no_op(captured_config) -> None:
    logging_setup.configure_logging("INFO", "production")
    logging_setup.configure_logging("DEBUG", "local")

    assert len(captured_config) == 1
