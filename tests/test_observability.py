"""Tests for cpb_ai.observability and cpb_ai.settings."""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING

from cpb_ai.observability import (
    JsonFormatter,
    RunIdFilter,
    correlation_context,
    get_run_id,
)
from cpb_ai.settings import EngineSettings
from cpb_ai.types import TrainingPolicy

if TYPE_CHECKING:
    import pytest


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("cpb_ai.test", logging.INFO, __file__, 1, message, None, None)


# ======================================================================
# correlation_context
# ======================================================================


class TestCorrelationContext:
    def test_generates_id(self) -> None:
        assert get_run_id() is None
        with correlation_context() as rid:
            assert rid
            assert get_run_id() == rid
        assert get_run_id() is None

    def test_explicit_id(self) -> None:
        with correlation_context("run-42") as rid:
            assert rid == "run-42"

    def test_nested_restores_outer(self) -> None:
        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_run_id() == "inner"
            assert get_run_id() == "outer"

    def test_filter_attaches_run_id(self) -> None:
        record = _record()
        with correlation_context("abc"):
            RunIdFilter().filter(record)
        assert record.run_id == "abc"  # type: ignore[attr-defined]


# ======================================================================
# JsonFormatter
# ======================================================================


class TestJsonFormatter:
    def test_single_line_json(self) -> None:
        record = _record("training started")
        RunIdFilter().filter(record)
        data = json.loads(JsonFormatter().format(record))
        assert data["message"] == "training started"
        assert data["level"] == "INFO"
        assert data["logger"] == "cpb_ai.test"

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "cpb_ai.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )
        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad" in data["exception"]


# ======================================================================
# EngineSettings
# ======================================================================


class TestEngineSettings:
    def test_defaults(self) -> None:
        settings = EngineSettings()
        assert settings.port == 9100
        assert settings.training.concurrency_policy == TrainingPolicy.REJECT
        assert settings.history.max_entries == 50

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CPB_AI_PORT", "9200")
        monkeypatch.setenv("CPB_AI_TRAINING__PATIENCE", "2")
        monkeypatch.setenv("CPB_AI_TRAINING__CONCURRENCY_POLICY", "queue")
        settings = EngineSettings()
        assert settings.port == 9200
        assert settings.training.patience == 2
        assert settings.training.concurrency_policy == TrainingPolicy.QUEUE
