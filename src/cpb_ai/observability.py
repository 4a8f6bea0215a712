"""Structured JSON logging with run-id correlation.

Call :func:`setup_logging` once at startup to configure the root logger
with a JSON formatter and a filter that attaches the current run id
(set by :func:`correlation_context`) to every log record.
"""

from __future__ import annotations

import contextvars
import datetime
import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator

_run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cpb_ai_run_id", default=None
)


@contextmanager
def correlation_context(run_id: str | None = None) -> Generator[str, None, None]:
    """Set a run id for log correlation for the duration of the block.

    If no run_id is provided, a new UUID is generated.  The value is
    propagated via contextvars so awaited coroutines share it.
    """
    rid = run_id or uuid.uuid4().hex
    token = _run_id_var.set(rid)
    try:
        yield rid
    finally:
        _run_id_var.reset(token)


def get_run_id() -> str | None:
    """Return the current run id, or None outside a correlation_context."""
    return _run_id_var.get()


class RunIdFilter(logging.Filter):
    """Inject ``run_id`` into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id() or ""
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Output schema::

        {
            "timestamp": "2026-03-02T08:15:00.123456+00:00",
            "level": "WARNING",
            "logger": "cpb_ai.inference.service",
            "message": "Model unavailable for transfusion, using heuristic",
            "run_id": "4be0...",
            "exception": null
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        exc_text: str | None = None
        if record.exc_info and record.exc_info[0] is not None:
            exc_text = "".join(traceback.format_exception(*record.exc_info))

        payload: dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created,
                tz=datetime.UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", ""),
            "exception": exc_text,
        }
        return json.dumps(payload, default=str)


def setup_logging(level: int | str = logging.INFO, *, json_format: bool = True) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level:
        Minimum log level (name or number).
    json_format:
        Emit JSON lines when True, a plain text format otherwise.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s")
        )
    handler.addFilter(RunIdFilter())

    root.addHandler(handler)
