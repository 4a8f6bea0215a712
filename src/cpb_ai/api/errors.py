"""JSON error bodies for the HTTP API.

Every failure leaves the API in the same envelope::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": {...}}}

``code`` is derived from the exception class for engine errors
(``InsufficientDataError`` becomes ``INSUFFICIENT_DATA``) and from the
HTTP reason phrase for framework errors (``NOT_FOUND``).
"""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

from cpb_ai.exceptions import (
    ConfigError,
    CpbAIError,
    DatasetError,
    ModelTrainingError,
    ModelUnavailableError,
    TrainingInProgressError,
    UnknownDomainError,
)
from cpb_ai.observability import get_run_id

if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.requests import Request

logger = logging.getLogger(__name__)

# Looked up along the MRO, so subclasses inherit their parent's status.
_STATUS_BY_ERROR: dict[type[CpbAIError], int] = {
    UnknownDomainError: 404,
    TrainingInProgressError: 409,
    DatasetError: 422,
    ConfigError: 400,
    ModelUnavailableError: 503,
    ModelTrainingError: 500,
}

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def error_code(cls: type[Exception]) -> str:
    """``DatasetFormatError`` -> ``DATASET_FORMAT``."""
    name = cls.__name__.removesuffix("Error")
    return _WORD_BOUNDARY.sub("_", name).upper()


def status_for(exc: CpbAIError) -> int:
    return next(
        (_STATUS_BY_ERROR[cls] for cls in type(exc).__mro__ if cls in _STATUS_BY_ERROR),
        500,
    )


def _respond(
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    body = {
        "code": code,
        "message": message,
        "request_id": get_run_id() or "",
        "details": jsonable_encoder(details or {}),
    }
    return JSONResponse(status_code=status, content={"error": body})


async def _on_engine_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, CpbAIError)
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status, exc)
    return _respond(status, error_code(type(exc)), str(exc), exc.details)


async def _on_http_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    return _respond(exc.status_code, code, str(exc.detail))


async def _on_invalid_request(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return _respond(
        422,
        "VALIDATION_ERROR",
        "Request validation failed.",
        {"errors": exc.errors()},
    )


async def _on_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _respond(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred.")


def register_error_handlers(app: FastAPI) -> None:
    handlers = {
        CpbAIError: _on_engine_error,
        HTTPException: _on_http_error,
        RequestValidationError: _on_invalid_request,
        Exception: _on_unexpected,
    }
    for exc_class, handler in handlers.items():
        app.add_exception_handler(exc_class, handler)
