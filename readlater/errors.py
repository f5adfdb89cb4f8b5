import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ReadLaterError(Exception):
    """Base class for errors raised by the read-later pipeline."""


class ConfigurationError(ReadLaterError):
    """A setting is missing or invalid."""


class StoreError(ReadLaterError):
    """A store call failed; the surrounding step is abandoned."""


class FetchError(ReadLaterError):
    """The page could not be downloaded (timeout, DNS, connection, bad URL)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Error downloading {url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(ReadLaterError):
    """No article could be isolated from the downloaded page."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Error parsing content from {url}: {reason}")
        self.url = url
        self.reason = reason


def _problem(
    *,
    code: str,
    message: str,
    status: int,
    trace_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = {
        "type": f"about:blank#{code}",
        "title": message,
        "status": status,
        "code": code,
        "message": message,
        "trace_id": trace_id,
    }
    if details:
        body["details"] = details
    return JSONResponse(
        body,
        status_code=status,
        headers={"X-Trace-Id": trace_id},
        media_type="application/problem+json",
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        detail = exc.detail
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("error") or "HTTP error"
            return _problem(
                code="http_error",
                message=str(message),
                status=exc.status_code,
                trace_id=trace_id,
                details=detail,
            )
        return _problem(code="http_error", message=str(detail), status=exc.status_code, trace_id=trace_id)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        return _problem(
            code="validation_error",
            message="Request validation failed",
            status=422,
            trace_id=trace_id,
            details={"errors": exc.errors()},
        )

    @app.exception_handler(StoreError)
    async def store_exc_handler(request: Request, exc: StoreError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logging.warning("Store unavailable: %s", exc, extra={"trace_id": trace_id})
        return _problem(
            code="store_unavailable",
            message="Storage is temporarily unavailable",
            status=503,
            trace_id=trace_id,
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logging.exception("Unhandled error: %s", exc)
        return _problem(
            code="internal_error",
            message="An unexpected error occurred",
            status=500,
            trace_id=trace_id,
        )
