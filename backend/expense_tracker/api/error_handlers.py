"""
Custom exception handlers for FastAPI.
Every failure is rendered with the same ``{"success": false, "message": ...}``
shape so clients can handle errors uniformly.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from expense_tracker.core.errors import IngestionError
from expense_tracker.core.observability import sentry_capture

logger = logging.getLogger(__name__)


def ingestion_exception_handler(request: Request, exc: IngestionError):
    if not exc.is_client_error:
        logger.error("[api] %s %s failed kind=%s detail=%s", request.method, request.url.path, exc.kind, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation error",
            "errors": [
                {
                    "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("query", "body")),
                    "message": err.get("msg", "invalid value"),
                }
                for err in exc.errors()
            ],
        },
    )


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("[api] unhandled error on %s %s", request.method, request.url.path)
    sentry_capture(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "error": str(exc),
        },
    )
