"""
Error taxonomy shared by services and routers, rendered as ``{"error": ...}`` JSON.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StoreError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class BadRequestError(StoreError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(StoreError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(StoreError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND


class GatewayError(StoreError):
    """The payment gateway rejected or failed a call"""


def error_body(message: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"error": message, **(extra or {})}


async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.extra))


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, dict):
        content = dict(exc.detail)
        content.setdefault("error", "Request failed")
    else:
        content = error_body(str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Invalid request", {"details": jsonable_encoder(exc.errors())}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s (request_id=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
