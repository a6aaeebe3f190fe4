from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("nexus_hr.errors")


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def not_found(resource: str) -> ApiError:
    return ApiError(status_code=404, code="NOT_FOUND", message=f"{resource} not found")


def bad_request(message: str, *, code: str = "BAD_REQUEST") -> ApiError:
    return ApiError(status_code=400, code=code, message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "status": "error",
        "message": message,
        "code": code,
        "requestId": get_request_id(request),
    }
    return JSONResponse(status_code=status_code, content=payload)


def _field_path(location: Sequence[Any]) -> str:
    # drop the "body"/"query"/"path" prefix pydantic puts in front
    parts = [str(item) for item in location[1:]] if len(location) > 1 else [str(item) for item in location]
    return ".".join(parts)


def validation_error_response(request: Request, errors: Sequence[dict[str, Any]]) -> JSONResponse:
    payload = {
        "status": "error",
        "message": "Validation failed",
        "code": "VALIDATION_ERROR",
        "requestId": get_request_id(request),
        "errors": [
            {"field": _field_path(item.get("loc", ())), "message": str(item.get("msg", "Invalid value"))}
            for item in errors
        ],
    }
    return JSONResponse(status_code=400, content=payload)


@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """Turn unexpected failures inside a handler into a 500 with a resource-specific message.

    ``ApiError`` passes through untouched. Anything else is logged with its
    traceback and replaced, so driver and ORM details never reach the client.
    """
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        logger.exception("handler_failed", extra={"failure_message": message})
        raise ApiError(status_code=500, code="INTERNAL_ERROR", message=message) from exc


HTTP_ERROR_CODES = {
    401: "AUTH_REQUIRED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "TOO_MANY_REQUESTS",
}


def install_exception_handlers(app: FastAPI) -> None:
    """Route every failure through the ``{"status": "error", ...}`` envelope."""

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(request, status_code=exc.status_code, code=exc.code, message=exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            message = "Route not found"
        else:
            message = str(exc.detail) if exc.detail else "Request failed."
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return error_response(request, status_code=exc.status_code, code=code, message=message)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return validation_error_response(request, exc.errors())

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", extra={"path": request.url.path, "method": request.method})
        return error_response(request, status_code=500, code="INTERNAL_ERROR", message="Unexpected server error.")
