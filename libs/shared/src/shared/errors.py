from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger

from .request_context import REQUEST_ID_HEADER
from .schemas import ErrorResponse


def _serialize_detail(detail: object | None) -> str | None:
    if detail is None:
        return None
    return str(detail)


def error_response(
    status_code: int,
    error: str,
    detail: object | None,
    request_id: str | None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(error=error, detail=_serialize_detail(detail), request_id=request_id)
    response_headers = dict(headers or {})
    if request_id:
        response_headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(status_code=status_code, content=payload.model_dump(), headers=response_headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return error_response(
        exc.status_code,
        error=str(exc.detail) if exc.detail else exc.__class__.__name__,
        detail=exc.detail,
        request_id=request_id,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.bind(request_id=request_id).opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}"
    )
    return error_response(500, error="Internal Server Error", detail=str(exc), request_id=request_id)


def service_unavailable_handler(retry_after_seconds: int = 30):
    """Build a handler that maps a domain exception to 503 with ``Retry-After``."""

    async def handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        return error_response(
            503,
            error="Service Unavailable",
            detail=str(exc),
            request_id=request_id,
            headers={"retry-after": str(retry_after_seconds)},
        )

    return handler


def register_exception_handlers(app: FastAPI, unavailable: tuple[type[Exception], ...] = ()) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    for exc_type in unavailable:
        app.add_exception_handler(exc_type, service_unavailable_handler())
