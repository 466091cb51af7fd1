from __future__ import annotations

import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from loguru import logger

from shared.request_context import RequestIDMiddleware


def access_log_middleware() -> Callable:
    async def middleware(request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000
        logger.bind(request_id=getattr(request.state, "request_id", None)).info(
            f"Gateway {request.method} {request.url.path} {response.status_code} {elapsed:.2f}ms"
        )
        return response

    return middleware


def setup_middleware(app: FastAPI) -> None:
    app.middleware("http")(access_log_middleware())
    # Added last so it runs first and the access log sees the request id.
    app.add_middleware(RequestIDMiddleware)
