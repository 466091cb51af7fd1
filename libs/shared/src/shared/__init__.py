from .errors import (
    error_response,
    http_exception_handler,
    register_exception_handlers,
    service_unavailable_handler,
    unhandled_exception_handler,
)
from .request_context import REQUEST_ID_HEADER, RequestIDMiddleware
from .schemas import ErrorResponse

__all__ = [
    "ErrorResponse",
    "REQUEST_ID_HEADER",
    "RequestIDMiddleware",
    "error_response",
    "http_exception_handler",
    "register_exception_handlers",
    "service_unavailable_handler",
    "unhandled_exception_handler",
]
