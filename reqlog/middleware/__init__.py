"""ASGI middlewares: request id propagation and structured access logging."""

from reqlog.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from reqlog.middleware.request_logger import ACCESS_LOGGER_NAME, RequestLoggerMiddleware

__all__ = [
    "ACCESS_LOGGER_NAME",
    "REQUEST_ID_HEADER",
    "RequestIDMiddleware",
    "RequestLoggerMiddleware",
]
