"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, response: Response, proceed: Proceed) -> None

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing (``cors()``)
    RequestID -- Per-request identifier header (``request_id()``)
    RequestLogger -- Access log line per request (``request_logger()``)
"""

from perch.middleware.builtin import (
    CORSConfig,
    CORSMiddleware,
    RequestID,
    RequestLogger,
    cors,
    request_id,
    request_logger,
)
from perch.middleware.protocol import (
    ErrorHandlerEntry,
    ErrorHandlerProtocol,
    Middleware,
    MiddlewareEntry,
    error_handler,
)

__all__ = [
    "CORSConfig",
    "CORSMiddleware",
    "ErrorHandlerEntry",
    "ErrorHandlerProtocol",
    "Middleware",
    "MiddlewareEntry",
    "RequestID",
    "RequestLogger",
    "cors",
    "error_handler",
    "request_id",
    "request_logger",
]
