"""Top-level failure boundary.

Maps a failure that survived the error chain to a response. Typed
``HTTPError`` failures keep their status and message; anything else
becomes a generic 500 that does not leak internals (unless debug).
"""

import logging
from http import HTTPStatus

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response

logger = logging.getLogger("perch.server")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def _phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"Error {status}"


def error_response(exc: Exception, request: Request, *, debug: bool) -> Response:
    """Build the response for an unrecovered failure."""
    if isinstance(exc, HTTPError):
        logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
        response = Response().status(exc.status)
        for name, value in exc.headers:
            response.header(name, value)
        return response.json({"error": exc.detail or _phrase(exc.status)})

    logger.exception("500 %s %s", request.method, request.path, exc_info=exc)
    payload = {"error": INTERNAL_ERROR_MESSAGE}
    if debug:
        payload["detail"] = f"{type(exc).__name__}: {exc}"
    return Response().status(500).json(payload)
