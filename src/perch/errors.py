"""Perch exception hierarchy.

Shared across the route table, the app, the dispatch engine, and
middleware so every module raises and catches the same types.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when a registration is invalid.

    Malformed path templates, duplicate parameter names, and non-callable
    handlers all fail here, at registration time, never at request time.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An application failure that carries its own status and message.

    Raise it from any handler or middleware. Unless an error handler
    recovers, the response is ``status`` with a ``{"error": detail}`` body.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return self.detail
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: no route matched the request method and path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MalformedBody(HTTPError):  # noqa: N818
    """400: the body could not be parsed for its declared content type."""

    def __init__(self, detail: str = "Malformed request body") -> None:
        super().__init__(status=400, detail=detail)


class PayloadTooLarge(HTTPError):  # noqa: N818
    """413: the body exceeds ``AppConfig.max_content_length``."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            status=413,
            detail=f"Request body exceeds {limit} bytes",
        )
