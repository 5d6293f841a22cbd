"""Raw ASGI type aliases and request-body reading.

The only module that names the ASGI callable shapes. Users never see these.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

Scope: TypeAlias = MutableMapping[str, Any]
Message: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]


class BodyTooLarge(Exception):  # noqa: N818
    """Raised by ``read_body`` once the body passes its size limit."""


async def read_body(receive: Receive, limit: int | None = None) -> bytes:
    """Drain ``http.request`` messages into a single body.

    Stops early on ``http.disconnect`` and returns what arrived. With a
    *limit*, raises ``BodyTooLarge`` as soon as the bytes received exceed
    it, leaving the rest of the body unread.
    """
    chunks: list[bytes] = []
    size = 0
    while True:
        message = await receive()
        if message.get("type") == "http.disconnect":
            break
        body = message.get("body", b"")
        if body:
            size += len(body)
            if limit is not None and size > limit:
                raise BodyTooLarge(size)
            chunks.append(body)
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def declared_length(scope: Scope) -> int | None:
    """The request's ``content-length`` header as an int, if present and valid."""
    for name, value in scope.get("headers", ()):
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None
