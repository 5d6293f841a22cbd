"""Boundary types between the transport and the dispatch engine.

``RawRequest`` is what a transport hands in: already framed, body fully
read, nothing parsed. ``WireResponse`` is what the engine hands back: a
finished status/headers/body descriptor the transport writes out.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from perch._internal.asgi import Scope

if TYPE_CHECKING:
    from perch.realtime.channel import SSEChannel


@dataclass(frozen=True, slots=True)
class RawRequest:
    """A transport-level request.

    Built by the ASGI entry point, or directly in tests::

        raw = RawRequest.build("POST", "/items?draft=1", json={"name": "x"})
        response = await app.handle(raw)
    """

    method: str
    path: str
    query_string: bytes = b""
    headers: tuple[tuple[bytes, bytes], ...] = ()
    body: bytes = b""
    body_too_large: bool = False  # Body exceeded the limit and was not read in full
    scope: Scope | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_asgi(cls, scope: Scope, body: bytes, *, body_too_large: bool = False) -> RawRequest:
        return cls(
            method=scope["method"],
            path=scope["path"],
            query_string=scope.get("query_string", b""),
            headers=tuple(tuple(pair) for pair in scope.get("headers", ())),
            body=body,
            body_too_large=body_too_large,
            scope=scope,
        )

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
        json: Any = None,
    ) -> RawRequest:
        """Convenience constructor taking ``path?query`` and string headers."""
        path, _, query = url.partition("?")
        header_map = dict(headers or {})
        payload = body.encode("utf-8") if isinstance(body, str) else (body or b"")
        if json is not None:
            payload = json_module.dumps(json).encode("utf-8")
            header_map.setdefault("content-type", "application/json")
        return cls(
            method=method.upper(),
            path=path,
            query_string=query.encode("latin-1"),
            headers=tuple(
                (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in header_map.items()
            ),
            body=payload,
        )


@dataclass(frozen=True, slots=True)
class WireResponse:
    """A finalized response ready for the transport.

    Exactly one of the body forms is meaningful: ``body`` for buffered
    responses, ``stream`` for passthrough and SSE responses. ``channel``
    is set for SSE so the transport can cancel it on disconnect.
    """

    status: int
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""
    stream: AsyncIterator[bytes] | None = field(default=None, repr=False)
    channel: SSEChannel | None = field(default=None, repr=False)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    @property
    def content_type(self) -> str | None:
        return self.header("content-type")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json_module.loads(self.body)

    async def read(self) -> bytes:
        """Buffered body, or the streamed bytes drained to completion."""
        if self.stream is None:
            return self.body
        return b"".join([chunk async for chunk in self.stream])
