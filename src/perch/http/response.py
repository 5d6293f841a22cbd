"""Mutable response accumulator shared by every handler in one chain.

Each request gets exactly one ``Response``. Handlers mutate it through
chainable methods; each returns the same instance::

    response.status(201).header("Location", "/items/7").json({"id": 7})

Body writes follow last-writer-wins, across kinds as well as within one:
``text()`` after ``stream()`` discards the stream. The one exception is
``sse()``: once a response becomes an event stream, later body writes are
ignored.
"""

from __future__ import annotations

import json as json_module
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

from perch.http.headers import MutableHeaders
from perch.http.wire import WireResponse
from perch.realtime.channel import DEFAULT_SSE_BUFFER, SSEChannel

logger = logging.getLogger("perch.server")

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
STREAM_CONTENT_TYPE = "application/octet-stream"

ByteStream = AsyncIterable[bytes | str] | Iterable[bytes | str]


class BodyKind(Enum):
    EMPTY = "empty"
    TEXT = "text"
    STREAM = "stream"
    SSE = "sse"


def _json_default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return str(value)


def dump_json(value: Any) -> str:
    """Serialize *value* compactly; dataclasses become objects, the rest ``str()``."""
    return json_module.dumps(value, default=_json_default, separators=(",", ":"))


def _is_object_like(value: Any) -> bool:
    if value is None or isinstance(value, Mapping | list | tuple):
        return True
    return is_dataclass(value) and not isinstance(value, type)


class Response:
    """Request-scoped response state.

    Attributes:
        status_code: HTTP status, 200 until set.
        headers: Ordered, case-insensitive; ``header()`` overwrites by name.
        body_kind: Which of the body forms is current.
        payload: ``str`` for text, the byte stream for stream, ``None`` otherwise.
    """

    __slots__ = ("_channel", "_sse_buffer", "body_kind", "headers", "payload", "status_code")

    def __init__(self, *, sse_buffer: int = DEFAULT_SSE_BUFFER) -> None:
        self.status_code: int = 200
        self.headers: MutableHeaders = MutableHeaders()
        self.body_kind: BodyKind = BodyKind.EMPTY
        self.payload: Any = None
        self._channel: SSEChannel | None = None
        self._sse_buffer = sse_buffer

    def __repr__(self) -> str:
        return f"<Response {self.status_code} {self.body_kind.value}>"

    @property
    def channel(self) -> SSEChannel | None:
        """The SSE channel, once ``sse()`` has been called."""
        return self._channel

    # -- Chainable mutators --

    def status(self, code: int) -> Response:
        self.status_code = code
        return self

    def header(self, name: str, value: Any) -> Response:
        self.headers[name] = str(value)
        return self

    def json(self, value: Any) -> Response:
        """Serialize *value* as the JSON body."""
        if self._locked("json"):
            return self
        self.headers["Content-Type"] = JSON_CONTENT_TYPE
        self._set_body(BodyKind.TEXT, dump_json(value))
        return self

    def text(self, value: Any) -> Response:
        """Use *value*, coerced with ``str()``, as a plain-text body."""
        if self._locked("text"):
            return self
        self.headers["Content-Type"] = TEXT_CONTENT_TYPE
        self._set_body(BodyKind.TEXT, str(value))
        return self

    def send(self, value: Any) -> Response:
        """Mappings, sequences, dataclasses, and ``None`` go out as JSON; the rest as text."""
        if _is_object_like(value):
            return self.json(value)
        return self.text(value)

    def stream(self, byte_stream: ByteStream) -> Response:
        """Pass *byte_stream* through to the client untouched."""
        if self._locked("stream"):
            return self
        self._set_body(BodyKind.STREAM, byte_stream)
        return self

    def sse(self) -> SSEChannel:
        """Turn this response into an event stream and return its channel.

        Calling it again returns the same channel.
        """
        if self._channel is None:
            self._channel = SSEChannel(max_buffered=self._sse_buffer)
            self._set_body(BodyKind.SSE, None)
        return self._channel

    # -- Finalization --

    def finalize(
        self,
        *,
        heartbeat_interval: float | None = None,
        max_lifetime: float | None = None,
    ) -> WireResponse:
        """Freeze the accumulated state into a ``WireResponse``."""
        if self.body_kind is BodyKind.SSE:
            assert self._channel is not None
            headers = MutableHeaders(self.headers)
            for name, value in self._channel.headers:
                headers[name] = value
            return WireResponse(
                status=self.status_code,
                headers=headers.pairs(),
                stream=self._channel.chunks(
                    heartbeat_interval=heartbeat_interval,
                    max_lifetime=max_lifetime,
                ),
                channel=self._channel,
            )

        if self.body_kind is BodyKind.STREAM:
            headers = MutableHeaders(self.headers)
            if "content-type" not in headers:
                headers["Content-Type"] = STREAM_CONTENT_TYPE
            return WireResponse(
                status=self.status_code,
                headers=headers.pairs(),
                stream=_as_byte_iterator(self.payload),
            )

        body = self.payload.encode("utf-8") if self.body_kind is BodyKind.TEXT else b""
        return WireResponse(status=self.status_code, headers=self.headers.pairs(), body=body)

    # -- Internal --

    def _locked(self, method: str) -> bool:
        if self.body_kind is BodyKind.SSE:
            logger.debug("Ignoring response.%s() on an SSE response", method)
            return True
        return False

    def _set_body(self, kind: BodyKind, payload: Any) -> None:
        self.body_kind = kind
        self.payload = payload


async def _as_byte_iterator(source: ByteStream) -> AsyncIterator[bytes]:
    """Adapt a sync or async iterable of chunks to an async byte iterator."""

    def _encode_chunk(chunk: str | bytes) -> bytes:
        return chunk.encode("utf-8") if isinstance(chunk, str) else chunk

    if isinstance(source, AsyncIterable):
        async for chunk in source:
            if chunk:
                yield _encode_chunk(chunk)
    else:
        for chunk in source:
            if chunk:
                yield _encode_chunk(chunk)
