"""ASGI response sending: writes a ``WireResponse`` out through ``send()``.

Handles buffered bodies, passthrough byte streams, and SSE channels.
"""

import logging

from perch._internal.asgi import Receive, Send
from perch.http.wire import WireResponse
from perch.realtime.sse import send_sse

logger = logging.getLogger("perch.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def _raw_headers(wire: WireResponse) -> list[tuple[bytes, bytes]]:
    return [
        (name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in wire.headers
    ]


async def send_wire_response(wire: WireResponse, send: Send, receive: Receive) -> None:
    """Dispatch on the response form."""
    if wire.channel is not None:
        await send_sse(wire, send, receive)
    elif wire.stream is not None:
        await send_streaming_response(wire, send)
    else:
        await send_response(wire, send)


async def send_response(wire: WireResponse, send: Send) -> None:
    """Send a buffered response with an explicit Content-Length."""
    body = wire.body if _body_allowed(wire.status) else b""
    raw_headers = _raw_headers(wire)
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": wire.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )


async def send_streaming_response(wire: WireResponse, send: Send) -> None:
    """Send a passthrough stream chunk by chunk.

    Headers go out immediately; each chunk is a body message with
    ``more_body=True``. A mid-stream failure is logged and the body is
    closed; no bytes are injected into a stream the app does not own.
    """
    assert wire.stream is not None

    await send(
        {
            "type": "http.response.start",
            "status": wire.status,
            "headers": _raw_headers(wire),
        }
    )

    try:
        async for chunk in wire.stream:
            await send(
                {
                    "type": "http.response.body",
                    "body": chunk,
                    "more_body": True,
                }
            )
    except Exception:
        logger.exception("Stream failed mid-response")

    await send(
        {
            "type": "http.response.body",
            "body": b"",
            "more_body": False,
        }
    )
