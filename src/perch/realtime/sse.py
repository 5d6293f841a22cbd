"""Server-Sent Events transport over ASGI.

Sends the ``text/event-stream`` headers, then drains the channel's byte
stream while a sibling task watches for ``http.disconnect``. A disconnect
cancels the channel, which ends the drain. Either way the response body
is terminated with a final empty message.
"""

import contextlib
import logging

import anyio

from perch._internal.asgi import Receive, Send
from perch.http.wire import WireResponse

logger = logging.getLogger("perch.sse")


async def send_sse(wire: WireResponse, send: Send, receive: Receive) -> None:
    """Stream an SSE ``WireResponse`` until its channel closes."""
    channel = wire.channel
    assert channel is not None
    assert wire.stream is not None

    await send(
        {
            "type": "http.response.start",
            "status": wire.status,
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in wire.headers
            ],
        }
    )

    async def monitor_disconnect() -> None:
        """Wait for client disconnect."""
        while True:
            message = await receive()
            if message.get("type") == "http.disconnect":
                logger.debug("SSE client disconnected")
                channel.cancel()
                return

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(monitor_disconnect)
            try:
                async for chunk in wire.stream:
                    await send(
                        {
                            "type": "http.response.body",
                            "body": chunk,
                            "more_body": True,
                        }
                    )
            except (OSError, RuntimeError):
                # Response already closed (client disconnected)
                channel.cancel()
            finally:
                channel.close()
                tg.cancel_scope.cancel()
    finally:
        with contextlib.suppress(OSError, RuntimeError):
            await send(
                {
                    "type": "http.response.body",
                    "body": b"",
                    "more_body": False,
                }
            )
