"""SSEChannel: a push handle over a response byte stream.

A handler obtains a channel from ``response.sse()`` and may keep pushing
to it after the handler chain has returned, typically from a background
task. The channel closes exactly once: on an explicit ``close()``, when
the consumer side goes away (client disconnect), or when the configured
maximum lifetime runs out. After that, ``send()`` is a no-op returning
``False``.

Usage::

    async def feed(request, response, proceed):
        channel = response.sse()

        async def push():
            while channel.send({"tick": time.time()}):
                await anyio.sleep(1)

        task = asyncio.create_task(push())
        channel.on_close(task.cancel)
"""

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from perch.realtime.events import HEARTBEAT, encode_event

logger = logging.getLogger("perch.sse")

# Events queued ahead of a slow client before the channel gives up on it
DEFAULT_SSE_BUFFER = 1024

SSE_HEADERS: tuple[tuple[str, str], ...] = (
    ("Content-Type", "text/event-stream"),
    ("Cache-Control", "no-cache"),
    ("Connection", "keep-alive"),
)


class SSEChannel:
    """One-shot-close push channel backed by an in-memory byte stream."""

    __slots__ = (
        "_close_callbacks",
        "_closed",
        "_closed_event",
        "_consumer_gone",
        "_max_buffered",
        "_receive_stream",
        "_send_stream",
        "headers",
    )

    def __init__(self, *, max_buffered: int = DEFAULT_SSE_BUFFER) -> None:
        self.headers: tuple[tuple[str, str], ...] = SSE_HEADERS
        self._max_buffered = max_buffered
        send_stream, receive_stream = anyio.create_memory_object_stream[bytes](max_buffered)
        self._send_stream: MemoryObjectSendStream[bytes] = send_stream
        self._receive_stream: MemoryObjectReceiveStream[bytes] = receive_stream
        self._closed = False
        self._consumer_gone = False
        self._closed_event: anyio.Event | None = None
        self._close_callbacks: list[Callable[[], Any]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: Any) -> bool:
        """Encode and queue *event*. Returns ``False`` if the channel is closed.

        A consumer that falls ``max_buffered`` events behind is treated as
        gone: the channel is cancelled and this send reports ``False``.
        """
        if self._closed:
            return False
        try:
            self._send_stream.send_nowait(encode_event(event))
        except anyio.WouldBlock:
            logger.warning(
                "SSE client fell %d events behind; cancelling channel", self._max_buffered
            )
            self.cancel()
            return False
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # Consumer went away without telling us
            self._finish(consumer_gone=True)
            return False
        return True

    def close(self) -> None:
        """Finalize the stream. Idempotent."""
        if self._closed:
            return
        self._finish(consumer_gone=False)

    def cancel(self) -> None:
        """Mark the consumer side as gone (client disconnect).

        Pending bytes are dropped; later ``send()`` calls are no-ops.
        """
        self._consumer_gone = True
        if not self._closed:
            self._finish(consumer_gone=True)

    def on_close(self, callback: Callable[[], Any]) -> None:
        """Run *callback* once when the channel closes, for any reason.

        Runs immediately if the channel is already closed. Use it to stop
        timers or background tasks that push to this channel.
        """
        if self._closed:
            self._run_callback(callback)
            return
        self._close_callbacks.append(callback)

    async def wait_closed(self) -> None:
        """Block until the channel is closed."""
        if self._closed:
            return
        if self._closed_event is None:
            self._closed_event = anyio.Event()
        await self._closed_event.wait()

    async def chunks(
        self,
        *,
        heartbeat_interval: float | None = None,
        max_lifetime: float | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield encoded events until the channel closes.

        Emits a heartbeat comment after *heartbeat_interval* idle seconds.
        Closes the channel once *max_lifetime* seconds have elapsed;
        anything queued before that point is still delivered.
        """
        deadline = None if max_lifetime is None else anyio.current_time() + max_lifetime
        try:
            while True:
                timeout = heartbeat_interval
                if deadline is not None:
                    remaining = deadline - anyio.current_time()
                    if remaining <= 0:
                        logger.info("SSE channel reached its %ss lifetime; closing", max_lifetime)
                        self.close()
                        deadline = None
                        continue
                    timeout = remaining if timeout is None else min(timeout, remaining)

                with anyio.move_on_after(timeout) as scope:
                    try:
                        chunk = await self._receive_stream.receive()
                    except anyio.EndOfStream:
                        return

                if self._consumer_gone:
                    return
                if scope.cancelled_caught:
                    if deadline is not None and anyio.current_time() >= deadline:
                        continue
                    yield HEARTBEAT
                    continue
                yield chunk
        finally:
            self._receive_stream.close()
            if not self._closed:
                self._finish(consumer_gone=True)

    # -- Internal --

    def _finish(self, *, consumer_gone: bool) -> None:
        self._closed = True
        if consumer_gone:
            self._consumer_gone = True
        # Closing the send side wakes a pending receive with EndOfStream
        self._send_stream.close()
        logger.debug("SSE channel closed (consumer_gone=%s)", consumer_gone)
        if self._closed_event is not None:
            self._closed_event.set()
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            self._run_callback(callback)

    @staticmethod
    def _run_callback(callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("SSE on_close callback failed")
