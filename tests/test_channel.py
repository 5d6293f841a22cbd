"""Tests for perch.realtime.channel: one-shot-close SSE push channel."""

import logging

import anyio

from perch.realtime.channel import SSE_HEADERS, SSEChannel
from perch.realtime.events import HEARTBEAT


async def _drain(channel: SSEChannel, **kwargs: float | None) -> list[bytes]:
    return [chunk async for chunk in channel.chunks(**kwargs)]


class TestSendAndClose:
    def test_fixed_headers(self) -> None:
        assert SSEChannel().headers == SSE_HEADERS
        assert dict(SSE_HEADERS)["Content-Type"] == "text/event-stream"

    def test_send_while_open(self) -> None:
        channel = SSEChannel()
        assert channel.send("hello") is True
        assert channel.closed is False
        channel.close()

    def test_send_after_close_is_noop(self) -> None:
        channel = SSEChannel()
        channel.close()
        assert channel.closed is True
        assert channel.send("late") is False

    def test_close_is_idempotent(self) -> None:
        channel = SSEChannel()
        calls: list[str] = []
        channel.on_close(lambda: calls.append("closed"))
        channel.close()
        channel.close()
        assert calls == ["closed"]

    async def test_queued_events_delivered_then_stream_ends(self) -> None:
        channel = SSEChannel()
        channel.send("a")
        channel.send({"n": 1})
        channel.close()
        assert await _drain(channel) == [b"data: a\n\n", b'data: {"n":1}\n\n']

    async def test_nothing_written_after_close(self) -> None:
        channel = SSEChannel()
        channel.send("a")
        channel.close()
        channel.send("b")
        assert await _drain(channel) == [b"data: a\n\n"]


class TestCancel:
    def test_cancel_closes_channel(self) -> None:
        channel = SSEChannel()
        channel.cancel()
        assert channel.closed is True
        assert channel.send("x") is False

    async def test_cancel_drops_pending_bytes(self) -> None:
        channel = SSEChannel()
        channel.send("pending")
        channel.cancel()
        assert await _drain(channel) == []

    def test_cancel_after_close_keeps_single_close_signal(self) -> None:
        channel = SSEChannel()
        calls: list[int] = []
        channel.on_close(lambda: calls.append(1))
        channel.close()
        channel.cancel()
        assert calls == [1]

    async def test_consumer_going_away_closes_channel(self) -> None:
        channel = SSEChannel()
        channel.send("first")
        stream = channel.chunks()
        assert await anext(stream) == b"data: first\n\n"
        await stream.aclose()
        assert channel.closed is True
        assert channel.send("after") is False


class TestCallbacks:
    def test_on_close_after_close_runs_immediately(self) -> None:
        channel = SSEChannel()
        channel.close()
        calls: list[int] = []
        channel.on_close(lambda: calls.append(1))
        assert calls == [1]

    def test_callback_failure_is_logged(self, caplog) -> None:
        channel = SSEChannel()

        def boom() -> None:
            raise ValueError("cleanup failed")

        calls: list[int] = []
        channel.on_close(boom)
        channel.on_close(lambda: calls.append(1))
        with caplog.at_level(logging.ERROR, logger="perch.sse"):
            channel.close()
        assert calls == [1]
        assert "on_close callback failed" in caplog.text

    async def test_wait_closed(self) -> None:
        channel = SSEChannel()
        order: list[str] = []

        async def waiter() -> None:
            await channel.wait_closed()
            order.append("woke")

        async with anyio.create_task_group() as tg:
            tg.start_soon(waiter)
            await anyio.sleep(0.01)
            order.append("closing")
            channel.close()

        assert order == ["closing", "woke"]

    async def test_wait_closed_returns_when_already_closed(self) -> None:
        channel = SSEChannel()
        channel.close()
        with anyio.fail_after(1):
            await channel.wait_closed()


class TestLeakGuards:
    async def test_heartbeat_when_idle(self) -> None:
        channel = SSEChannel()
        stream = channel.chunks(heartbeat_interval=0.01)
        with anyio.fail_after(1):
            assert await anext(stream) == HEARTBEAT
        await stream.aclose()

    async def test_max_lifetime_closes_channel(self) -> None:
        channel = SSEChannel()
        channel.send("before")
        with anyio.fail_after(2):
            chunks = await _drain(channel, max_lifetime=0.05)
        assert chunks[0] == b"data: before\n\n"
        assert channel.closed is True
        assert channel.send("after") is False

    async def test_max_lifetime_with_heartbeat(self) -> None:
        channel = SSEChannel()
        with anyio.fail_after(2):
            chunks = await _drain(channel, heartbeat_interval=0.01, max_lifetime=0.1)
        assert chunks
        assert all(chunk == HEARTBEAT for chunk in chunks)
        assert channel.closed is True

    async def test_background_pusher_stops_on_close(self) -> None:
        channel = SSEChannel()
        received: list[bytes] = []

        async def pusher() -> None:
            n = 0
            while channel.send(str(n)):
                n += 1
                if n == 3:
                    channel.close()
                await anyio.sleep(0)

        async with anyio.create_task_group() as tg:
            tg.start_soon(pusher)
            async for chunk in channel.chunks():
                received.append(chunk)

        assert received == [b"data: 0\n\n", b"data: 1\n\n", b"data: 2\n\n"]

    def test_slow_consumer_is_cancelled(self, caplog) -> None:
        channel = SSEChannel(max_buffered=2)
        closed: list[bool] = []
        channel.on_close(lambda: closed.append(True))

        assert channel.send("a") is True
        assert channel.send("b") is True
        with caplog.at_level(logging.WARNING, logger="perch.sse"):
            assert channel.send("c") is False

        assert channel.closed is True
        assert closed == [True]
        assert "fell 2 events behind" in caplog.text

    async def test_buffer_drains_below_limit(self) -> None:
        channel = SSEChannel(max_buffered=2)
        channel.send("a")
        channel.send("b")
        channel.close()
        assert await _drain(channel) == [b"data: a\n\n", b"data: b\n\n"]
