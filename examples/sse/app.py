"""Live Feed: Server-Sent Events with perch.

A handler opens an SSE channel and returns; a background task keeps
pushing to the channel until it closes. Demonstrates plain text events,
JSON events, structured ``SSEEvent`` objects, and cleanup on close.

Run:
    python app.py
"""

import asyncio
import itertools

from perch import App, AppConfig, SSEEvent

app = App(AppConfig(sse_heartbeat_interval=15.0, sse_max_lifetime=300.0))

# ---------------------------------------------------------------------------
# Sample data: a small sequence of notifications
# ---------------------------------------------------------------------------

_NOTIFICATIONS = [
    {"title": "Welcome", "message": "You are now connected to the live feed."},
    {"title": "Update", "message": "New deployment started."},
    {"title": "Alert", "message": "CPU usage above 90% on worker-3."},
    {"title": "Resolved", "message": "CPU usage back to normal."},
]

# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def feed(request, response, proceed) -> None:
    """Push a fixed sequence of events, then close the stream."""
    channel = response.sse()

    async def push() -> None:
        channel.send("connected")
        await asyncio.sleep(0.01)
        channel.send(SSEEvent(data="status check", event="status", id="1"))
        for notification in _NOTIFICATIONS:
            await asyncio.sleep(0.01)
            if not channel.send(notification):
                return
        channel.close()

    task = asyncio.create_task(push())
    channel.on_close(task.cancel)


async def clock(request, response, proceed) -> None:
    """Tick until the client goes away."""
    channel = response.sse()
    interval = float(request.query.get("interval", "1.0"))

    async def tick() -> None:
        for n in itertools.count():
            if not channel.send({"role": "assistant", "tick": n}):
                return
            await asyncio.sleep(interval)

    task = asyncio.create_task(tick())
    channel.on_close(task.cancel)


app.get("/events", feed)
app.get("/clock", clock)


if __name__ == "__main__":
    app.listen(3000)
