"""Tests for the ASGI entry point, driven through perch.testing.TestClient."""

from typing import Any

import pytest

from perch._internal.asgi import BodyTooLarge, declared_length, read_body
from perch.app import App
from perch.config import AppConfig
from perch.testing import TestClient


def _app() -> App:
    app = App()
    app.get("/users/:id", lambda req, res, proceed: res.json({"id": req.params["id"]}))
    app.post("/echo", lambda req, res, proceed: res.status(201).json(req.body))
    app.get("/headers", lambda req, res, proceed: res.text(req.headers.get("x-token", "")))
    app.get(
        "/query",
        lambda req, res, proceed: res.json({"tags": req.query.get_list("tag"), "url": req.url}),
    )
    return app


class TestReadBody:
    async def test_multiple_chunks(self) -> None:
        messages = [
            {"type": "http.request", "body": b"ab", "more_body": True},
            {"type": "http.request", "body": b"cd", "more_body": False},
        ]

        async def receive() -> dict[str, Any]:
            return messages.pop(0)

        assert await read_body(receive) == b"abcd"

    async def test_disconnect_stops_reading(self) -> None:
        messages = [
            {"type": "http.request", "body": b"ab", "more_body": True},
            {"type": "http.disconnect"},
        ]

        async def receive() -> dict[str, Any]:
            return messages.pop(0)

        assert await read_body(receive) == b"ab"

    async def test_limit_stops_reading_early(self) -> None:
        calls = 0

        async def receive() -> dict[str, Any]:
            nonlocal calls
            calls += 1
            return {"type": "http.request", "body": b"x" * 100, "more_body": True}

        with pytest.raises(BodyTooLarge):
            await read_body(receive, limit=250)
        assert calls == 3

    async def test_body_at_limit_is_accepted(self) -> None:
        messages = [{"type": "http.request", "body": b"abcd", "more_body": False}]

        async def receive() -> dict[str, Any]:
            return messages.pop(0)

        assert await read_body(receive, limit=4) == b"abcd"


class TestDeclaredLength:
    def test_present(self) -> None:
        assert declared_length({"headers": [(b"content-length", b"42")]}) == 42

    def test_missing_or_invalid(self) -> None:
        assert declared_length({"headers": []}) is None
        assert declared_length({"headers": [(b"content-length", b"lots")]}) is None


def _upload_scope(headers: list[tuple[bytes, bytes]] | None = None) -> dict[str, Any]:
    return {
        "type": "http",
        "method": "POST",
        "path": "/upload",
        "query_string": b"",
        "headers": headers or [],
    }


class TestBodyLimit:
    async def test_oversized_stream_is_not_buffered(self) -> None:
        app = App(AppConfig(max_content_length=10))
        app.post("/upload", lambda req, res, proceed: res.text("stored"))
        calls = 0
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            nonlocal calls
            calls += 1
            return {"type": "http.request", "body": b"x" * 100, "more_body": calls < 1000}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app(_upload_scope(), receive, send)
        assert calls == 1
        assert sent[0]["status"] == 413
        assert b"Request body exceeds 10 bytes" in sent[1]["body"]

    async def test_declared_length_rejected_before_reading(self) -> None:
        app = App(AppConfig(max_content_length=10))
        app.post("/upload", lambda req, res, proceed: res.text("stored"))
        calls = 0
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            nonlocal calls
            calls += 1
            return {"type": "http.request", "body": b"", "more_body": False}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app(_upload_scope([(b"content-length", b"5000")]), receive, send)
        assert calls == 0
        assert sent[0]["status"] == 413

    async def test_unmatched_route_still_404(self) -> None:
        app = App(AppConfig(max_content_length=10))
        async with TestClient(app) as client:
            response = await client.post("/missing", body=b"x" * 100)
        assert response.status == 404


class TestClientRoundTrip:
    async def test_get_with_params(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/users/42")
        assert response.status == 200
        assert response.json() == {"id": "42"}
        assert response.content_type == "application/json"

    async def test_post_json(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post("/echo", json={"name": "perch"})
        assert response.status == 201
        assert response.json() == {"name": "perch"}

    async def test_request_headers(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/headers", headers={"X-Token": "secret"})
        assert response.text == "secret"

    async def test_query_string(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/query?tag=a&tag=b")
        assert response.json() == {"tags": ["a", "b"], "url": "/query?tag=a&tag=b"}

    async def test_not_found(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.delete("/nothing")
        assert response.status == 404
        assert response.json() == {"error": "Not Found"}

    async def test_streamed_body_collected(self) -> None:
        app = App()

        async def download(request, response, proceed) -> None:
            async def chunks():
                yield b"part1,"
                yield "part2"

            response.header("Content-Type", "text/csv").stream(chunks())

        app.get("/download", download)
        async with TestClient(app) as client:
            response = await client.get("/download")
        assert response.body == b"part1,part2"
        assert response.content_type == "text/csv"

    async def test_startup_and_shutdown_hooks_run(self) -> None:
        app = _app()
        events: list[str] = []
        app.on_startup(lambda: events.append("up"))
        app.on_shutdown(lambda: events.append("down"))
        async with TestClient(app) as client:
            await client.get("/users/1")
            assert events == ["up"]
        assert events == ["up", "down"]


class TestNonHTTPScopes:
    async def test_websocket_scope_ignored(self) -> None:
        app = _app()
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            return {"type": "websocket.connect"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await app({"type": "websocket", "path": "/"}, receive, send)
        assert sent == []
