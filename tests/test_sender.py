"""Tests for perch.server.sender response emission rules."""

from perch.http.wire import WireResponse
from perch.server.sender import send_response, send_streaming_response, send_wire_response


async def _never_receive() -> dict:
    return {"type": "http.disconnect"}


class TestSendResponseNoBodyStatuses:
    async def test_204_drops_body_and_sets_zero_content_length(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        await send_response(WireResponse(status=204, body=b"unexpected-body"), send)

        assert messages[0]["type"] == "http.response.start"
        headers = dict(messages[0]["headers"])
        assert headers[b"content-length"] == b"0"
        assert messages[1]["type"] == "http.response.body"
        assert messages[1]["body"] == b""

    async def test_304_drops_body(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        await send_response(WireResponse(status=304, body=b"unexpected-body"), send)
        assert dict(messages[0]["headers"])[b"content-length"] == b"0"
        assert messages[1]["body"] == b""

    async def test_200_preserves_body_and_lowercases_names(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        wire = WireResponse(status=200, headers=(("Content-Type", "text/plain"),), body=b"ok")
        await send_response(wire, send)

        headers = dict(messages[0]["headers"])
        assert headers[b"content-type"] == b"text/plain"
        assert headers[b"content-length"] == b"2"
        assert messages[1]["body"] == b"ok"


class TestStreaming:
    async def test_chunks_then_terminator(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        async def gen():
            yield b"a"
            yield b"b"

        await send_streaming_response(WireResponse(status=200, stream=gen()), send)
        bodies = [(m["body"], m["more_body"]) for m in messages[1:]]
        assert bodies == [(b"a", True), (b"b", True), (b"", False)]
        assert all(name != b"content-length" for name, _ in messages[0]["headers"])

    async def test_mid_stream_failure_closes_body(self, caplog) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        async def gen():
            yield b"a"
            raise RuntimeError("source broke")

        await send_streaming_response(WireResponse(status=200, stream=gen()), send)
        assert messages[-1] == {"type": "http.response.body", "body": b"", "more_body": False}
        assert "Stream failed mid-response" in caplog.text

    async def test_dispatches_on_form(self) -> None:
        messages: list[dict] = []

        async def send(message: dict) -> None:
            messages.append(message)

        await send_wire_response(WireResponse(status=201, body=b"x"), send, _never_receive)
        assert messages[0]["status"] == 201
        assert messages[1] == {"type": "http.response.body", "body": b"x"}
