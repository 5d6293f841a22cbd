"""Tests for perch.http.response: the fluent response accumulator."""

from dataclasses import dataclass

from perch.http.response import BodyKind, Response, dump_json


@dataclass
class _Item:
    id: int
    name: str


class TestMutators:
    def test_defaults(self) -> None:
        r = Response()
        assert r.status_code == 200
        assert r.body_kind is BodyKind.EMPTY
        assert r.payload is None
        assert len(r.headers) == 0
        assert r.channel is None

    def test_every_mutator_returns_same_instance(self) -> None:
        r = Response()
        assert r.status(201) is r
        assert r.header("X-A", "1") is r
        assert r.json({}) is r
        assert r.text("t") is r
        assert r.send("s") is r
        assert r.stream([b"x"]) is r

    def test_status_last_write_wins(self) -> None:
        r = Response().status(200).status(200)
        assert r.status_code == 200
        r.status(404).status(201)
        assert r.status_code == 201

    def test_header_overwrite_case_insensitive(self) -> None:
        r = Response().header("X", "a").header("x", "b")
        assert r.headers.pairs() == (("x", "b"),)

    def test_json(self) -> None:
        r = Response().json({"a": 1, "b": [1, 2]})
        assert r.headers["content-type"] == "application/json"
        assert r.body_kind is BodyKind.TEXT
        assert r.payload == '{"a":1,"b":[1,2]}'

    def test_text(self) -> None:
        r = Response().text("hello")
        assert r.headers["content-type"].startswith("text/plain")
        assert r.payload == "hello"

    def test_send_object_like_goes_json(self) -> None:
        assert Response().send({"a": 1}).payload == '{"a":1}'
        assert Response().send([1, 2]).payload == "[1,2]"
        assert Response().send(None).payload == "null"
        r = Response().send(_Item(1, "x"))
        assert r.headers["content-type"] == "application/json"
        assert r.payload == '{"id":1,"name":"x"}'

    def test_send_scalars_go_text(self) -> None:
        r = Response().send(42)
        assert r.payload == "42"
        assert r.headers["content-type"].startswith("text/plain")
        assert Response().send("hi").payload == "hi"

    def test_last_body_kind_wins(self) -> None:
        r = Response().stream([b"chunk"]).text("final")
        assert r.body_kind is BodyKind.TEXT
        assert r.payload == "final"
        r.stream([b"again"])
        assert r.body_kind is BodyKind.STREAM

    def test_stream_passthrough(self) -> None:
        source = [b"a", b"b"]
        r = Response().stream(source)
        assert r.payload is source


class TestSSE:
    def test_sse_returns_channel_once(self) -> None:
        r = Response()
        channel = r.sse()
        assert r.sse() is channel
        assert r.channel is channel
        assert r.body_kind is BodyKind.SSE

    def test_body_writes_ignored_after_sse(self) -> None:
        r = Response()
        r.sse()
        r.json({"a": 1}).text("x").stream([b"y"]).send("z")
        assert r.body_kind is BodyKind.SSE
        assert "content-type" not in r.headers

    def test_status_and_headers_still_apply_after_sse(self) -> None:
        r = Response()
        r.sse()
        r.status(202).header("X-Stream", "1")
        wire = r.finalize()
        assert wire.status == 202
        assert wire.header("x-stream") == "1"
        r.channel.close()


class TestFinalize:
    def test_empty(self) -> None:
        wire = Response().status(204).finalize()
        assert wire.status == 204
        assert wire.body == b""
        assert wire.stream is None

    def test_text_encoded_utf8(self) -> None:
        wire = Response().text("héllo").finalize()
        assert wire.body == "héllo".encode()
        assert wire.text == "héllo"

    def test_json_round_trip(self) -> None:
        wire = Response().json({"ok": True}).finalize()
        assert wire.json() == {"ok": True}
        assert wire.content_type == "application/json"

    def test_sse_headers(self) -> None:
        r = Response()
        channel = r.sse()
        wire = r.finalize()
        assert wire.channel is channel
        assert wire.header("Content-Type") == "text/event-stream"
        assert wire.header("Cache-Control") == "no-cache"
        assert wire.header("Connection") == "keep-alive"
        channel.close()

    async def test_stream_default_content_type(self) -> None:
        wire = Response().stream([b"a", "b", b""]).finalize()
        assert wire.content_type == "application/octet-stream"
        assert await wire.read() == b"ab"

    async def test_stream_keeps_explicit_content_type(self) -> None:
        async def gen():
            yield b"x,"
            yield b"y"

        wire = Response().header("Content-Type", "text/csv").stream(gen()).finalize()
        assert wire.content_type == "text/csv"
        assert await wire.read() == b"x,y"


class TestDumpJson:
    def test_compact(self) -> None:
        assert dump_json({"a": [1, 2]}) == '{"a":[1,2]}'

    def test_unknown_types_fall_back_to_str(self) -> None:
        assert dump_json({"v": frozenset()}) == '{"v":"frozenset()"}'
