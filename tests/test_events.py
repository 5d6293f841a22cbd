"""Tests for perch.realtime.events: SSE wire encoding."""

from perch.realtime.events import HEARTBEAT, SSEEvent, encode_event


class TestSSEEvent:
    def test_data_only(self) -> None:
        assert SSEEvent(data="hello").encode() == "data: hello\n\n"

    def test_all_fields(self) -> None:
        encoded = SSEEvent(data="x", event="tick", id="7", retry=3000).encode()
        assert encoded == "event: tick\nid: 7\nretry: 3000\ndata: x\n\n"

    def test_multiline_data(self) -> None:
        assert SSEEvent(data="a\nb").encode() == "data: a\ndata: b\n\n"


class TestEncodeEvent:
    def test_text_verbatim(self) -> None:
        assert encode_event("hello") == b"data: hello\n\n"

    def test_object_as_json(self) -> None:
        assert encode_event({"n": 1}) == b'data: {"n":1}\n\n'

    def test_number_as_json(self) -> None:
        assert encode_event(5) == b"data: 5\n\n"

    def test_event_object(self) -> None:
        assert encode_event(SSEEvent(data="x", event="e")) == b"event: e\ndata: x\n\n"

    def test_heartbeat_is_comment(self) -> None:
        assert HEARTBEAT.startswith(b":")
        assert HEARTBEAT.endswith(b"\n\n")
