"""SSE event types and wire encoding."""

import json as json_module
from dataclasses import dataclass
from typing import Any

HEARTBEAT = b": heartbeat\n\n"


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """A single Server-Sent Event with optional type, id, and retry."""

    data: str
    event: str | None = None
    id: str | None = None
    retry: int | None = None

    def encode(self) -> str:
        """Serialize to SSE wire format."""
        lines: list[str] = []
        if self.event:
            lines.append(f"event: {self.event}")
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        lines.extend(f"data: {line}" for line in self.data.split("\n"))
        lines.append("")  # Trailing newline to terminate the event
        return "\n".join(lines) + "\n"


def encode_event(value: Any) -> bytes:
    """Convert a pushed value to SSE wire bytes.

    Dispatch:
        - ``SSEEvent`` -> encoded with its fields
        - ``str``      -> ``data: <value>`` verbatim
        - anything else -> ``data: <JSON>``
    """
    if isinstance(value, SSEEvent):
        return value.encode().encode("utf-8")
    if isinstance(value, str):
        payload = value
    else:
        payload = json_module.dumps(value, default=str, separators=(",", ":"))
    return f"data: {payload}\n\n".encode()
