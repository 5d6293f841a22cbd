"""Per-request context handed to every handler.

Transport metadata (method, path, headers, query) is set once when the
request enters the engine. ``params`` and ``wildcard`` are filled in by
route resolution and ``body`` by content-type parsing. ``body`` and
``state`` are the documented mutation points: middleware may replace
the body or stash values in ``state`` for handlers further down the chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from perch.http.headers import Headers
from perch.http.query import QueryParams
from perch.http.wire import RawRequest


@dataclass(slots=True)
class Request:
    """A request flowing through one handler chain."""

    method: str
    path: str
    headers: Headers
    query: QueryParams
    params: dict[str, str] = field(default_factory=dict)
    body: Any = None
    wildcard: str | None = None
    state: dict[str, Any] = field(default_factory=dict)
    raw: RawRequest | None = field(default=None, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs.decode('latin-1')}"
        return self.path

    @classmethod
    def from_raw(cls, raw: RawRequest) -> Request:
        """Create a Request with empty params and no body yet."""
        return cls(
            method=raw.method.upper(),
            path=raw.path,
            headers=Headers(raw.headers),
            query=QueryParams(raw.query_string),
            raw=raw,
        )
