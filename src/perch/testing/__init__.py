"""Test utilities for perch applications.

Provides an ASGI-driven test client and SSE parsing helpers::

    from perch.testing import TestClient
"""

from perch.testing.client import TestClient
from perch.testing.sse import SSETestResult, parse_sse_frames

__all__ = [
    "SSETestResult",
    "TestClient",
    "parse_sse_frames",
]
