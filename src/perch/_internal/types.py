"""Shared type aliases used across perch modules."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

# The continuation handed to every handler; awaiting it runs the rest of the chain
Proceed: TypeAlias = Callable[[], Awaitable[None]]

# Route handler or middleware: (request, response, proceed), sync or async
Handler: TypeAlias = Callable[..., Any]

# Error handler: (error, request, response, proceed), sync or async
ErrorHandler: TypeAlias = Callable[..., Any]
