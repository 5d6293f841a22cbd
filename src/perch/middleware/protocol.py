"""Middleware and error-handler protocols, and their registration tags.

A middleware is any callable matching::

    async def my_mw(request: Request, response: Response, proceed: Proceed) -> None: ...

An error handler is any callable matching::

    async def on_error(error: Exception, request: Request, response: Response,
                       proceed: Proceed) -> None: ...

No base class required. ``App.use()`` classifies each callable once, when
it is registered, into a ``MiddlewareEntry`` or an ``ErrorHandlerEntry``.
The dispatch engine only ever sees the tagged entries.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from perch._internal.types import ErrorHandler, Handler, Proceed
from perch.errors import ConfigurationError

if TYPE_CHECKING:
    from perch.http.request import Request
    from perch.http.response import Response

_ERROR_HANDLER_MARK = "__perch_error_handler__"

F = TypeVar("F", bound=Callable[..., Any])


class Middleware(Protocol):
    """Protocol for perch middleware and route handlers.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(request, response, proceed):
            start = time.monotonic()
            await proceed()
            response.header("X-Time", f"{time.monotonic() - start:.3f}")

        # Class middleware
        class RequireToken:
            async def __call__(self, request, response, proceed):
                ...
    """

    def __call__(self, request: Request, response: Response, proceed: Proceed) -> Any: ...


class ErrorHandlerProtocol(Protocol):
    """Protocol for error-chain handlers.

    Recover by writing to *response* and returning. Pass the failure on
    by awaiting *proceed* or by raising.
    """

    def __call__(
        self,
        error: Exception,
        request: Request,
        response: Response,
        proceed: Proceed,
    ) -> Any: ...


@dataclass(frozen=True, slots=True)
class MiddlewareEntry:
    """A regular middleware, optionally mounted at a path prefix."""

    handler: Handler
    mount: str | None = None

    def applies_to(self, path: str) -> bool:
        """True when *path* is the mount prefix or continues it at a ``/``."""
        if not self.mount:
            return True
        if not path.startswith(self.mount):
            return False
        rest = path[len(self.mount) :]
        return not rest or rest.startswith("/") or self.mount.endswith("/")


@dataclass(frozen=True, slots=True)
class ErrorHandlerEntry:
    """A handler that runs only after the normal chain fails."""

    handler: ErrorHandler


def error_handler(func: F) -> F:
    """Tag *func* as an error handler regardless of its signature.

    Usage::

        @error_handler
        async def on_error(error, request, response, proceed, *extra): ...

        app.use(on_error)
    """
    setattr(func, _ERROR_HANDLER_MARK, True)
    return func


def _positional_arity(func: Callable[..., Any]) -> int | None:
    """Count positional parameters that have no default.

    Returns ``None`` when the signature cannot be inspected (some builtins).
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in sig.parameters.values():
        if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            break
        if param.default is not param.empty:
            break
        count += 1
    return count


def is_error_handler(func: Callable[..., Any]) -> bool:
    """An explicitly tagged callable, or one taking exactly four positional args."""
    if getattr(func, _ERROR_HANDLER_MARK, False):
        return True
    return _positional_arity(func) == 4


def ensure_callable(handler: object, role: str = "Handler") -> None:
    if not callable(handler):
        msg = f"{role} must be callable, got {type(handler).__name__}."
        raise ConfigurationError(msg)


def classify(
    handler: Callable[..., Any],
    mount: str | None = None,
) -> MiddlewareEntry | ErrorHandlerEntry:
    """Tag *handler* for registration."""
    ensure_callable(handler)
    if is_error_handler(handler):
        if mount:
            msg = "Error handlers cannot be mounted at a path prefix."
            raise ConfigurationError(msg)
        return ErrorHandlerEntry(handler)
    return MiddlewareEntry(handler, mount)
