"""Route groups: shared path prefixes and scoped middleware.

A group contributes a prefix and a middleware list to every route
declared inside it. Chains are finalized when each route is
registered, so middleware added to a group after its ``routes()``
callback ran never reaches those routes.

Usage::

    app.group("/api").use(auth).routes(lambda api: (
        api.get("/items", list_items),
        api.group("/admin").use(require_admin).routes(lambda admin: (
            admin.delete("/items/:id", delete_item),
        )),
    ))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from perch._internal.types import Handler
from perch.errors import ConfigurationError
from perch.middleware.protocol import ensure_callable


class RouteRegistrar(Protocol):
    """The one registration entry point groups write through."""

    def add_route(self, method: str, path: str, handlers: Iterable[Handler]) -> Any: ...


GroupSpec = str | Handler | Iterable[Handler] | None


def split_group_spec(spec: GroupSpec) -> tuple[str, tuple[Handler, ...]]:
    """Normalize a ``group()`` argument into ``(prefix, middleware)``."""
    if spec is None:
        return "", ()
    if isinstance(spec, str):
        return spec, ()
    if callable(spec):
        return "", (spec,)
    if isinstance(spec, Iterable):
        handlers = tuple(spec)
        for handler in handlers:
            ensure_callable(handler, "Group middleware")
        return "", handlers
    msg = f"group() expects a prefix, a middleware, or a list of middleware, got {spec!r}."
    raise ConfigurationError(msg)


class GroupBuilder:
    """Accumulates middleware for a group until ``routes()`` is called."""

    __slots__ = ("_middleware", "_registrar", "prefix")

    def __init__(
        self,
        registrar: RouteRegistrar,
        prefix: str = "",
        middleware: Iterable[Handler] = (),
    ) -> None:
        self._registrar = registrar
        self.prefix = prefix
        # Own copy: later changes to the parent's list never leak in
        self._middleware: list[Handler] = list(middleware)

    @property
    def middleware(self) -> tuple[Handler, ...]:
        return tuple(self._middleware)

    def use(self, *handlers: Handler) -> GroupBuilder:
        """Append middleware for routes declared by a later ``routes()`` call."""
        for handler in handlers:
            ensure_callable(handler, "Group middleware")
        self._middleware.extend(handlers)
        return self

    def routes(self, callback: Callable[[GroupRouter], Any]) -> Any:
        """Declare routes; each is registered immediately with its final chain.

        Returns the registrar (the app) so calls can keep chaining.
        """
        callback(GroupRouter(self._registrar, self.prefix, tuple(self._middleware)))
        return self._registrar


class GroupRouter:
    """Route-declaration surface scoped to a prefix and middleware list."""

    __slots__ = ("_middleware", "_registrar", "prefix")

    def __init__(
        self,
        registrar: RouteRegistrar,
        prefix: str,
        middleware: tuple[Handler, ...],
    ) -> None:
        self._registrar = registrar
        self.prefix = prefix
        self._middleware = middleware

    def on(self, method: str, path: str, *handlers: Handler) -> GroupRouter:
        self._registrar.add_route(
            method.upper(),
            self.prefix + path,
            (*self._middleware, *handlers),
        )
        return self

    def get(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("GET", path, *handlers)

    def post(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("POST", path, *handlers)

    def put(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("PUT", path, *handlers)

    def delete(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("DELETE", path, *handlers)

    def patch(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("PATCH", path, *handlers)

    def options(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("OPTIONS", path, *handlers)

    def head(self, path: str, *handlers: Handler) -> GroupRouter:
        return self.on("HEAD", path, *handlers)

    def group(self, spec: GroupSpec = None) -> GroupBuilder:
        """Open a nested group that inherits a copy of this group's middleware."""
        prefix, middleware = split_group_spec(spec)
        return GroupBuilder(
            self._registrar,
            self.prefix + prefix,
            (*self._middleware, *middleware),
        )
