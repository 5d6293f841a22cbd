"""Ordered route table with registration-order matching.

Routes are registered during setup and frozen when the app starts
serving. Resolution is a linear scan: the first route whose method
and pattern match wins. There is no specificity ranking, so
``/items/:id`` registered before ``/items/new`` shadows it.
"""

from collections.abc import Iterable

from perch._internal.types import Handler
from perch.routing.pattern import compile_pattern
from perch.routing.route import Route, RouteMatch


class RouteTable:
    """Registry of ``(method, pattern, handler chain)`` entries.

    Usage::

        table = RouteTable()
        table.register("GET", "/users/:id", [show_user])
        table.freeze()
        match = table.resolve("GET", "/users/42")
        match.params  # {"id": "42"}
    """

    __slots__ = ("_frozen", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._frozen = False

    def register(self, method: str, path: str, handlers: Iterable[Handler]) -> Route:
        """Compile *path* and append a route. Must be called before freeze()."""
        if self._frozen:
            msg = "Cannot add routes after the route table is frozen."
            raise RuntimeError(msg)

        route = Route(
            method=method.upper(),
            path=path,
            pattern=compile_pattern(path),
            handlers=tuple(handlers),
        )
        self._routes.append(route)
        return route

    def freeze(self) -> None:
        """Close the table for registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def routes(self) -> tuple[Route, ...]:
        """All registered routes, in registration order."""
        return tuple(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def resolve(self, method: str, path: str) -> RouteMatch | None:
        """Return the first route matching *method* and *path*, or ``None``.

        Never mutates the table; safe to call from concurrent requests.
        """
        method = method.upper()
        for route in self._routes:
            if route.method != method:
                continue
            found = route.pattern.match(path)
            if found is not None:
                return RouteMatch(route=route, params=found.params, wildcard=found.wildcard)
        return None
