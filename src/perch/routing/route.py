"""Route and RouteMatch frozen dataclasses."""

from dataclasses import dataclass

from perch._internal.types import Handler
from perch.routing.pattern import PathPattern


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route.

    ``handlers`` is the finalized chain: enclosing group middleware,
    outer to inner, followed by the route's own handlers. It is fixed
    when the route is registered.
    """

    method: str
    path: str
    pattern: PathPattern
    handlers: tuple[Handler, ...]


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route resolution."""

    route: Route
    params: dict[str, str]
    wildcard: str | None = None
