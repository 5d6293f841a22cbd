"""Perch: a small request-dispatch engine for ASGI.

Routes map to ordered handler chains. Every handler receives the
request, a shared response, and a ``proceed`` continuation; a handler
that does not await ``proceed`` ends the chain. Failures divert to a
separate error chain.

Basic usage::

    from perch import App

    app = App()

    async def show_user(request, response, proceed):
        response.json({"id": request.params["id"]})

    app.get("/users/:id", show_user)
    app.listen(3000)

Serving over the network needs the server extra (``pip install perch[server]``).
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "ErrorHandler",
    "GroupBuilder",
    "HTTPError",
    "Handler",
    "MalformedBody",
    "Middleware",
    "NotFound",
    "PayloadTooLarge",
    "PerchError",
    "Proceed",
    "RawRequest",
    "Request",
    "Response",
    "SSEChannel",
    "SSEEvent",
    "WireResponse",
    "error_handler",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name == "Response":
        from perch.http.response import Response

        return Response

    if name in ("RawRequest", "WireResponse"):
        from perch.http import wire as _wire

        return getattr(_wire, name)

    if name == "SSEChannel":
        from perch.realtime.channel import SSEChannel

        return SSEChannel

    if name == "SSEEvent":
        from perch.realtime.events import SSEEvent

        return SSEEvent

    if name == "GroupBuilder":
        from perch.routing.group import GroupBuilder

        return GroupBuilder

    if name in ("Middleware", "error_handler"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("ErrorHandler", "Handler", "Proceed"):
        from perch._internal import types as _types

        return getattr(_types, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "MalformedBody",
        "NotFound",
        "PayloadTooLarge",
        "PerchError",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
