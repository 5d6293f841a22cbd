"""Perch application class.

Mutable during setup (routes, middleware, error handlers, groups).
Frozen at runtime when ``listen()``, ``handle()``, or ``__call__()`` is
first invoked.
"""

import inspect
import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.types import ErrorHandler, Handler
from perch.config import AppConfig
from perch.errors import ConfigurationError
from perch.http.wire import RawRequest, WireResponse
from perch.middleware.protocol import (
    ErrorHandlerEntry,
    MiddlewareEntry,
    classify,
    ensure_callable,
)
from perch.routing.group import GroupBuilder, GroupSpec, split_group_spec
from perch.routing.route import Route
from perch.routing.router import RouteTable
from perch.server.handler import dispatch, handle_request

logger = logging.getLogger("perch.server")


class App:
    """The perch application.

    Usage::

        app = App()
        app.use(request_logger())

        @app.error_handler
        async def on_error(error, request, response, proceed):
            response.status(500).json({"error": str(error)})

        app.get("/users/:id", lambda req, res, proceed: res.json({"id": req.params["id"]}))
        app.listen(3000)

    Thread safety:
        Registration is single-threaded setup work. The freeze transition
        uses a Lock + double-check so exactly one thread closes the app
        for registration, even when several workers hit it on first request.
    """

    __slots__ = (
        "_error_chain",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router = RouteTable()
        self._middleware_list: list[MiddlewareEntry] = []
        self._error_handlers: list[ErrorHandlerEntry] = []
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._middleware: tuple[MiddlewareEntry, ...] = ()
        self._error_chain: tuple[ErrorHandler, ...] = ()

    # -- Middleware --

    def use(self, *handlers: Any) -> "App":
        """Register global middleware and error handlers, in order.

        A leading string mounts the middleware at that path prefix::

            app.use(timing, auth)
            app.use("/api", api_version, rate_limit)

        Callables taking exactly four positional parameters
        ``(error, request, response, proceed)`` join the error chain;
        everything else runs before route handlers.
        """
        self._check_not_frozen()
        mount: str | None = None
        if handlers and isinstance(handlers[0], str):
            mount, handlers = handlers[0], handlers[1:]
            if not handlers:
                msg = f"use({mount!r}) needs at least one middleware."
                raise ConfigurationError(msg)

        for handler in handlers:
            entry = classify(handler, mount)
            if isinstance(entry, ErrorHandlerEntry):
                self._error_handlers.append(entry)
            else:
                self._middleware_list.append(entry)
        return self

    def error_handler(self, func: ErrorHandler) -> ErrorHandler:
        """Register *func* on the error chain regardless of its signature."""
        self._check_not_frozen()
        ensure_callable(func, "Error handler")
        self._error_handlers.append(ErrorHandlerEntry(func))
        return func

    # -- Route registration --

    def add_route(self, method: str, path: str, handlers: Iterable[Handler]) -> Route:
        """Register a route with its finalized handler chain.

        The single registration entry point: the verb shortcuts and group
        routers all come through here.
        """
        self._check_not_frozen()
        chain = tuple(handlers)
        if not chain:
            msg = f"Route {method} {path!r} needs at least one handler."
            raise ConfigurationError(msg)
        for handler in chain:
            ensure_callable(handler)
        route = self._router.register(method, path, chain)
        logger.debug("Registered %s %s (%d handlers)", route.method, route.path, len(chain))
        return route

    def on(self, method: str, path: str, *handlers: Handler) -> "App":
        """Register a route for any method, including custom ones like ``REPORT``."""
        if not method or not method.strip():
            msg = "HTTP method must be a non-empty string."
            raise ConfigurationError(msg)
        self.add_route(method.upper(), path, handlers)
        return self

    def get(self, path: str, *handlers: Handler) -> "App":
        return self.on("GET", path, *handlers)

    def post(self, path: str, *handlers: Handler) -> "App":
        return self.on("POST", path, *handlers)

    def put(self, path: str, *handlers: Handler) -> "App":
        return self.on("PUT", path, *handlers)

    def delete(self, path: str, *handlers: Handler) -> "App":
        return self.on("DELETE", path, *handlers)

    def patch(self, path: str, *handlers: Handler) -> "App":
        return self.on("PATCH", path, *handlers)

    def options(self, path: str, *handlers: Handler) -> "App":
        return self.on("OPTIONS", path, *handlers)

    def head(self, path: str, *handlers: Handler) -> "App":
        return self.on("HEAD", path, *handlers)

    def group(self, spec: GroupSpec = None) -> GroupBuilder:
        """Open a route group from a prefix, a middleware, or a middleware list.

        Usage::

            app.group("/api").use(auth).routes(lambda api: api.get("/me", me))
            app.group([auth, check_role("admin")]).routes(...)
        """
        self._check_not_frozen()
        prefix, middleware = split_group_spec(spec)
        return GroupBuilder(self, prefix, middleware)

    @property
    def routes(self) -> tuple[Route, ...]:
        """Registered routes in matching order."""
        return self._router.routes

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        after the server stops accepting new requests.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Entry points --

    async def handle(self, raw: RawRequest) -> WireResponse:
        """Dispatch a single transport request in-process.

        Takes the same path as a network request past the transport:
        body parsing, routing, the handler chain, and error recovery.
        """
        self._ensure_frozen()
        return await dispatch(
            raw,
            router=self._router,
            middleware=self._middleware,
            error_handlers=self._error_chain,
            config=self.config,
        )

    def listen(
        self,
        port: int | None = None,
        callback: Callable[[Any], Any] | None = None,
        *,
        host: str | None = None,
    ) -> None:
        """Serve the app on the network until interrupted.

        Freezes the app, then hands it to the pounce ASGI server.
        *callback* receives the server object before serving begins.
        """
        from perch.server.dev import run_server

        self._ensure_frozen()
        _host = host or self.config.host
        _port = port if port is not None else self.config.port
        logger.info("Server running at http://%s:%d", _host, _port)
        run_server(
            self,
            _host,
            _port,
            workers=self.config.workers,
            log_level=self.config.log_level,
            callback=callback,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles lifespan directly, then delegates HTTP scopes to the
        dispatch engine.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            middleware=self._middleware,
            error_handlers=self._error_chain,
            config=self.config,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send(
                        {
                            "type": "lifespan.startup.failed",
                            "message": str(exc),
                        }
                    )
                    return

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run startup hooks in registration order."""
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Capture registration state as the immutable runtime state.

        MUST only be called while holding _freeze_lock.
        """
        self._router.freeze()
        self._middleware = tuple(self._middleware_list)
        self._error_chain = tuple(entry.handler for entry in self._error_handlers)
        self._frozen = True
        logger.debug(
            "App frozen: %d routes, %d middleware, %d error handlers",
            len(self._router),
            len(self._middleware),
            len(self._error_chain),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and error handlers before the first request."
            )
            raise RuntimeError(msg)
