"""Built-in middleware: CORS, request IDs, access logging.

Each is a callable class matching the ``(request, response, proceed)``
middleware shape, with a small factory for the common case::

    app.use(request_logger(), request_id())
    app.use(cors(CORSConfig(allow_origins=("https://example.com",))))
"""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from perch._internal.types import Proceed
from perch.http.request import Request
from perch.http.response import Response

access_logger = logging.getLogger("perch.access")


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    All fields have secure defaults (nothing is allowed).
    Override what you need::

        CORSConfig(
            allow_origins=("https://example.com",),
            allow_methods=("GET", "POST"),
        )
    """

    allow_origins: tuple[str, ...] = ()
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ()
    expose_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 600  # 10 minutes


class CORSMiddleware:
    """Standards-compliant CORS middleware.

    Handles:
    - Preflight ``OPTIONS`` requests (204 with CORS headers, chain halted)
    - Actual requests (CORS headers set before the rest of the chain runs)
    - Credential support (``Access-Control-Allow-Credentials``)
    - Wildcard origins (``"*"``) when credentials are disabled

    Routes are resolved before middleware runs, so a preflight only
    reaches this middleware when an ``OPTIONS`` route matches the path::

        app.options("/api/*", lambda req, res, proceed: None)
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _is_allowed_origin(self, origin: str) -> bool:
        if "*" in self.config.allow_origins:
            return True
        return origin in self.config.allow_origins

    def _add_cors_headers(self, response: Response, origin: str) -> None:
        cfg = self.config

        if "*" in cfg.allow_origins and not cfg.allow_credentials:
            response.header("Access-Control-Allow-Origin", "*")
        else:
            response.header("Access-Control-Allow-Origin", origin)
            response.header("Vary", "Origin")

        if cfg.allow_credentials:
            response.header("Access-Control-Allow-Credentials", "true")

        if cfg.expose_headers:
            response.header("Access-Control-Expose-Headers", ", ".join(cfg.expose_headers))

    def _preflight(self, response: Response, origin: str, request_method: str | None) -> None:
        cfg = self.config
        response.status(204)
        self._add_cors_headers(response, origin)

        if request_method:
            response.header("Access-Control-Allow-Methods", ", ".join(cfg.allow_methods))
        if cfg.allow_headers:
            response.header("Access-Control-Allow-Headers", ", ".join(cfg.allow_headers))
        response.header("Access-Control-Max-Age", str(cfg.max_age))

    async def __call__(self, request: Request, response: Response, proceed: Proceed) -> None:
        origin = request.headers.get("origin")

        # No Origin header, or an origin we don't serve: not our business
        if origin is None or not self._is_allowed_origin(origin):
            await proceed()
            return

        if request.method == "OPTIONS":
            self._preflight(response, origin, request.headers.get("access-control-request-method"))
            return

        self._add_cors_headers(response, origin)
        await proceed()


class RequestID:
    """Tag each request with an identifier and echo it on the response.

    An incoming header of the same name is reused so IDs survive proxies.
    The value is stored at ``request.state["request_id"]``.
    """

    __slots__ = ("factory", "header")

    def __init__(
        self,
        header: str = "X-Request-ID",
        factory: Callable[[], str] | None = None,
    ) -> None:
        self.header = header
        self.factory = factory or (lambda: uuid.uuid4().hex)

    async def __call__(self, request: Request, response: Response, proceed: Proceed) -> None:
        request_id = request.headers.get(self.header) or self.factory()
        request.state["request_id"] = request_id
        response.header(self.header, request_id)
        await proceed()


class RequestLogger:
    """Log one access line per request through the ``perch.access`` logger.

    The line is written after the downstream chain settles, so it carries
    the final status. Failures are logged by the dispatch engine instead.
    """

    __slots__ = ("level",)

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    async def __call__(self, request: Request, response: Response, proceed: Proceed) -> None:
        start = time.perf_counter()
        await proceed()
        elapsed_ms = (time.perf_counter() - start) * 1000
        access_logger.log(
            self.level,
            "%s %s %d %.1fms",
            request.method,
            request.url,
            response.status_code,
            elapsed_ms,
        )


def cors(config: CORSConfig | None = None) -> CORSMiddleware:
    return CORSMiddleware(config)


def request_id(header: str = "X-Request-ID") -> RequestID:
    return RequestID(header)


def request_logger(level: int = logging.INFO) -> RequestLogger:
    return RequestLogger(level)
