"""Dispatch engine: runs one request through its handler chain.

Per request::

    Resolving -> Running -> Completed
                    |
                 Failing -> ErrorRunning -> Completed
                                  |
                             Unrecovered -> boundary response

Resolution failures (no route) and body-parsing failures take the same
Failing path as exceptions raised by handlers. The boundary always
produces a response.

The ASGI wrapper at the bottom (``handle_request``) is the only part of
this module that touches raw ASGI messages.
"""

import logging
from collections.abc import Sequence

from perch._internal.asgi import BodyTooLarge, Receive, Scope, Send, declared_length, read_body
from perch._internal.invoke import invoke
from perch._internal.types import ErrorHandler, Handler
from perch.config import AppConfig
from perch.errors import NotFound, PayloadTooLarge
from perch.http.body import parse_body
from perch.http.request import Request
from perch.http.response import Response
from perch.http.wire import RawRequest, WireResponse
from perch.middleware.protocol import MiddlewareEntry
from perch.routing.router import RouteTable
from perch.server.errors import error_response
from perch.server.sender import send_wire_response

logger = logging.getLogger("perch.server")


async def run_chain(
    handlers: Sequence[Handler],
    request: Request,
    response: Response,
) -> None:
    """Run *handlers* in order, each advancing via its ``proceed`` continuation.

    A handler that returns without awaiting ``proceed`` ends the chain.
    ``proceed`` only returns once every downstream handler has settled,
    and calling it a second time is a no-op, so no handler runs twice.
    """

    async def step(index: int) -> None:
        if index >= len(handlers):
            return
        advanced = False

        async def proceed() -> None:
            nonlocal advanced
            if advanced:
                return
            advanced = True
            await step(index + 1)

        await invoke(handlers[index], request, response, proceed)

    await step(0)


async def run_error_chain(
    handlers: Sequence[ErrorHandler],
    error: Exception,
    request: Request,
    response: Response,
) -> None:
    """Offer *error* to each error handler until one recovers.

    A handler recovers by returning without awaiting ``proceed``. It passes
    the failure on either by awaiting ``proceed`` or by raising; a raised
    exception becomes the error the next handler sees. When the chain is
    exhausted the current error is raised unchanged.
    """

    async def step(index: int, current: Exception) -> None:
        if index >= len(handlers):
            raise current
        advanced = False

        async def proceed() -> None:
            nonlocal advanced
            if advanced:
                return
            advanced = True
            await step(index + 1, current)

        try:
            await invoke(handlers[index], current, request, response, proceed)
        except Exception as raised:
            if advanced:
                # Downstream already had its turn
                raise
            await step(index + 1, raised)

    await step(0, error)


async def dispatch(
    raw: RawRequest,
    *,
    router: RouteTable,
    middleware: Sequence[MiddlewareEntry],
    error_handlers: Sequence[ErrorHandler],
    config: AppConfig,
) -> WireResponse:
    """Process one request through resolution, the chain, and recovery."""
    request = Request.from_raw(raw)
    response = Response(sse_buffer=config.sse_max_buffered)

    try:
        try:
            match = router.resolve(request.method, request.path)
            if match is None:
                raise NotFound()
            request.params = dict(match.params)
            request.wildcard = match.wildcard

            if raw.body_too_large or len(raw.body) > config.max_content_length:
                raise PayloadTooLarge(config.max_content_length)
            request.body = parse_body(raw.body, request.content_type)

            chain = [entry.handler for entry in middleware if entry.applies_to(request.path)]
            chain.extend(match.route.handlers)
            await run_chain(chain, request, response)
        except Exception as exc:
            logger.debug(
                "Chain failed for %s %s with %s", request.method, request.path, type(exc).__name__
            )
            if not error_handlers:
                raise
            await run_error_chain(error_handlers, exc, request, response)
        return _finalize(response, config)
    except Exception as exc:
        if response.channel is not None:
            response.channel.close()
        return _finalize(error_response(exc, request, debug=config.debug), config)


def _finalize(response: Response, config: AppConfig) -> WireResponse:
    return response.finalize(
        heartbeat_interval=config.sse_heartbeat_interval,
        max_lifetime=config.sse_max_lifetime,
    )


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: RouteTable,
    middleware: Sequence[MiddlewareEntry],
    error_handlers: Sequence[ErrorHandler],
    config: AppConfig,
) -> None:
    """Process a single ASGI HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    # Oversized bodies are not buffered; dispatch still answers 413 after routing
    limit = config.max_content_length
    body = b""
    declared = declared_length(scope)
    too_large = declared is not None and declared > limit
    if not too_large:
        try:
            body = await read_body(receive, limit)
        except BodyTooLarge:
            too_large = True

    wire = await dispatch(
        RawRequest.from_asgi(scope, body, body_too_large=too_large),
        router=router,
        middleware=middleware,
        error_handlers=error_handlers,
        config=config,
    )
    await send_wire_response(wire, send, receive)
