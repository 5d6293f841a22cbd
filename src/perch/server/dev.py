"""Network listener: serves a perch App with the pounce ASGI server.

Pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``),
but perch has a live ``App`` object. We use ``pounce.Server``
directly with the ASGI callable.
"""

from collections.abc import Callable
from typing import Any


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    workers: int = 1,
    log_level: str = "info",
    callback: Callable[[Any], Any] | None = None,
) -> None:
    """Bind *app* to ``host:port`` and serve until interrupted.

    Args:
        app: ASGI callable (perch App instance).
        host: Bind host address.
        port: Bind port number.
        workers: Worker count.
        log_level: Server log level name.
        callback: Called with the server object before it starts serving.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=workers,
        log_level=log_level,
    )
    server = Server(config, app)
    if callback is not None:
        callback(server)
    server.run()
