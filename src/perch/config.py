"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, sse_max_lifetime=300.0)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False  # Adds the raw exception message to 500 bodies
    workers: int = 1
    log_level: str = "info"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # SSE
    sse_heartbeat_interval: float | None = 15.0  # None disables idle comments
    sse_max_lifetime: float | None = None  # Seconds; None keeps channels open until closed
    sse_max_buffered: int = 1024  # Queued events per client before a slow client is dropped
