"""Invoke helpers: call sync or async handlers uniformly.

Perch handlers can be ``def`` or ``async def``. Any code that calls
a user-provided handler must handle both cases. This module provides
a single helper so the sync/async check lives in exactly one place.

Usage::

    from perch._internal.invoke import invoke

    await invoke(handler, request, response, proceed)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    A sync middleware may simply ``return proceed()``; the returned
    coroutine is awaited here, so the chain still settles before the
    caller resumes::

        def tag(request, response, proceed):
            response.header("X-Tag", "1")
            return proceed()

        async def load(request, response, proceed):
            request.state["user"] = await fetch_user(request)
            await proceed()
    """
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
