"""Request body parsing by content type.

Dispatch:
    - ``application/json``                  -> parsed JSON value
    - ``application/x-www-form-urlencoded`` -> flat ``dict[str, str]`` (last value wins)
    - anything else, or no content type     -> text (UTF-8)
    - empty body                            -> ``None``

URL-encoded forms use stdlib ``urllib.parse``, no extra dependency.
"""

import json as json_module
from typing import Any
from urllib.parse import parse_qsl

from perch.errors import MalformedBody

JSON_TYPE = "application/json"
FORM_TYPE = "application/x-www-form-urlencoded"


def parse_body(raw: bytes, content_type: str | None) -> Any:
    """Parse *raw* according to *content_type*.

    Raises ``MalformedBody`` (400) when a JSON or form body cannot be decoded.
    """
    if not raw:
        return None

    ct = (content_type or "").lower()

    if JSON_TYPE in ct:
        try:
            return json_module.loads(raw)
        except ValueError as exc:  # JSONDecodeError and UnicodeDecodeError
            raise MalformedBody("Invalid JSON body") from exc

    if FORM_TYPE in ct:
        try:
            text = raw.decode("utf-8")
            return dict(parse_qsl(text, keep_blank_values=True, errors="strict"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedBody("Invalid form data") from exc

    return raw.decode("utf-8", errors="replace")
