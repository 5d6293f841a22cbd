"""Immutable query string parameters.

Implements ``Mapping[str, str]`` with last-value-wins lookup:
``?tag=a&tag=b`` reads as ``{"tag": "b"}``. ``get_list`` keeps every value.
"""

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qs


class QueryParams(Mapping[str, str]):
    """Immutable query string parameters.

    Attributes:
        _data: Parsed query string as field name -> list of values.
        _raw: Raw query string bytes.
    """

    _data: dict[str, list[str]]
    _raw: bytes

    __slots__ = ("_data", "_raw")

    def __init__(self, query_string: bytes = b"") -> None:
        object.__setattr__(self, "_raw", query_string)
        parsed = parse_qs(query_string.decode("latin-1"), keep_blank_values=True)
        object.__setattr__(self, "_data", parsed)

    def __getitem__(self, key: str) -> str:
        return self._data[key][-1]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"QueryParams({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the last value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[-1]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*, in query-string order."""
        return list(self._data.get(key, []))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    @property
    def raw(self) -> bytes:
        return self._raw
