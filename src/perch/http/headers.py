"""Case-insensitive HTTP headers.

``Headers`` is the immutable request side: it stores raw byte pairs from
the ASGI scope and decodes on access. ``MutableHeaders`` is the response
side: an ordered map where setting a name overwrites any earlier value
for that name, whatever its case.
"""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive HTTP headers.

    ``__getitem__`` returns the first matching value.
    ``get_list`` returns all values for a header.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        object.__setattr__(self, "_raw", raw)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> "Headers":
        """Build from string pairs (used by tests and in-process callers)."""
        return cls(tuple((k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs))

    def __getitem__(self, key: str) -> str:
        key_lower = key.lower().encode("latin-1")
        for name, value in self._raw:
            if name.lower() == key_lower:
                return value.decode("latin-1")
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key_lower = key.lower().encode("latin-1")
        return any(name.lower() == key_lower for name, _ in self._raw)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._raw:
            key = name.decode("latin-1").lower()
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return len(set(self))

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"Headers({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        try:
            return self[key]
        except KeyError:
            return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        key_lower = key.lower().encode("latin-1")
        return [value.decode("latin-1") for name, value in self._raw if name.lower() == key_lower]

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        """Access raw header byte pairs for ASGI compatibility."""
        return self._raw


class MutableHeaders(MutableMapping[str, str]):
    """Ordered, case-insensitive response headers.

    Keys are compared case-insensitively; the casing of the most recent
    write is kept for output. Overwriting a header keeps its position.
    """

    __slots__ = ("_items",)

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        # lowercased name -> (name as last written, value)
        self._items: dict[str, tuple[str, str]] = {}
        if initial:
            for name, value in initial.items():
                self[name] = value

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __setitem__(self, key: str, value: str) -> None:
        self._items[key.lower()] = (key, value)

    def __delitem__(self, key: str) -> None:
        del self._items[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        items = ", ".join(f"{name!r}: {value!r}" for name, value in self._items.values())
        return f"MutableHeaders({{{items}}})"

    def pairs(self) -> tuple[tuple[str, str], ...]:
        """Headers as ``(name, value)`` pairs in insertion order."""
        return tuple(self._items.values())
