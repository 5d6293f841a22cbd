"""Path template compilation and structural matching.

Templates are split on ``/`` into segment descriptors once, at
registration. Matching compares segments structurally; template text
is never handed to a regular expression engine, so literal segments
such as ``/v1.0`` or ``/a+b`` match only themselves.

Template syntax::

    "/users"             literal segments
    "/users/:id"         named parameter, one non-empty segment
    "/files/*"           wildcard, the remainder of the path (may span "/")
    "/static/app*"       literal prefix followed by a wildcard
"""

from dataclasses import dataclass
from enum import Enum

from perch.errors import ConfigurationError


class SegmentKind(Enum):
    LITERAL = "literal"
    PARAM = "param"
    WILDCARD = "wildcard"


@dataclass(frozen=True, slots=True)
class Segment:
    """One ``/``-delimited piece of a compiled template.

    ``value`` holds the literal text, the parameter name, or, for a
    wildcard, the literal prefix that must precede the captured rest.
    """

    kind: SegmentKind
    value: str = ""


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Captures from a successful match."""

    params: dict[str, str]
    wildcard: str | None = None


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled path template. Immutable after compilation."""

    template: str
    segments: tuple[Segment, ...]
    param_names: tuple[str, ...]

    @property
    def has_wildcard(self) -> bool:
        return bool(self.segments) and self.segments[-1].kind is SegmentKind.WILDCARD

    def match(self, path: str) -> PatternMatch | None:
        """Match *path* exactly, or return ``None``.

        There is no trailing-slash normalization: ``/a`` and ``/a/``
        split into different segment counts and never match each other.
        Parameters are returned in template-declaration order.
        """
        parts = path.split("/")
        params: dict[str, str] = {}

        for index, segment in enumerate(self.segments):
            if segment.kind is SegmentKind.WILDCARD:
                if index >= len(parts):
                    return None
                rest = "/".join(parts[index:])
                if not rest.startswith(segment.value):
                    return None
                return PatternMatch(params, rest[len(segment.value) :])

            if index >= len(parts):
                return None
            part = parts[index]

            if segment.kind is SegmentKind.PARAM:
                if not part:
                    return None
                params[segment.value] = part
            elif part != segment.value:
                return None

        if len(parts) != len(self.segments):
            return None
        return PatternMatch(params)


def compile_pattern(template: str) -> PathPattern:
    """Compile a path template into a ``PathPattern``.

    Raises ``ConfigurationError`` for an empty template, an unnamed
    ``:`` capture, a duplicate parameter name, or a ``*`` anywhere but
    the end of the final segment.
    """
    if not template:
        msg = "Route path must not be empty."
        raise ConfigurationError(msg)

    pieces = template.split("/")
    segments: list[Segment] = []
    names: list[str] = []

    for index, piece in enumerate(pieces):
        is_last = index == len(pieces) - 1

        if "*" in piece:
            if not is_last or piece.index("*") != len(piece) - 1:
                msg = (
                    f"Wildcard in {template!r} must be the last character "
                    "of the last segment."
                )
                raise ConfigurationError(msg)
            prefix = piece[:-1]
            if prefix.startswith(":"):
                msg = f"Parameter and wildcard cannot share a segment in {template!r}."
                raise ConfigurationError(msg)
            segments.append(Segment(SegmentKind.WILDCARD, prefix))
            continue

        if piece.startswith(":"):
            name = piece[1:]
            if not name or ":" in name:
                msg = f"Invalid parameter segment {piece!r} in {template!r}."
                raise ConfigurationError(msg)
            if name in names:
                msg = f"Duplicate parameter name {name!r} in {template!r}."
                raise ConfigurationError(msg)
            names.append(name)
            segments.append(Segment(SegmentKind.PARAM, name))
            continue

        segments.append(Segment(SegmentKind.LITERAL, piece))

    return PathPattern(
        template=template,
        segments=tuple(segments),
        param_names=tuple(names),
    )
