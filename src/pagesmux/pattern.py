"""Path patterns in the file-based routing style.

A pattern is a `/` separated list of segments:

    /users          literal, matches the identical path segment
    /users/[id]     param, matches exactly one path segment
    /files/[[rest]] catch-all, matches the remaining path segments (final only)

Patterns are parsed once at registration time into a tuple of segments.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_NAME = r"[a-zA-Z0-9]+"
_PARAM_RE = re.compile(rf"^\[({_NAME})\]$")
_CATCHALL_RE = re.compile(rf"^\[\[({_NAME})\]\]$")


@dataclass(slots=True, frozen=True)
class LiteralSegment:
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(slots=True, frozen=True)
class ParamSegment:
    name: str

    def __str__(self) -> str:
        return f"[{self.name}]"


@dataclass(slots=True, frozen=True)
class CatchAllSegment:
    name: str

    def __str__(self) -> str:
        return f"[[{self.name}]]"


type Segment = LiteralSegment | ParamSegment | CatchAllSegment


def split_path(path: str) -> list[str]:
    """Split a path on `/`, dropping empty segments.

    `/` and `//` have no segments; `/a//b/` has segments `a` and `b`.
    """
    return [seg for seg in path.split("/") if seg]


def parse_segment(seg: str) -> Segment:
    """Recognise a single raw segment.

    Brackets around anything other than an alphanumeric name are not special,
    so `[foo-bar]` is the literal text `[foo-bar]`.
    """
    if (m := _CATCHALL_RE.match(seg)) is not None:
        return CatchAllSegment(m.group(1))
    if (m := _PARAM_RE.match(seg)) is not None:
        return ParamSegment(m.group(1))
    return LiteralSegment(seg)


@dataclass(slots=True, frozen=True)
class PathPattern:
    segments: tuple[Segment, ...]

    @classmethod
    def parse(cls, pattern: str) -> PathPattern:
        segments = tuple(parse_segment(seg) for seg in split_path(pattern))
        for i, seg in enumerate(segments):
            if isinstance(seg, CatchAllSegment) and i != len(segments) - 1:
                msg = f"catch-all segment {seg} must be the last segment, provided {pattern=}"
                raise ValueError(msg)
        return cls(segments)

    @property
    def catchall(self) -> CatchAllSegment | None:
        """The trailing catch-all segment, if the pattern has one."""
        if self.segments and isinstance(self.segments[-1], CatchAllSegment):
            return self.segments[-1]
        return None

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return "/" + "/".join(str(seg) for seg in self.segments)
