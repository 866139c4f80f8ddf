"""Route and middleware matching, and path parameter extraction.

Routes match exactly: a pattern has to account for every path segment.
Middleware matches by prefix: `/v1` runs for `/v1`, `/v1/users` and
`/v1/users/42`. Middleware at `/v1/[[rest]]` runs for `/v1/users` only.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .pattern import CatchAllSegment, LiteralSegment, ParamSegment, PathPattern

if TYPE_CHECKING:
    from .context import Params
    from .registry import Method, Route


def method_allows(route: Route, method: Method) -> bool:
    return route.method is method or route.method.is_any


def _segment_matches(pattern: PathPattern, i: int, segments: Sequence[str]) -> bool:
    """Whether pattern segment `i` accepts the path segment at the same index."""
    seg = pattern.segments[i]
    if i >= len(segments):
        return False
    match seg:
        case LiteralSegment(text):
            return text == segments[i]
        case ParamSegment() | CatchAllSegment():
            return True


def matches_exact(pattern: PathPattern, segments: Sequence[str]) -> bool:
    """Whether `pattern` matches the whole path.

    Segment counts have to agree, except that a trailing catch-all absorbs
    one or more remaining segments.
    """
    if pattern.catchall is None:
        if len(pattern) != len(segments):
            return False
    elif len(segments) < len(pattern):
        return False
    return all(_segment_matches(pattern, i, segments) for i in range(len(pattern)))


def matches_prefix(pattern: PathPattern, segments: Sequence[str]) -> bool:
    """Whether every segment of `pattern` matches the start of the path.

    A pattern ending in a catch-all is not a prefix: it only matches a path
    with the same number of segments.
    """
    if pattern.catchall is None:
        return all(
            _segment_matches(pattern, i, segments) for i in range(len(pattern))
        )
    return len(pattern) == len(segments) and all(
        _segment_matches(pattern, i, segments) for i in range(len(pattern) - 1)
    )


def resolve_route(
    routes: Sequence[Route], method: Method, segments: Sequence[str]
) -> Route | None:
    """Find the route for the request, merging overlapping matches.

    Any-method routes are tried before specific-method ones (sort is stable,
    so registration order holds within each group). When several routes match,
    the last one is primary and the handlers of the others run first.
    """
    candidates = sorted(
        (r for r in routes if method_allows(r, method)),
        key=lambda r: not r.method.is_any,
    )
    matched = [r for r in candidates if matches_exact(r.pattern, segments)]
    if not matched:
        return None
    *earlier, primary = matched
    if not earlier:
        return primary
    handlers = tuple(h for r in earlier for h in r.handlers)
    return primary.with_handlers(handlers + primary.handlers)


def resolve_middleware(
    middleware: Sequence[Route], method: Method, segments: Sequence[str]
) -> tuple[Route, ...]:
    """All middleware entries whose pattern is a prefix of the path, in order."""
    return tuple(
        m
        for m in middleware
        if method_allows(m, method) and matches_prefix(m.pattern, segments)
    )


def extract_params(
    pattern: PathPattern | None, segments: Sequence[str], params: Params
) -> Params:
    """Write the path parameters bound by `pattern` into `params`."""
    if pattern is None:
        return params
    for i, value in enumerate(segments):
        if i >= len(pattern):
            break
        match pattern.segments[i]:
            case CatchAllSegment(name):
                params[name] = list(segments[i:])
            case ParamSegment(name):
                params[name] = value
            case LiteralSegment():
                pass
    return params
