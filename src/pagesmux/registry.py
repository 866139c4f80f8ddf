"""Ordered storage of registered routes and middleware."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from .matching import resolve_middleware, resolve_route
from .pattern import PathPattern, split_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .context import Handler

logger = logging.getLogger(__name__)


class Method(Enum):
    """HTTP methods a route can be registered for.

    ANY matches every method. Methods outside this set (e.g. TRACE) can only
    be served by ANY routes.
    """

    DELETE = "DELETE"  # Remove the target.
    GET = "GET"  # Retrieve the target.
    HEAD = "HEAD"  # Same as GET, but only retrieve status line and header section.
    OPTIONS = "OPTIONS"  # Describe the communication options for the target.
    PATCH = "PATCH"  # Apply partial modifications to a target.
    POST = "POST"  # Perform target-specific processing with the request payload.
    PUT = "PUT"  # Replace the target with the request payload.

    ANY = "*"  # Any HTTP method.
    OTHER = "OTHER"  # Request-side only: a method no specific route can match.

    def __repr__(self) -> str:
        return str(self.value)

    @property
    def is_any(self) -> bool:
        return self is Method.ANY

    @classmethod
    def from_request(cls, method: str) -> Method:
        """Map a request method onto a member; unknown methods become OTHER."""
        try:
            member = cls(method.upper())
        except ValueError:
            return cls.OTHER
        return cls.OTHER if member.is_any else member


@dataclass(slots=True, frozen=True)
class Route:
    method: Method
    pattern: PathPattern
    handlers: tuple[Handler, ...]

    def with_handlers(self, handlers: tuple[Handler, ...]) -> Route:
        return replace(self, handlers=handlers)


@dataclass(slots=True, frozen=True)
class Resolution:
    """The outcome of matching one request against a registry."""

    route: Route | None
    middleware: tuple[Route, ...]
    segments: tuple[str, ...]

    @property
    def handlers(self) -> tuple[Handler, ...]:
        """Middleware handlers in registration order, then route handlers."""
        handlers = tuple(h for m in self.middleware for h in m.handlers)
        if self.route is not None:
            handlers += self.route.handlers
        return handlers

    @property
    def route_pattern(self) -> str:
        return str(self.route.pattern) if self.route is not None else ""


@dataclass(slots=True)
class Registry:
    routes: list[Route] = field(default_factory=list)
    middleware: list[Route] = field(default_factory=list)

    def register(
        self,
        method: Method,
        pattern: str,
        is_middleware: bool,  # noqa: FBT001
        handlers: Iterable[Handler],
    ) -> Route:
        """Parse `pattern` and append a route to the middleware or route list."""
        handlers = tuple(handlers)
        for handler in handlers:
            if not callable(handler):
                msg = f"handler must be callable, provided {handler!r}"
                raise TypeError(msg)
        if method is Method.OTHER:
            msg = "routes cannot be registered for Method.OTHER"
            raise ValueError(msg)
        route = Route(method, PathPattern.parse(pattern), handlers)
        (self.middleware if is_middleware else self.routes).append(route)
        logger.debug(
            "registered %s %r %s %s",
            "middleware" if is_middleware else "route",
            method,
            route.pattern,
            [_qualname(h) for h in handlers],
        )
        return route

    def resolve(self, method: str | Method, path: str) -> Resolution:
        if not isinstance(method, Method):
            method = Method.from_request(method)
        segments = tuple(split_path(path))
        return Resolution(
            route=resolve_route(self.routes, method, segments),
            middleware=resolve_middleware(self.middleware, method, segments),
            segments=segments,
        )


def format_routes(registry: Registry) -> str:
    """Format registered routes as a column-aligned, human-readable listing.

    Middleware comes first, then routes, each in registration order:

        *     /v1                [middleware]   auth
        GET   /v1/user/[id]                     get_user
        GET   /static/[[path]]                  static_handler > cache
    """
    entries = [(m, "[middleware]") for m in registry.middleware] + [
        (r, "") for r in registry.routes
    ]
    if not entries:
        return ""

    rows = [
        (repr(e.method), str(e.pattern), tag, " > ".join(_qualname(h) for h in e.handlers))
        for e, tag in entries
    ]
    method_w = max(len(r[0]) for r in rows)
    path_w = max(len(r[1]) for r in rows)
    tag_w = max(len(r[2]) for r in rows)

    lines: list[str] = []
    for method, path, tag, handlers in rows:
        if tag_w:
            lines.append(
                f"{method:<{method_w}}   {path:<{path_w}}   {tag:<{tag_w}}   {handlers}"
            )
        else:
            lines.append(f"{method:<{method_w}}   {path:<{path_w}}   {handlers}")
    return "\n".join(line.rstrip() for line in lines)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
