"""Router for file-path style edge functions, configured by explicit calls.

Routes are registered per method and pattern; middleware is registered the
same way with ``middleware=True`` and runs, by prefix match, before the
route's handlers:

    router = Router()
    router.use("/v1", auth)
    router.get("/v1/user/[id]", get_user)
    router.any("/static/[[path]]", static_files)

    on_request = router.handle
"""

from __future__ import annotations

import logging
import traceback
from contextlib import contextmanager
from typing import TYPE_CHECKING, Literal

from .dispatch import Chain, http_route, path_params
from .http import Response
from .registry import Method, Registry, format_routes

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextvars import ContextVar

    from .context import EventContext, Handler

logger = logging.getLogger(__name__)

type HTTPMethod = Literal["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]

# methods whose body is buffered so that handlers can read it more than once
BUFFERED_METHODS = frozenset({"POST", "PUT", "PATCH"})


class Router:
    """Registers routes and middleware and dispatches requests to them.

    The middleware flag of the registration methods is keyword-only
    (``router.get("/v1", auth, middleware=True)``); every positional argument
    after the pattern is a handler.
    """

    __slots__ = ("_debug", "_registry")
    _registry: Registry
    _debug: bool

    def __init__(self, *, debug: bool = False) -> None:
        self._registry = Registry()
        self._debug = debug

    async def __call__(self, ctx: EventContext) -> Response:
        return await self.handle(ctx)

    async def handle(self, ctx: EventContext) -> Response:
        """Dispatch the request in `ctx` and return the response.

        Never raises: a double ``next()`` call or any exception from a handler
        is logged and turned into a 500, whose body is the traceback in debug
        mode and empty otherwise.
        """
        try:
            if ctx.request.method in BUFFERED_METHODS:
                ctx.request = await ctx.request.buffered()
            resolution = self._registry.resolve(ctx.request.method, ctx.request.path)
            logger.debug(
                "%s %s resolved to route %r with %d middleware",
                ctx.request.method,
                ctx.request.path,
                resolution.route_pattern or None,
                len(resolution.middleware),
            )
            chain = Chain(
                ctx,
                resolution.handlers,
                resolution.route.pattern if resolution.route is not None else None,
                resolution.segments,
                debug=self._debug,
            )
            with (
                _bound(http_route, resolution.route_pattern),
                _bound(path_params, ctx.params),
            ):
                return await chain.run(0)
        except Exception as e:
            logger.exception(
                "error handling %s %s", ctx.request.method, ctx.request.url
            )
            body = "".join(traceback.format_exception(e)) if self._debug else None
            return Response(body, status=500)

    def debug(self, enabled: bool = True) -> Router:  # noqa: FBT001, FBT002
        """Switch debug mode, which puts diagnostics in 404 and 500 bodies."""
        self._debug = enabled
        if enabled:
            logger.debug("registered routes:\n%s", self.routes)
        return self

    @property
    def debug_enabled(self) -> bool:
        return self._debug

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def routes(self) -> str:
        """Column-aligned listing of registered middleware and routes."""
        return format_routes(self._registry)

    def register(
        self,
        method: Method,
        path: str,
        handlers: tuple[Handler, ...],
        *,
        middleware: bool = False,
    ) -> Router:
        """Registers handlers at path for method, as a route or as middleware."""
        self._registry.register(method, path, middleware, handlers)
        return self

    def method(
        self,
        method: HTTPMethod | None,
        path: str,
        *handlers: Handler,
        middleware: bool = False,
    ) -> Router:
        """Registers handlers at path for method (None for any method)."""
        return self.register(
            Method(method.upper()) if method is not None else Method.ANY,
            path,
            handlers,
            middleware=middleware,
        )

    def any(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for any method."""
        return self.register(Method.ANY, path, handlers, middleware=middleware)

    def use(self, path: str, *handlers: Handler) -> Router:
        """Registers middleware at path for any method."""
        return self.register(Method.ANY, path, handlers, middleware=True)

    def delete(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for DELETE."""
        return self.register(Method.DELETE, path, handlers, middleware=middleware)

    def get(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for GET."""
        return self.register(Method.GET, path, handlers, middleware=middleware)

    def head(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for HEAD."""
        return self.register(Method.HEAD, path, handlers, middleware=middleware)

    def options(
        self, path: str, *handlers: Handler, middleware: bool = False
    ) -> Router:
        """Registers handlers at path for OPTIONS."""
        return self.register(Method.OPTIONS, path, handlers, middleware=middleware)

    def patch(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for PATCH."""
        return self.register(Method.PATCH, path, handlers, middleware=middleware)

    def post(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for POST."""
        return self.register(Method.POST, path, handlers, middleware=middleware)

    def put(self, path: str, *handlers: Handler, middleware: bool = False) -> Router:
        """Registers handlers at path for PUT."""
        return self.register(Method.PUT, path, handlers, middleware=middleware)


@contextmanager
def _bound[T](var: ContextVar[T], value: T) -> Iterator[None]:
    """Set a ContextVar for the duration of a with block."""
    token = var.set(value)
    try:
        yield
    finally:
        var.reset(token)
