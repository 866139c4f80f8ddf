"""Sequential handler chain driven by `next()` continuations."""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING

from .errors import DoubleInvocationError
from .http import Response
from .matching import extract_params

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .context import EventContext, Handler, Params
    from .pattern import PathPattern

path_params: ContextVar[Params] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")

NOT_FOUND_BODY = "Handler not found!"


class Chain:
    """Runs the handlers resolved for one request, in order.

    Each handler receives the context bound to a continuation for the next
    index. The highest index reached so far is tracked: asking for an index at
    or below it means some handler called ``next()`` twice, which aborts the
    request with ``DoubleInvocationError``. Running past the last handler
    produces a 404.
    """

    __slots__ = ("_ctx", "_debug", "_handlers", "_pattern", "_previous", "_segments")

    def __init__(
        self,
        ctx: EventContext,
        handlers: Sequence[Handler],
        pattern: PathPattern | None,
        segments: Sequence[str],
        *,
        debug: bool = False,
    ) -> None:
        self._ctx = ctx
        self._handlers = handlers
        self._pattern = pattern
        self._segments = segments
        self._debug = debug
        self._previous = -1

    async def run(self, index: int = 0) -> Response:
        if index <= self._previous:
            raise DoubleInvocationError
        self._previous = index

        if index >= len(self._handlers):
            return Response(NOT_FOUND_BODY if self._debug else None, status=404)

        # params are re-extracted before every handler
        extract_params(self._pattern, self._segments, self._ctx.params)
        handler = self._handlers[index]

        async def next_() -> Response:
            return await self.run(index + 1)

        response = await handler(self._ctx.bind(next_))
        if not isinstance(response, Response):
            msg = (
                f"handler {getattr(handler, '__qualname__', handler)!r} returned "
                f"{type(response).__name__}, expected Response"
            )
            raise TypeError(msg)
        return response
