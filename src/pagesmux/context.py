from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .http import Request, Response

type Params = dict[str, str | list[str]]
type Next = Callable[[], Awaitable[Response]]
type Handler = Callable[[EventContext], Awaitable[Response]]


async def _unbound_next() -> Response:
    msg = "next() is only available while the router is dispatching"
    raise RuntimeError(msg)


@dataclass(slots=True)
class EventContext:
    """Per-request values passed to every handler.

    ``params`` and ``data`` are shared by every handler of a request: the
    router rebinds ``next`` for each handler but never copies those two.
    """

    request: Request
    env: Any = None
    params: Params = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    function_path: str = ""
    next: Next = _unbound_next

    def bind(self, next: Next) -> EventContext:  # noqa: A002
        """Return a shallow copy whose continuation is `next`."""
        return EventContext(
            request=self.request,
            env=self.env,
            params=self.params,
            data=self.data,
            function_path=self.function_path,
            next=next,
        )
