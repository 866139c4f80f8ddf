from collections.abc import AsyncIterator, Mapping
from typing import Any

from pagesmux import EventContext, Handler, Headers, Request, Response


def mock_request(
    path: str = "/",
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    body: bytes | AsyncIterator[bytes] | None = None,
) -> Request:
    return Request(
        method=method,
        url=f"https://example.com{path}",
        headers=Headers(headers or {}),
        body=body,
    )


def mock_context(
    path: str = "/",
    method: str = "GET",
    headers: Mapping[str, str] | None = None,
    body: bytes | AsyncIterator[bytes] | None = None,
    env: Any = None,
) -> EventContext:
    return EventContext(
        request=mock_request(path, method, headers, body),
        env=env,
        function_path=path,
    )


async def stream(*chunks: bytes) -> AsyncIterator[bytes]:
    """Single-use request body."""
    for chunk in chunks:
        yield chunk


def respond(body: str = "ok", status: int = 200) -> Handler:
    """Handler that returns a fixed response."""

    async def handler(ctx: EventContext) -> Response:
        return Response(body, status=status)

    handler.__qualname__ = f"respond_{body}"
    return handler


def record(calls: list[str], name: str) -> Handler:
    """Middleware that records its name and continues the chain."""

    async def handler(ctx: EventContext) -> Response:
        calls.append(name)
        return await ctx.next()

    handler.__qualname__ = name
    return handler
