# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "pagesmux[compress]",
# ]
#
# [tool.uv.sources]
# pagesmux = { path = "../", editable = true }
# ///
"""Edge function demo.

Registers middleware and routes on a router and feeds it a few requests the way
an edge runtime would, printing each response.
"""

import asyncio
import logging
import sys

from pagesmux import EventContext, Headers, Request, Response, Router
from pagesmux.middleware.compress import compress

USERS = {"1": {"id": "1", "name": "ada"}, "2": {"id": "2", "name": "grace"}}


async def auth(ctx: EventContext) -> Response:
    if ctx.request.headers.get("authorization") != "Bearer secret":
        return Response("unauthorized", status=401)
    ctx.data["user"] = "admin"
    return await ctx.next()


async def list_users(ctx: EventContext) -> Response:
    return Response.json_body(list(USERS.values()) * 20)


async def get_user(ctx: EventContext) -> Response:
    user = USERS.get(str(ctx.params["id"]))
    if user is None:
        return Response.json_body({"error": "no such user"}, status=404)
    return Response.json_body(user)


async def create_user(ctx: EventContext) -> Response:
    payload = await ctx.request.json()
    return Response.json_body({"created": payload, "by": ctx.data["user"]}, status=201)


async def docs(ctx: EventContext) -> Response:
    return Response(f"docs page: {ctx.params['path']}")


router = Router(debug=True)
router.use("/", compress(min_size=100))
router.use("/v1", auth)
router.get("/v1/users", list_users)
router.get("/v1/users/[id]", get_user)
router.post("/v1/users", create_user)
router.get("/docs/[[path]]", docs)


def request(
    method: str, path: str, headers: dict[str, str] | None = None, body: bytes | None = None
) -> EventContext:
    headers = {"authorization": "Bearer secret", "accept-encoding": "gzip"} | (
        headers or {}
    )
    return EventContext(
        request=Request(method, f"https://example.com{path}", Headers(headers), body),
        function_path=path,
    )


async def main() -> None:
    """Script entrypoint"""
    logging.basicConfig(level=logging.DEBUG)
    print(router.routes, file=sys.stderr)

    for ctx in (
        request("GET", "/v1/users"),
        request("GET", "/v1/users/2"),
        request("GET", "/v1/users/3"),
        request("POST", "/v1/users", body=b'{"name": "barbara"}'),
        request("GET", "/v1/users", headers={"authorization": "nope"}),
        request("GET", "/docs/guide/routing"),
        request("GET", "/missing"),
    ):
        response = await router.handle(ctx)
        encoding = response.headers.get("content-encoding", "identity")
        print(
            f"{ctx.request.method} {ctx.request.path} -> {response.status} "
            f"({encoding}, {len(response.content)} bytes)"
        )


if __name__ == "__main__":
    asyncio.run(main())
