"""Request and response values handed to and returned by handlers.

Hosts adapt their own transport objects to these; the router only needs the
method, the URL path and a body that may have to be read twice.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlsplit

from .errors import BodyConsumedError

type HeaderItems = Mapping[str, str] | Iterable[tuple[str, str]]
type Body = bytes | AsyncIterator[bytes] | None


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive, ordered HTTP headers.

    ``__getitem__`` returns the first matching value, ``get_list`` all of them.
    Names are stored lowercased.
    """

    __slots__ = ("_items",)

    def __init__(self, items: HeaderItems = ()) -> None:
        pairs = items.items() if isinstance(items, Mapping) else items
        self._items: tuple[tuple[str, str], ...] = tuple(
            (name.lower(), value) for name, value in pairs
        )

    def __getitem__(self, key: str) -> str:
        key = key.lower()
        for name, value in self._items:
            if name == key:
                return value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        key = key.lower()
        return any(name == key for name, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for name, _ in self._items:
            if name not in seen:
                seen.add(name)
                yield name

    def __len__(self) -> int:
        return len(set(self))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"Headers({list(self._items)!r})"

    def get_list(self, key: str) -> list[str]:
        key = key.lower()
        return [value for name, value in self._items if name == key]

    def items_list(self) -> list[tuple[str, str]]:
        """All header pairs, including repeated names."""
        return list(self._items)

    def set(self, name: str, value: str) -> Headers:
        """Return new headers with every `name` replaced by a single value."""
        name = name.lower()
        return Headers([*((n, v) for n, v in self._items if n != name), (name, value)])

    def add(self, name: str, value: str) -> Headers:
        return Headers([*self._items, (name, value)])

    def remove(self, name: str) -> Headers:
        name = name.lower()
        return Headers([(n, v) for n, v in self._items if n != name])


@dataclass(frozen=True, slots=True)
class Request:
    """An inbound HTTP request.

    ``body`` is either bytes, which can be read any number of times, or an
    async iterator of chunks, which can be read once. ``buffered()`` turns the
    latter into the former.
    """

    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    body: Body = None
    # Private: tracks whether a streamed body has been drained
    _state: dict[str, bool] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))
        object.__setattr__(self, "method", self.method.upper())

    @property
    def path(self) -> str:
        """The URL path, without scheme, host or query string."""
        return urlsplit(self.url).path or "/"

    @property
    def replayable(self) -> bool:
        return not isinstance(self.body, AsyncIterator)

    async def read(self) -> bytes:
        """Read the full body.

        Raises ``BodyConsumedError`` when a streamed body is read twice.
        """
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        if self._state.get("consumed"):
            raise BodyConsumedError
        self._state["consumed"] = True
        return b"".join([chunk async for chunk in self.body])

    async def text(self) -> str:
        return (await self.read()).decode("utf-8")

    async def json(self) -> Any:
        return json.loads(await self.read())

    async def buffered(self) -> Request:
        """Return a copy of the request whose body can be read again."""
        if self.replayable:
            return self
        return replace(self, body=await self.read(), _state={})


@dataclass(frozen=True, slots=True)
class Response:
    """An outbound HTTP response built through immutable transformations."""

    body: str | bytes | None = None
    status: int = 200
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))

    @classmethod
    def json_body(cls, obj: Any, status: int = 200) -> Response:
        """Serialise `obj` as a JSON response."""
        return cls(
            json.dumps(obj),
            status=status,
            headers=Headers([("content-type", "application/json")]),
        )

    @property
    def content(self) -> bytes:
        """The body as bytes (empty when there is no body)."""
        if self.body is None:
            return b""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.content)

    def with_status(self, status: int) -> Response:
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with `name` set to `value`."""
        return replace(self, headers=self.headers.set(name, value))

    def with_body(self, body: str | bytes | None) -> Response:
        return replace(self, body=body)
