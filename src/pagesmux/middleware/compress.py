"""Response compression middleware.

Negotiates ``Accept-Encoding`` and compresses response bodies with zstd,
brotli or gzip.

Install with: uv add "pagesmux[compress]"
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from functools import partial
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from pagesmux.context import EventContext, Handler
    from pagesmux.http import Response

try:
    from cramjam import (
        brotli,  # ty: ignore[unresolved-import]  # fixed in cramjam >2.11
        gzip,  # ty: ignore[unresolved-import]  # fixed in cramjam >2.11
        zstd,  # ty: ignore[unresolved-import]  # fixed in cramjam >2.11
    )
except ImportError as e:
    msg = (
        "Compression middleware requires the 'compress' extra. "
        "Install with: uv add 'pagesmux[compress]'"
    )
    raise ImportError(msg) from e

type Encoding = Literal["zstd", "br", "gzip"]
type Compressor = Callable[[bytes], bytes]

_CODECS: dict[str, Callable[..., object]] = {
    "zstd": zstd.compress,
    "br": brotli.compress,
    "gzip": gzip.compress,
}

# (encoding, level) in server preference order
DEFAULT_ENCODINGS: tuple[tuple[Encoding, int], ...] = (
    ("zstd", 3),
    ("br", 4),
    ("gzip", 6),
)
DEFAULT_MIN_SIZE = 500
DEFAULT_COMPRESSIBLE_TYPES: frozenset[str] = frozenset(
    {
        "application/javascript",
        "application/json",
        "application/ld+json",
        "application/manifest+json",
        "application/xml",
        "image/svg+xml",
        "text/css",
        "text/csv",
        "text/event-stream",
        "text/html",
        "text/javascript",
        "text/plain",
        "text/xml",
    }
)


def compress(
    *,
    min_size: int = DEFAULT_MIN_SIZE,
    compressible_types: frozenset[str] = DEFAULT_COMPRESSIBLE_TYPES,
    encodings: tuple[tuple[Encoding, int], ...] = DEFAULT_ENCODINGS,
) -> Handler:
    """Create response compression middleware.

    The response produced by the rest of the chain is compressed when the
    client accepts one of `encodings`, its content type is compressible, it is
    at least `min_size` bytes long and it isn't already encoded.

    Args:
        min_size: Smallest body, in bytes, worth compressing.
        compressible_types: Content types (without parameters) to compress.
        encodings: (encoding, level) pairs in server preference order; on
            equal client quality the earlier encoding wins.

    Example:
        router.use("/", compress())

        # gzip only, compress anything over 1 KiB
        router.use("/api", compress(min_size=1024, encodings=(("gzip", 6),)))
    """
    if min_size < 0:
        msg = f"min_size must be >= 0, got {min_size}"
        raise ValueError(msg)
    if not encodings:
        msg = "encodings must not be empty"
        raise ValueError(msg)
    for name, _ in encodings:
        if name not in _CODECS:
            msg = f"unsupported encoding {name!r}, expected one of {sorted(_CODECS)}"
            raise ValueError(msg)

    priority, cache = _build_encoding_cache(encodings)

    async def compressed_handler(ctx: EventContext) -> Response:
        response = await ctx.next()

        selected = _select_encoding(
            ctx.request.headers.get("accept-encoding", ""), priority, cache
        )
        if selected is None:
            return response
        if "content-encoding" in response.headers:
            return response
        content_type = response.headers.get("content-type", "")
        if content_type.split(";")[0].strip().lower() not in compressible_types:
            return response
        body = response.content
        if not body or len(body) < min_size:
            return response

        encoding, compressor = selected
        compressed = compressor(body)
        headers = (
            response.headers.set("content-encoding", encoding)
            .set("vary", _vary(response.headers.get("vary")))
            .set("content-length", str(len(compressed)))
        )
        return replace(response, body=compressed, headers=headers)

    return compressed_handler


def _vary(existing: str | None) -> str:
    if not existing:
        return "accept-encoding"
    names = [v.strip().lower() for v in existing.split(",")]
    if "accept-encoding" in names or "*" in names:
        return existing
    return f"{existing}, accept-encoding"


def _build_encoding_cache(
    encodings: tuple[tuple[Encoding, int], ...],
) -> tuple[dict[str, int], dict[str, Compressor]]:
    """Precompute server priority (higher wins) and a compressor per encoding."""
    priority = {name: len(encodings) - i for i, (name, _) in enumerate(encodings)}
    cache: dict[str, Compressor] = {
        name: partial(_compress, _CODECS[name], level) for name, level in encodings
    }
    return priority, cache


def _compress(codec: Callable[..., object], level: int, data: bytes) -> bytes:
    return bytes(codec(data, level=level))


def _parse_accept_encoding(header: str) -> list[tuple[str, float]]:
    """Parse an Accept-Encoding header into (encoding, quality) pairs."""
    result: list[tuple[str, float]] = []
    for part in header.split(","):
        name, _, params = part.partition(";")
        name = name.strip().lower()
        if not name:
            continue
        quality = 1.0
        for param in params.split(";"):
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(value.strip())
                except ValueError:
                    quality = 0.0
        result.append((name, quality))
    return result


def _select_encoding(
    header: str,
    priority: dict[str, int],
    cache: dict[str, Compressor],
) -> tuple[str, Compressor] | None:
    """Pick the encoding with the highest client quality, then server priority.

    ``*`` sets the quality of every encoding the client doesn't list, and a
    quality of 0 rejects an encoding.
    """
    if not header:
        return None
    accepted = _parse_accept_encoding(header)
    explicit = {name: q for name, q in accepted if name != "*"}
    wildcard = next((q for name, q in accepted if name == "*"), None)

    best: str | None = None
    best_key: tuple[float, int] | None = None
    for name, rank in priority.items():
        quality = explicit.get(name, wildcard)
        if quality is None or quality <= 0:
            continue
        if best_key is None or (quality, rank) > best_key:
            best, best_key = name, (quality, rank)
    if best is None:
        return None
    return best, cache[best]
