"""
aiohttp application serving the measurement endpoints.

Routes::

    GET  /download?size=N   N random bytes, streamed, no Content-Length
    POST /upload            body read and discarded, 204 No Content
    GET  /upload            405
    GET  /ping              "pong"

Every response, streamed ones included, carries the same no-cache and CORS
headers.  A cached download would finish instantly and report nonsense.
"""
from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from meter.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_STREAM_SIZE,
    READ_CHUNK_SIZE,
    STREAM_CHUNK_SIZE,
)
from meter.payload import iter_chunks

LOGGER = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
    "Access-Control-Allow-Origin": "*",
}

DOWNLOAD_HEADERS = {
    "Content-Type": "application/octet-stream",
    "Content-Disposition": 'attachment; filename="bin.dat"',
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0, no-transform",
    # Stops anything in between from re-encoding the body.
    "Content-Encoding": "identity",
}


def parse_size(raw: Optional[str]) -> int:
    """``?size=`` value: default when absent or not an integer, at least 1."""
    if raw is None:
        return DEFAULT_STREAM_SIZE
    try:
        size = int(raw)
    except ValueError:
        return DEFAULT_STREAM_SIZE
    return max(1, size)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def download(request: web.Request) -> web.StreamResponse:
    size = parse_size(request.query.get("size"))

    resp = web.StreamResponse(status=200, headers=DOWNLOAD_HEADERS)
    await resp.prepare(request)

    for chunk in iter_chunks(size, STREAM_CHUNK_SIZE):
        await resp.write(chunk)
    await resp.write_eof()

    LOGGER.debug("streamed %d bytes to %s", size, request.remote)
    return resp


async def upload(request: web.Request) -> web.Response:
    received = 0
    async for chunk in request.content.iter_chunked(READ_CHUNK_SIZE):
        received += len(chunk)

    LOGGER.debug("discarded %d uploaded bytes from %s", received, request.remote)
    return web.Response(status=204)


async def upload_not_allowed(request: web.Request) -> web.Response:
    return web.Response(status=405, text="method not allowed")


async def ping(request: web.Request) -> web.Response:
    return web.Response(text="pong", content_type="text/plain", charset="utf-8")


async def _apply_common_headers(request: web.Request, response: web.StreamResponse) -> None:
    for name, value in NO_CACHE_HEADERS.items():
        response.headers.setdefault(name, value)


# ---------------------------------------------------------------------------
# Factory / runner
# ---------------------------------------------------------------------------

def create_app() -> web.Application:
    app = web.Application()
    app.on_response_prepare.append(_apply_common_headers)
    app.router.add_get("/download", download)
    app.router.add_post("/upload", upload)
    app.router.add_get("/upload", upload_not_allowed)
    app.router.add_get("/ping", ping)
    return app


def run_server(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    LOGGER.info("serving measurement endpoints on %s:%d", host, port)
    web.run_app(create_app(), host=host, port=port, print=None)
