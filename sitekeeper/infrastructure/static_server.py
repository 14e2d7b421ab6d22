"""
Static file server for the site and its data snapshot.

Every request path is decoded and resolved against the serving root; a
path that ends up anywhere outside that root is refused with 403 before
the filesystem is consulted. Errors always come back as {"error": ...}
with a generic message.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Callable
from urllib.parse import unquote

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)

INDEX_DOCUMENT       = "index.html"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_DECODE_ROUNDS    = 4

CONTENT_TYPES = {
    ".css":  "text/css; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".js":   "application/javascript; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".png":  "image/png",
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif":  "image/gif",
    ".svg":  "image/svg+xml",
    ".ico":  "image/x-icon",
    ".txt":  "text/plain; charset=utf-8",
    ".map":  "application/json; charset=utf-8",
}


class PathForbidden(Exception):
    """The request path cannot be mapped to a file inside the serving root."""
    pass


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


def decode_request_path(raw_path: str) -> str:
    """
    Percent-decode until the string stops changing, so %252e%252e is seen
    as .. too. Paths still changing after MAX_DECODE_ROUNDS are refused.
    """
    decoded = raw_path
    for _ in range(MAX_DECODE_ROUNDS):
        step = unquote(decoded)
        if step == decoded:
            return decoded
        decoded = step
    raise PathForbidden(raw_path)


def resolve_request_path(root: Path, raw_path: str) -> Path:
    """
    Map a raw URL path to an absolute file path under `root`.

    `root` must already be resolved. Symlinks are followed, so a link that
    points out of the root is refused as well.
    """
    decoded = decode_request_path(raw_path)
    if "\x00" in decoded:
        raise PathForbidden(raw_path)

    relative = decoded.lstrip("/")
    if not relative:
        relative = INDEX_DOCUMENT

    try:
        candidate = (root / relative).resolve()
    except (OSError, RuntimeError, ValueError) as exc:
        raise PathForbidden(raw_path) from exc

    if candidate != root and not candidate.is_relative_to(root):
        raise PathForbidden(raw_path)
    return candidate


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("Unhandled error serving %s", request.url.path, exc_info=exc)
    return _error(500, "Internal server error")


def create_app(root: str | os.PathLike) -> FastAPI:
    root_dir = Path(root).resolve()

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.root = root_dir

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    @app.api_route("/{request_path:path}", methods=["GET", "HEAD"])
    async def serve_file(request: Request):
        raw = request.scope.get("raw_path") or request.url.path.encode("utf-8")
        raw_path = raw.split(b"?", 1)[0].decode("utf-8", errors="replace")

        try:
            target = resolve_request_path(root_dir, raw_path)
        except PathForbidden:
            log.warning("Refused path outside root: %s", raw_path)
            raise HTTPException(status_code=403, detail="Forbidden")

        try:
            st = await run_in_threadpool(os.stat, target)
        except (FileNotFoundError, NotADirectoryError):
            raise HTTPException(status_code=404, detail="Not found")
        except PermissionError:
            raise HTTPException(status_code=403, detail="Forbidden")

        if not stat.S_ISREG(st.st_mode):
            raise HTTPException(status_code=404, detail="Not found")

        return FileResponse(target, media_type=content_type_for(target), stat_result=st)

    return app


class SiteServer(uvicorn.Server):
    """uvicorn server that reports shutdown signals before it starts draining."""

    def __init__(self, config: uvicorn.Config, on_exit: Callable[[int], None] | None = None) -> None:
        super().__init__(config)
        self.on_exit = on_exit

    def handle_exit(self, sig, frame) -> None:
        if self.on_exit is not None:
            self.on_exit(sig)
        super().handle_exit(sig, frame)


def build_server(app: FastAPI, host: str, port: int, on_exit: Callable[[int], None] | None = None) -> SiteServer:
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        lifespan="off",
    )
    return SiteServer(config, on_exit=on_exit)
