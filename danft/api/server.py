from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote_plus

from fastapi import Depends, FastAPI, File, Header, HTTPException, UploadFile
from fastapi.responses import FileResponse, PlainTextResponse
from starlette.requests import Request

from danft import __version__
from danft.api.auth import Uploader, authenticate, load_upload_keys, requires_auth
from danft.api.middleware import AccessLogMiddleware, RequestIdMiddleware
from danft.api.models import ClipIn, ClipOut, HealthOut, UploadOut
from danft.api.storage import TransferStore, UploadTooLarge

log = logging.getLogger("danft.api")

DOWNLOAD_PREFIX = "/apidownload/"


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Configuration for the reference transfer server."""

    storage_dir: Path
    max_upload_bytes: int = 100 * 1024 * 1024
    max_clip_chars: int = 1024 * 1024


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable.

    Security notes:
    - Env vars are treated as trusted server configuration.

    """

    raw = os.environ.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        log.warning("bad_env_int", extra={"name": name})
        return int(default)


def _raw_resource_name(request: Request, prefix: str) -> Optional[str]:
    """Recover the requested name from the undecoded request path.

    Clients query-escape the name (space -> '+', '/' -> '%2F'), which the
    router's own decoding would get wrong.
    """

    raw = request.scope.get("raw_path")
    if not raw:
        return None
    path = raw.decode("latin-1").split("?", 1)[0]
    idx = path.find(prefix)
    if idx < 0:
        return None
    return unquote_plus(path[idx + len(prefix) :])


def create_app(*, storage_dir: Optional[str] = None) -> FastAPI:
    """Create the FastAPI app."""

    cfg = ServiceConfig(
        storage_dir=Path(storage_dir or os.environ.get("DANFT_STORAGE_DIR") or "danft_storage"),
        max_upload_bytes=_env_int("DANFT_MAX_UPLOAD_BYTES", 100 * 1024 * 1024),
        max_clip_chars=_env_int("DANFT_MAX_CLIP_CHARS", 1024 * 1024),
    )
    mapping = load_upload_keys()
    must_auth = requires_auth(mapping)

    log.setLevel(os.environ.get("DANFT_LOG_LEVEL", "INFO").upper())

    app = FastAPI(title="danft transfer server", version=__version__)
    app.state.cfg = cfg
    app.state.must_auth = must_auth

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(AccessLogMiddleware)

    store = TransferStore(cfg.storage_dir)
    store.init_layout()
    app.state.store = store

    def get_uploader(
        request: Request,
        x_upload_key: Optional[str] = Header(default=None),
    ) -> Uploader:
        """Authenticate request.

        Security notes:
        - If a key is required and missing/invalid, fail closed (401).

        """

        if not must_auth:
            who = Uploader(label="anonymous")
        else:
            who = authenticate(x_upload_key, mapping)
            if who is None:
                raise HTTPException(status_code=401, detail="unauthorized")
        request.state.uploader = who.label
        return who

    @app.get("/health", response_model=HealthOut)
    def health() -> HealthOut:
        return HealthOut(ok=True, auth_required=must_auth)

    @app.post("/uploadafile", response_model=UploadOut)
    def upload_file(
        file: UploadFile = File(...),
        who: Uploader = Depends(get_uploader),
    ) -> UploadOut:
        """Store one uploaded file and make it the LAST_FILE."""

        try:
            name = store.clean_name(file.filename)
            size = store.save_file(name, file.file, max_bytes=cfg.max_upload_bytes)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid_filename")
        except UploadTooLarge:
            raise HTTPException(status_code=413, detail="upload_too_large")

        log.info("file_stored", extra={"uploader": who.label, "size_bytes": size})
        return UploadOut(filename=name, size_bytes=size)

    @app.get(DOWNLOAD_PREFIX + "{name:path}")
    def download_file(
        request: Request,
        name: str,
        who: Uploader = Depends(get_uploader),
    ) -> FileResponse:
        """Return a stored file with its name in X-Filename.

        The name LAST_FILE selects the most recent upload.
        """

        requested = _raw_resource_name(request, DOWNLOAD_PREFIX) or name
        try:
            path = store.resolve(requested)
        except KeyError:
            raise HTTPException(status_code=404, detail="file_not_found")

        return FileResponse(
            path,
            media_type="application/octet-stream",
            headers={"X-Filename": path.name},
        )

    @app.post("/pasteaclip", response_model=ClipOut)
    def paste_clip(body: ClipIn, who: Uploader = Depends(get_uploader)) -> ClipOut:
        """Replace the stored clip."""

        if not body.clip:
            raise HTTPException(status_code=400, detail="empty_clip")
        if len(body.clip) > cfg.max_clip_chars:
            raise HTTPException(status_code=413, detail="clip_too_large")
        store.put_clip(body.clip)
        return ClipOut(size_chars=len(body.clip))

    @app.get("/apigetclip", response_class=PlainTextResponse)
    def get_clip(who: Uploader = Depends(get_uploader)) -> PlainTextResponse:
        """Return the stored clip; an empty body means there is none."""

        return PlainTextResponse(store.get_clip())

    return app
