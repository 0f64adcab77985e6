"""The four transfer operations: put, putclip, get, getclip.

Each operation performs exactly one HTTP request and succeeds only on status 200.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus

from danft.client.http import DanftHttpClient, HttpResponse
from danft.config import ClientConfig
from danft.errors import LocalFileError, ProtocolError, StatusError, ValidationError

log = logging.getLogger("danft.client")

LAST_FILE = "LAST_FILE"
FILENAME_HEADER = "X-Filename"


@dataclass(frozen=True, slots=True)
class DownloadResult:
    """Where a download landed and how many bytes were written."""

    path: str
    bytes_written: int
    server_filename: str


def _require_ok(r: HttpResponse) -> None:
    if r.status != 200:
        raise StatusError(r.status, r.reason)


def upload_basename(path: str) -> str:
    """Return the file's base name, or raise ValidationError if there is none."""

    if not path:
        raise ValidationError("missing file to be 'put'")
    base = os.path.basename(os.path.normpath(path))
    if base in {"", ".", ".."}:
        raise ValidationError(f"missing or invalid path base in {path!r}")
    return base


def safe_server_filename(raw: Optional[str]) -> str:
    """Validate the X-Filename value the server sent.

    Security notes:
    - The header is untrusted: only its base name is kept so a hostile server
      cannot write outside the working directory.
    """

    if not raw or not raw.strip():
        raise ProtocolError(f"response is missing the {FILENAME_HEADER} header")
    name = os.path.basename(raw.strip().replace("\\", "/"))
    if name in {"", ".", ".."}:
        raise ProtocolError(f"unusable {FILENAME_HEADER} header: {raw!r}")
    return name


class TransferClient:
    """Upload and download files and clips against a danft endpoint."""

    def __init__(self, config: ClientConfig, http: Optional[DanftHttpClient] = None):
        self.config = config
        self.http = http or DanftHttpClient(
            config.base_url,
            upload_key=config.upload_key,
            max_upload_bytes=config.max_upload_bytes,
        )

    def upload(self, path: str) -> None:
        """Upload one local file as multipart field "file"."""

        base = upload_basename(path)
        r = self.http.post_multipart(
            self.config.upload_path,
            file_field=("file", base),
            file_path=path,
        )
        _require_ok(r)
        log.info("file_uploaded", extra={"filename": base, "status": r.status})

    def upload_clip(self, text: str) -> None:
        """Upload a text clip as JSON {"clip": text}."""

        if not text:
            raise ValidationError("your clip has no data")
        r = self.http.post_json(self.config.clip_upload_path, {"clip": text})
        _require_ok(r)
        log.info("clip_uploaded", extra={"size_chars": len(text), "status": r.status})

    def download(self, name: str = "", new_name: str = "") -> DownloadResult:
        """Download a file by name (default: the last uploaded file).

        The body is written to `new_name` when given, otherwise to the
        server-supplied X-Filename in the current directory.
        """

        remote = name or LAST_FILE
        r = self.http.get(self.config.download_path + quote_plus(remote))
        _require_ok(r)

        server_name = safe_server_filename(r.header(FILENAME_HEADER))
        out_path = new_name or server_name

        try:
            with open(out_path, "wb") as f:
                f.write(r.body_bytes)
        except OSError as e:
            raise LocalFileError(f"cannot write {out_path}: {e.strerror or e}") from e

        n = len(r.body_bytes)
        log.info("file_downloaded", extra={"bytes_written": n, "requested": remote})
        return DownloadResult(path=out_path, bytes_written=n, server_filename=server_name)

    def download_clip(self) -> str:
        """Fetch the last clip; an empty body means there is no clip."""

        r = self.http.get(self.config.clip_download_path)
        _require_ok(r)
        return r.text()
