"""HTTP transport for the danft client.

Security notes:
- Treat server responses as untrusted input.
- Never log the upload key or raw file bytes.
"""
from __future__ import annotations

import http.client
import json
import mimetypes
import os
import ssl
import uuid
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin
from urllib.request import Request, urlopen

from danft.errors import LocalFileError, NetworkError, ValidationError

UPLOAD_KEY_HEADER = "X-Upload-Key"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Security notes:
    - Treat `body_bytes` and header values as untrusted.

    """

    status: int
    reason: str
    headers: Mapping[str, str]
    body_bytes: bytes

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""

        wanted = name.lower()
        for k, v in self.headers.items():
            if k.lower() == wanted:
                return v
        return None

    def text(self) -> str:
        """Decode body as UTF-8, replacing invalid bytes."""

        return self.body_bytes.decode("utf-8", errors="replace")


class DanftHttpClient:
    """Minimal stdlib-only HTTP client for the transfer endpoints.

    Every request carries the X-Upload-Key header when a key is configured.

    Security notes:
    - Enforces a max upload size to avoid accidental huge memory usage.
    - Does NOT disable TLS verification.
    """

    def __init__(
        self,
        base_url: str,
        upload_key: Optional[str] = None,
        max_upload_bytes: int = 100 * 1024 * 1024,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.upload_key = upload_key
        self.max_upload_bytes = int(max_upload_bytes)

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _authorize(self, req: Request) -> Request:
        if self.upload_key:
            req.add_header(UPLOAD_KEY_HEADER, self.upload_key)
        return req

    def get(self, path: str) -> HttpResponse:
        """HTTP GET."""

        req = _build_request(self.url_for(path), method="GET")
        return _do_request(self._authorize(req))

    def post_json(self, path: str, obj: Any) -> HttpResponse:
        """HTTP POST with a JSON body."""

        body = json.dumps(obj).encode("utf-8")
        req = _build_request(self.url_for(path), data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Content-Length", str(len(body)))
        return _do_request(self._authorize(req))

    def post_multipart(
        self,
        path: str,
        *,
        fields: Optional[Mapping[str, str]] = None,
        file_field: Tuple[str, str],
        file_path: str,
        file_mime: Optional[str] = None,
    ) -> HttpResponse:
        """HTTP POST multipart/form-data with one file part.

        Args:
          fields: extra form fields (string values)
          file_field: (field_name, filename) for the upload file
          file_path: local file path to read
          file_mime: optional MIME type for the file part

        Security notes:
        - This builds the full multipart body in memory. For safety, a size cap is enforced.
        """

        field_name, filename = file_field
        data = _read_file_bounded(file_path, self.max_upload_bytes)
        ct = file_mime or mimetypes.guess_type(filename)[0] or "application/octet-stream"

        body, boundary = _encode_multipart(
            fields=dict(fields or {}), files=[(field_name, filename, data, ct)]
        )
        req = _build_request(self.url_for(path), data=body, method="POST")
        req.add_header("Content-Type", f"multipart/form-data; boundary={boundary}")
        req.add_header("Content-Length", str(len(body)))
        return _do_request(self._authorize(req))


def _build_request(url: str, *, data: Optional[bytes] = None, method: str) -> Request:
    """Construct a urllib Request, mapping malformed URLs to NetworkError."""

    try:
        return Request(url=url, data=data, method=method)
    except ValueError as e:
        raise NetworkError(f"cannot build request for {url}: {e}") from e


def _read_file_bounded(path: str, max_bytes: int) -> bytes:
    """Read file bytes up to a maximum."""

    try:
        st = os.stat(path)
        if st.st_size > max_bytes:
            raise ValidationError(
                f"file too large for client upload cap: {st.st_size} > {max_bytes}"
            )
        with open(path, "rb") as f:
            data = f.read(max_bytes + 1)
    except OSError as e:
        raise LocalFileError(f"cannot read {path}: {e.strerror or e}") from e
    if len(data) > max_bytes:
        raise ValidationError("file too large for client upload cap")
    return data


def _encode_multipart(
    *, fields: Mapping[str, str], files: List[Tuple[str, str, bytes, str]]
) -> Tuple[bytes, str]:
    """Encode multipart/form-data.

    Security notes:
    - Caller should enforce size limits.
    - Quotes and line breaks in names are escaped so they cannot break the part headers.
    """

    boundary = "----danft-" + uuid.uuid4().hex
    crlf = "\r\n"
    parts: List[bytes] = []

    for name, value in fields.items():
        parts.append(f"--{boundary}{crlf}".encode("utf-8"))
        parts.append(
            f'Content-Disposition: form-data; name="{_quote(name)}"{crlf}{crlf}'.encode("utf-8")
        )
        parts.append(str(value).encode("utf-8"))
        parts.append(crlf.encode("utf-8"))

    for field_name, filename, data, content_type in files:
        parts.append(f"--{boundary}{crlf}".encode("utf-8"))
        parts.append(
            (
                f'Content-Disposition: form-data; name="{_quote(field_name)}"; '
                f'filename="{_quote(filename)}"{crlf}'
            ).encode("utf-8")
        )
        parts.append(f"Content-Type: {content_type}{crlf}{crlf}".encode("utf-8"))
        parts.append(data)
        parts.append(crlf.encode("utf-8"))

    parts.append(f"--{boundary}--{crlf}".encode("utf-8"))
    return b"".join(parts), boundary


def _quote(value: str) -> str:
    return value.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


def _do_request(req: Request) -> HttpResponse:
    """Execute a request.

    HTTP error statuses come back as responses; transport failures raise NetworkError.

    Security notes:
    - Uses default SSL context (verification ON).
    """

    try:
        ctx = ssl.create_default_context()
        with urlopen(req, context=ctx) as resp:
            body = resp.read()
            headers = {k: v for k, v in resp.headers.items()}
            return HttpResponse(
                status=int(resp.status),
                reason=str(getattr(resp, "reason", "") or ""),
                headers=headers,
                body_bytes=body,
            )
    except HTTPError as e:
        try:
            body = e.read()
        finally:
            e.close()
        headers = dict(getattr(e, "headers", {}) or {})
        return HttpResponse(
            status=int(getattr(e, "code", 0) or 0),
            reason=str(getattr(e, "reason", "") or ""),
            headers=headers,
            body_bytes=body or b"",
        )
    except URLError as e:
        raise NetworkError(f"network error: {e.reason}") from e
    except (OSError, http.client.HTTPException) as e:
        raise NetworkError(f"network error: {e}") from e
