from __future__ import annotations

import logging
import time
from typing import Callable, Optional
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("danft.api")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlate a transfer with its access-log record via X-Request-ID.

    The id lands in `request.state.request_id` and is echoed on the response.
    A client-supplied id is kept when it is printable and at most `max_len`
    characters; anything else is replaced by a random hex id.
    """

    def __init__(self, app, *, header_name: str = "X-Request-ID", max_len: int = 64):
        super().__init__(app)
        self._header_name = header_name
        self._max_len = max_len

    async def dispatch(self, request: Request, call_next: Callable):
        rid = request.headers.get(self._header_name)
        if not rid or len(rid) > self._max_len or not rid.isprintable():
            rid = uuid4().hex
        request.state.request_id = rid
        response: Response = await call_next(request)
        response.headers[self._header_name] = rid
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit one `transfer_request` record per request.

    Record fields (`extra=`):
      request_id   X-Request-ID of the exchange
      uploader     label of the upload key, "anonymous" in open mode, None if rejected
      method       HTTP method
      route        route template, e.g. "/apidownload/{name:path}"
      status_code  response status, None if the handler raised
      bytes_out    Content-Length of the response when known
      duration_ms  wall time spent in the app

    Security notes:
    - The route template is logged instead of the path, so downloaded file
      names stay out of the log. Bodies and the upload key are never logged.

    """

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.monotonic()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            return response
        finally:
            route = request.scope.get("route")
            length = response.headers.get("content-length") if response is not None else None
            log.info(
                "transfer_request",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "uploader": getattr(request.state, "uploader", None),
                    "method": request.method,
                    "route": getattr(route, "path", None),
                    "status_code": getattr(response, "status_code", None),
                    "bytes_out": int(length) if length and length.isdigit() else None,
                    "duration_ms": int((time.monotonic() - start) * 1000),
                },
            )
