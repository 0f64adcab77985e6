"""danft client: HTTP transport plus the file/clip transfer operations.

Security notes:
- Treat server responses as untrusted input.
- Avoid printing or logging raw file bytes or the upload key.
"""

from .http import DanftHttpClient, HttpResponse  # noqa: F401
from .transfer import LAST_FILE, DownloadResult, TransferClient  # noqa: F401
