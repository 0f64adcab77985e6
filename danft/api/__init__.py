"""danft reference server.

A small FastAPI service implementing the same four endpoints the client talks
to, for self-hosting and local testing.
"""

from .server import create_app  # noqa: F401
