from __future__ import annotations

from typing import Optional


class TransferError(Exception):
    """
    Base exception for all danft failures.
    """

    pass


class ValidationError(TransferError):
    """
    Raised when a command operand is missing, empty or unusable.
    """

    pass


class LocalFileError(TransferError):
    """
    Raised when a local file cannot be opened, read, created or written.
    """

    pass


class NetworkError(TransferError):
    """
    Raised when a request cannot be built or the transport fails.
    """

    pass


class ProtocolError(TransferError):
    """
    Raised when the server response does not follow the wire contract.
    """

    pass


class StatusError(ProtocolError):
    """
    Raised when the server answers with a status other than 200.
    """

    def __init__(self, status: int, reason: Optional[str] = None):
        self.status = int(status)
        self.reason = reason or ""
        super().__init__(f"bad status: {self.status} {self.reason}".rstrip())


class ConfigError(TransferError):
    """
    Raised when configuration (env vars or config file) is invalid.
    """

    pass
