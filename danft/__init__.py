"""danft: move one file or text clip to and from a cloud endpoint."""

__version__ = "0.1.0"
