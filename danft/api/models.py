from __future__ import annotations

from pydantic import BaseModel


class ClipIn(BaseModel):
    """Body of POST /pasteaclip."""

    clip: str


class ClipOut(BaseModel):
    size_chars: int


class UploadOut(BaseModel):
    """Result of POST /uploadafile."""

    filename: str
    size_bytes: int


class HealthOut(BaseModel):
    """Health check; answered without a key, so it never names stored files."""

    ok: bool
    auth_required: bool
