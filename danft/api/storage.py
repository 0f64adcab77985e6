from __future__ import annotations

import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Optional

LAST_FILE = "LAST_FILE"


class UploadTooLarge(Exception):
    pass


class TransferStore:
    """Disk-backed store for uploaded files and the last clip.

    Layout under `root`:
      files/<name>      uploaded file bodies
      state/last_file   name of the most recent upload
      state/last_clip   text of the most recent clip

    Security notes:
    - Names are reduced to a base name before touching the filesystem.
    - Writes go to a temp file first and are renamed into place.

    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.files_dir = self.root / "files"
        self.state_dir = self.root / "state"
        self._lock = Lock()

    def init_layout(self) -> None:
        self.files_dir.mkdir(parents=True, exist_ok=True)
        self.state_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def clean_name(name: Optional[str]) -> str:
        """Reduce a client-supplied name to a safe base name, or raise ValueError."""

        base = os.path.basename((name or "").replace("\\", "/")).strip()
        if base in {"", ".", ".."} or not base.isprintable():
            raise ValueError("invalid file name")
        try:
            # X-Filename carries the name back; header values are Latin-1.
            base.encode("latin-1")
        except UnicodeEncodeError:
            raise ValueError("file name must be Latin-1") from None
        return base[:255]

    def _atomic_write(self, target: Path, src: BinaryIO, max_bytes: int) -> int:
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        total = 0
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = src.read(1024 * 1024)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > max_bytes:
                        raise UploadTooLarge(f"upload exceeds {max_bytes} bytes")
                    out.write(chunk)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return total

    def save_file(self, name: str, src: BinaryIO, *, max_bytes: int) -> int:
        """Store an upload under its base name and mark it as the last file."""

        safe = self.clean_name(name)
        size = self._atomic_write(self.files_dir / safe, src, max_bytes)
        with self._lock:
            (self.state_dir / "last_file").write_text(safe, encoding="utf-8")
        return size

    def last_file(self) -> Optional[str]:
        p = self.state_dir / "last_file"
        with self._lock:
            if not p.is_file():
                return None
            return p.read_text(encoding="utf-8").strip() or None

    def resolve(self, name: str) -> Path:
        """Map a requested name (or LAST_FILE) to a stored file; KeyError if absent."""

        if name == LAST_FILE:
            last = self.last_file()
            if last is None:
                raise KeyError(name)
            name = last
        try:
            safe = self.clean_name(name)
        except ValueError:
            raise KeyError(name) from None
        p = self.files_dir / safe
        if not p.is_file():
            raise KeyError(name)
        return p

    def put_clip(self, text: str) -> None:
        with self._lock:
            (self.state_dir / "last_clip").write_text(text, encoding="utf-8")

    def get_clip(self) -> str:
        p = self.state_dir / "last_clip"
        with self._lock:
            if not p.is_file():
                return ""
            return p.read_text(encoding="utf-8")
