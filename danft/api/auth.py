from __future__ import annotations

import hmac
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True, slots=True)
class Uploader:
    """Identity behind an accepted upload key.

    Security notes:
    - The label is for access logs only; it never grants anything by itself.

    """

    label: str


def _parse_upload_keys(raw: str) -> Dict[str, Uploader]:
    """Parse DANFT_UPLOAD_KEYS into an upload key -> Uploader mapping.

    Format (entries separated by "," or ";", label optional):
      <KEY>[:<LABEL>]

    Example:
      DANFT_UPLOAD_KEYS="Jt8iZKQaBphsnpjC:laptop,k2:phone;k3"

    Security notes:
    - Env var is trusted server configuration.
    - Empty entries are ignored (fail-closed by omission).

    """

    out: Dict[str, Uploader] = {}
    for i, entry in enumerate(re.split(r"[,;]", raw or "")):
        entry = entry.strip()
        if not entry:
            continue
        key, _, label = entry.partition(":")
        key, label = key.strip(), label.strip()
        if not key:
            continue
        out[key] = Uploader(label=label or f"key{i}")
    return out


def load_upload_keys() -> Dict[str, Uploader]:
    """Load the accepted upload keys from environment."""

    return _parse_upload_keys(os.environ.get("DANFT_UPLOAD_KEYS", ""))


def requires_auth(mapping: Dict[str, Uploader]) -> bool:
    """Return True if the server should require an upload key.

    Policy:
    - If DANFT_REQUIRE_AUTH=1, always require.
    - Else, require iff at least one key is configured.

    """

    if os.environ.get("DANFT_REQUIRE_AUTH", "").strip().lower() in {"1", "true", "yes"}:
        return True
    return bool(mapping)


def authenticate(upload_key: Optional[str], mapping: Dict[str, Uploader]) -> Optional[Uploader]:
    """Authenticate an X-Upload-Key value; None on failure.

    Security notes:
    - Uses constant-time comparison to reduce timing side-channels.

    """

    if not upload_key:
        return None

    found: Optional[Uploader] = None
    for k, who in mapping.items():
        if hmac.compare_digest(k.encode("utf-8"), upload_key.encode("utf-8")):
            found = who
    return found
