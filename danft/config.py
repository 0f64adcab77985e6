"""Client configuration.

Sources, highest precedence first:
  1. explicit overrides (CLI flags)
  2. environment variables (DANFT_*)
  3. JSON config file (--config, DANFT_CONFIG, or ~/.config/danft/config.json)
  4. built-in defaults

Security notes:
- The upload key is a shared secret. It has no default and is never logged.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from danft.errors import ConfigError

DEFAULT_BASE_URL = "https://danoutils.danocloud.com"
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "danft" / "config.json"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Where the client talks to and how it authenticates."""

    base_url: str = DEFAULT_BASE_URL
    upload_key: Optional[str] = None
    upload_path: str = "/uploadafile"
    download_path: str = "/apidownload/"
    clip_upload_path: str = "/pasteaclip"
    clip_download_path: str = "/apigetclip"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """Return a copy with every non-None override applied."""

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    """Read an integer environment variable; malformed values raise ConfigError."""

    raw = environ.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Read and validate a JSON config file."""

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a JSON object")

    known = {f.name for f in fields(ClientConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"config file {path} has unknown keys: {', '.join(unknown)}")

    if "max_upload_bytes" in data and not isinstance(data["max_upload_bytes"], int):
        raise ConfigError("max_upload_bytes must be an integer")
    for k, v in data.items():
        if k == "max_upload_bytes" or (k == "upload_key" and v is None):
            continue
        if not isinstance(v, str):
            raise ConfigError(f"{k} must be a string")
    return data


def resolve_config_path(
    explicit: Optional[str], environ: Mapping[str, str]
) -> Optional[Path]:
    """Pick the config file to load, or None.

    An explicitly named file (flag or DANFT_CONFIG) must exist; the default
    location is optional.
    """

    named = explicit or environ.get("DANFT_CONFIG") or None
    if named:
        p = Path(named).expanduser()
        if not p.is_file():
            raise ConfigError(f"config file not found: {p}")
        return p
    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


def load_client_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ClientConfig:
    """Build a ClientConfig from file, environment and overrides."""

    env = os.environ if environ is None else environ
    cfg = ClientConfig()

    path = resolve_config_path(config_path, env)
    if path is not None:
        cfg = replace(cfg, **_read_config_file(path))

    cfg = cfg.with_overrides(
        base_url=env.get("DANFT_BASE_URL") or None,
        upload_key=env.get("DANFT_UPLOAD_KEY") or None,
        max_upload_bytes=_env_int(env, "DANFT_MAX_UPLOAD_BYTES", cfg.max_upload_bytes),
    )
    cfg = cfg.with_overrides(**overrides)

    if not cfg.base_url.startswith(("http://", "https://")):
        raise ConfigError(f"base URL must start with http:// or https://, got {cfg.base_url!r}")
    if cfg.max_upload_bytes <= 0:
        raise ConfigError("max upload size must be positive")
    return cfg
