from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from danft import __version__
from danft.client.transfer import TransferClient
from danft.config import load_client_config
from danft.errors import TransferError

log = logging.getLogger("danft.cli")

HELP_TEXT = """
----- 'danft' "Dan File Transfer" Help -----
01 Use 'danft' to quickly upload or download a file or 'clip' to/from the cloud
02 Upload a file to the cloud: ' danft put <filepath> '
03 Upload a clip to the cloud: ' danft putclip <string of text in quotes> '
04 Download a file from the cloud: ' danft get <filename> <OPTIONAL new filename> '
05 Download the last file uploaded: ' danft get '
06 Download the last text clip: ' danft getclip '
07 Run a local transfer server: ' danft serve --storage-dir <dir> '
08 NOTE: If your parameters include embedded spaces, remember to enclose those parameters in quotes
09 NOTE: Set DANFT_UPLOAD_KEY (and optionally DANFT_BASE_URL) or use a config file
----- 'danft' Help -----
"""

COMMANDS = ("put", "putclip", "get", "getclip", "help", "h", "serve")

# Global options that consume the following token.
_GLOBAL_VALUE_OPTS = {"--url", "--api-key", "--config", "--log-level"}


def _print_help() -> None:
    print(HELP_TEXT)


def _fail(context: str, err: Exception) -> int:
    """Report a failed operation; the invocation ends here."""

    print(f"ERROR: {context}.  See: {err}", file=sys.stderr)
    return 2


def _client(args: argparse.Namespace) -> TransferClient:
    cfg = load_client_config(args.config, base_url=args.url, upload_key=args.api_key)
    if not cfg.upload_key:
        log.warning("no upload key configured; requests will be sent without X-Upload-Key")
    return TransferClient(cfg)


def cmd_help(_: argparse.Namespace) -> int:
    _print_help()
    return 0


def cmd_put(args: argparse.Namespace) -> int:
    """Upload one file."""
    try:
        _client(args).upload(args.path)
    except TransferError as e:
        return _fail("error occurred uploading the specified file", e)
    print(f"INFO: file [{args.path}] has been successfully uploaded.")
    return 0


def cmd_putclip(args: argparse.Namespace) -> int:
    """Upload a text clip."""
    try:
        _client(args).upload_clip(args.clip)
    except TransferError as e:
        return _fail("error occurred uploading the specified clip", e)
    print("INFO: your clip has been successfully uploaded.")
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Download a file by name, or the last uploaded one."""
    try:
        res = _client(args).download(args.name, args.new_name)
    except TransferError as e:
        return _fail("error occurred downloading the file", e)
    print(f"INFO: wrote {res.bytes_written} bytes of file {res.path} to the local disk")
    return 0


def cmd_getclip(args: argparse.Namespace) -> int:
    """Print the last clip."""
    try:
        clip = _client(args).download_clip()
    except TransferError as e:
        return _fail("error occurred downloading a clip", e)

    if not clip:
        print("INFO: Your clip is empty or blank.")
        return 0

    print("------------")
    print(clip, end="" if clip.endswith("\n") else "\n")
    print("------------")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the reference transfer server.

    Security notes:
    - If DANFT_UPLOAD_KEYS is set, requests must provide X-Upload-Key.
    - Bind to 127.0.0.1 by default (safer than 0.0.0.0).

    """

    try:
        import uvicorn
    except ImportError as e:
        print(f"error: uvicorn is required to serve the API: {e}", file=sys.stderr)
        return 2

    from danft.api.server import create_app

    app = create_app(storage_dir=args.storage_dir)
    uvicorn.run(app, host=args.host, port=int(args.port), log_level=args.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="danft", description="Dan File Transfer: move a file or a text clip to/from the cloud"
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--url", default=None, help="Base URL (overrides DANFT_BASE_URL)")
    p.add_argument("--api-key", default=None, help="Upload key (overrides DANFT_UPLOAD_KEY)")
    p.add_argument("--config", default=None, help="Path to JSON config file")
    p.add_argument(
        "--log-level",
        type=str.upper,
        default=os.environ.get("DANFT_LOG_LEVEL", "WARNING").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: DANFT_LOG_LEVEL or WARNING)",
    )
    sub = p.add_subparsers(dest="cmd")

    put = sub.add_parser("put", help="Upload a file")
    put.add_argument("path", nargs="?", default="", help="Path to local file")
    put.set_defaults(func=cmd_put)

    pc = sub.add_parser("putclip", help="Upload a text clip")
    pc.add_argument("clip", nargs="?", default="", help="Clip text (quote it)")
    pc.set_defaults(func=cmd_putclip)

    g = sub.add_parser("get", help="Download a file (default: the last uploaded file)")
    g.add_argument("name", nargs="?", default="", help="Remote file name")
    g.add_argument("new_name", nargs="?", default="", help="Local file name to write")
    g.set_defaults(func=cmd_get)

    gc = sub.add_parser("getclip", help="Print the last text clip")
    gc.set_defaults(func=cmd_getclip)

    h = sub.add_parser("help", aliases=["h"], help="Show usage")
    h.set_defaults(func=cmd_help)

    sv = sub.add_parser("serve", help="Run the reference transfer server")
    sv.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    sv.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    sv.add_argument(
        "--storage-dir", default=None, help="Where uploads are kept (default: DANFT_STORAGE_DIR)"
    )
    sv.set_defaults(func=cmd_serve)

    return p


def _command_index(argv: List[str]) -> Optional[int]:
    """Index of the command word in argv, skipping global options."""

    i = 0
    while i < len(argv):
        a = argv[i]
        if a in _GLOBAL_VALUE_OPTS:
            if i + 1 >= len(argv):
                return None
            i += 2
        elif a.startswith("-"):
            i += 1
        else:
            return i
    return None


def _configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    argv = list(sys.argv[1:] if argv is None else argv)

    idx = _command_index(argv)
    if idx is not None:
        cmd = argv[idx].lower()
        if cmd not in COMMANDS:
            print(
                "ERROR: Invalid operand. Use 'help', 'h', 'put', 'putclip', 'get' or 'getclip'",
                file=sys.stderr,
            )
            return 2
        argv[idx] = cmd

    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    if args.cmd is None:
        _print_help()
        return 0
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
