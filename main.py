#!/usr/bin/env python3
"""
Code Share CLI
Share text or a small file and get it back with a 4-digit code.

Usage:
    python main.py share --text "hello"
    python main.py share --file notes.pdf
    python main.py get 4821
    python main.py sweep
"""

import argparse
import os
import sys
from typing import List, Optional

from application.dto.share_dto import UploadDTO, isoformat_utc
from codeshare.config import Settings
from codeshare.core import ShareService
from codeshare.errors import NOT_FOUND_MESSAGE, NotFound, ShareError
from codeshare.printer import OutputPrinter
from codeshare.utils import describe_duration, format_size
from codeshare.wiring import build_service


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="codeshare",
        description="Share text or files with a short numeric code.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py share --text "meet at 6"
  python main.py share --file slides.pdf --quiet
  python main.py get 4821
  python main.py sweep            # run from cron to purge expired shares

Storage is configured through environment variables:
  DATABASE_URL   SQLAlchemy URL (default: sqlite:///data/shares.sqlite3)
  BLOB_BACKEND   local | cloudinary
        """,
    )

    out_group = parser.add_argument_group("Output Options")
    out_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Print only the code, text or URL.",
    )
    out_group.add_argument(
        "--no-color",
        "-n",
        action="store_true",
        help="Disable colored output (also auto-disabled when NO_COLOR env var is set).",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    share = sub.add_parser("share", help="Create a share and print its code.")
    share.add_argument("--text", "-t", default=None, help="Text to share.")
    share.add_argument("--file", "-f", default=None, metavar="PATH", help="File to share (max 10 MB).")

    get = sub.add_parser("get", help="Print the content behind a code.")
    get.add_argument("code", metavar="CODE", help="The 4-digit code.")

    sub.add_parser("sweep", help="Delete expired shares and their files.")

    return parser


def _read_upload(path: str, max_bytes: int) -> UploadDTO:
    if not os.path.isfile(path):
        raise FileNotFoundError(
            f"File not found: '{path}'.\n" f"    → Check the path and try again."
        )
    # Refuse before reading a huge file into memory
    size = os.path.getsize(path)
    if size > max_bytes:
        raise ValueError(
            f"File too large: {format_size(size)} (max {format_size(max_bytes)}).\n"
            f"    → Share a smaller file."
        )
    with open(path, "rb") as fh:
        data = fh.read()
    return UploadDTO(data=data, name=os.path.basename(path))


def _cmd_share(args: argparse.Namespace, service: ShareService, printer: OutputPrinter) -> int:
    upload = _read_upload(args.file, service.max_file_bytes) if args.file else None
    record = service.create(text=args.text, file=upload)
    printer.code(
        record.code,
        details={
            "Type":    record.kind,
            "Expires": isoformat_utc(record.expires_at),
        },
    )
    ttl = describe_duration(int(service.ttl.total_seconds()))
    printer.info(f"This code will expire in {ttl}. Make sure to save it!")
    return 0


def _cmd_get(args: argparse.Namespace, service: ShareService, printer: OutputPrinter) -> int:
    result = service.retrieve(args.code)
    if result is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    if result.kind == "file":
        printer.content(result.file_url, title=f"File: {result.file_name}")
    else:
        printer.content(result.text, title="Text:")
    return 0


def _cmd_sweep(args: argparse.Namespace, service: ShareService, printer: OutputPrinter) -> int:
    report = service.sweep()
    printer.success(
        "Sweep finished",
        details={
            "Scanned":  str(report.scanned),
            "Records":  str(report.records_deleted),
            "Files":    str(report.blobs_deleted),
            "Failures": str(report.failures),
        },
    )
    return 0


COMMANDS = {
    "share": _cmd_share,
    "get":   _cmd_get,
    "sweep": _cmd_sweep,
}


def main(argv: Optional[List[str]] = None, service: Optional[ShareService] = None) -> int:
    parser: argparse.ArgumentParser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    printer: OutputPrinter = OutputPrinter(
        quiet=args.quiet,
        no_color=args.no_color,
    )

    if args.command == "share" and not args.text and not args.file:
        parser.error("Provide --text, --file, or both.")

    try:
        service = service or build_service(Settings.from_env())
        return COMMANDS[args.command](args, service, printer)
    except (ShareError, FileNotFoundError, ValueError) as exc:
        message, _, hint = str(exc).partition("\n")
        printer.error(message, hint=hint.strip().lstrip("→").strip() or None)
        return 1
    except KeyboardInterrupt:
        printer.warning("Cancelled.", hint="Nothing was shared.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
