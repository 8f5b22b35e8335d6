# freeze_dry/cli.py
# Defines the command-line interface using argparse.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Sequence

from freeze_dry.__about__ import __version__
from freeze_dry.api import freeze_dry
from freeze_dry.cache import CacheConfig, FileCache
from freeze_dry.errors import FreezeDryError
from freeze_dry.models import CaptureResult
from freeze_dry.ui import (
    human_bytes,
    render_capture_header,
    render_errors_section,
    render_files_section,
    render_summary,
)

log = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _json_default(o: Any) -> Any:
    if isinstance(o, datetime):
        return o.isoformat()
    if isinstance(o, bytes):
        return f"<{len(o)} bytes>"
    return str(o)


def _init_file_cache(cache_dir: str | None, os_default: bool) -> FileCache:
    cfg = CacheConfig()
    if os_default:
        cfg.directory = "os-default"
    if cache_dir:
        cfg.directory = cache_dir
    return FileCache(cfg)


def _add_capture_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="The URL of the document to capture.")
    parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Write the captured HTML here instead of to stdout.",
    )

    policy_group = parser.add_argument_group("resolution arguments")
    exclusive = policy_group.add_mutually_exclusive_group()
    exclusive.add_argument(
        "--files",
        dest="files_dir",
        metavar="DIR",
        help="Store subresources as files in DIR, next to the captured HTML. (Default: inline as data URLs)",
    )
    exclusive.add_argument(
        "--absolute",
        action="store_true",
        help="Leave subresources where they are, only make their URLs absolute.",
    )

    output_group = parser.add_argument_group("output arguments")
    output_group.add_argument(
        "--csp",
        metavar="POLICY",
        help="Content-Security-Policy to embed instead of the restrictive default.",
    )
    output_group.add_argument(
        "--no-metadata",
        action="store_true",
        help="Do not embed the original URL and capture time.",
    )
    output_group.add_argument(
        "--no-keep-original",
        action="store_true",
        help="Do not keep rewritten attribute values in data-original-* attributes.",
    )
    output_group.add_argument(
        "--browser",
        action="store_true",
        help="Render the page in headless Chromium and capture the rendered DOM.",
    )
    output_group.add_argument(
        "--dedupe",
        action="store_true",
        help="Fetch each URL only once, however many times it is linked.",
    )


def _capture_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if args.files_dir:
        kwargs["resolve_policy"] = "files"
    elif args.absolute:
        kwargs["resolve_policy"] = "absolute"
    if args.csp:
        kwargs["content_security_policy"] = args.csp
    if args.no_metadata:
        kwargs["add_metadata"] = False
    if args.no_keep_original:
        kwargs["keep_original_attributes"] = False
    if args.browser:
        kwargs["use_browser"] = True
    if args.dedupe:
        kwargs["dedupe_urls"] = True
    return kwargs


def _write_capture(result: CaptureResult, args: argparse.Namespace, stdout: IO[str]) -> None:
    if args.files_dir:
        # File names in the markup are relative, so the HTML lives with them.
        directory = Path(args.files_dir)
        directory.mkdir(parents=True, exist_ok=True)
        for name, blob in result.files.items():
            (directory / name).write_bytes(blob.data)
        out_path = directory / (Path(args.output).name if args.output else "index.html")
    elif args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        stdout.write(result.html)
        return

    with out_path.open("w", encoding="utf-8") as f:
        f.write(result.html)
    render_summary(result, str(out_path), file=stdout)
    if args.files_dir:
        render_files_section(args.files_dir, result.files, file=stdout)
    render_errors_section(result.errors, file=stdout)


def _run_cache_command(args: argparse.Namespace, stdout: IO[str]) -> int:
    fc = _init_file_cache(args.cache_dir, args.cache_os_default)
    try:
        if args.cache_cmd == "clear":
            fc.clear_all()
            d = fc.directory or "(disabled)"
            print(f"Cache cleared at: {d}", file=stdout)
            return 0

        if args.cache_cmd == "stats":
            st = fc.stats()
            bytes_on_disk = int(st.get("bytes", 0))
            out = {
                "directory": st.get("directory", ""),
                "items": int(st.get("items", 0)),
                "bytes": bytes_on_disk,
                "human_bytes": human_bytes(bytes_on_disk),
            }
            print(json.dumps(out, indent=2), file=stdout)
            return 0

        if args.cache_cmd == "inspect":
            data = fc.get(args.url)
            if data is None:
                print("Cache miss", file=stdout)
                return 2
            print(json.dumps(data, indent=2, default=_json_default), file=stdout)
            return 0
    finally:
        fc.close()

    print("Unknown cache subcommand", file=stdout)
    return 2


async def async_main(
    argv: Sequence[str] | None = None, stdout: IO[str] | None = None
) -> int:
    """Async entry point for the command-line interface."""
    stdout = stdout or sys.stdout

    parser = argparse.ArgumentParser(
        description="Capture a web page and its subresources as one static, self-contained HTML file.",
        prog="freeze_dry",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- capture ---
    capture_parser = subparsers.add_parser(
        "capture", help="Capture a URL into a single HTML file."
    )
    _add_capture_args(capture_parser)

    # --- cache ---
    cache_parser = subparsers.add_parser(
        "cache", help="Manage the on-disk HTTP cache."
    )
    cache_parser.add_argument(
        "--dir",
        dest="cache_dir",
        metavar="PATH",
        default=None,
        help="Cache directory to operate on (defaults to library default).",
    )
    cache_parser.add_argument(
        "--os-default",
        dest="cache_os_default",
        action="store_true",
        help="Use the OS-specific default cache directory.",
    )
    cache_sub = cache_parser.add_subparsers(dest="cache_cmd", required=True)
    cache_sub.add_parser("clear", help="Wipe the entire cache directory.")
    cache_sub.add_parser("stats", help="Show total items and size on disk.")
    cache_inspect = cache_sub.add_parser(
        "inspect", help="Dump the cached record for a specific URL."
    )
    cache_inspect.add_argument("url", help="The exact URL key to inspect in cache.")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "cache":
        return _run_cache_command(args, stdout)

    # args.command == "capture"
    if args.output or args.files_dir:
        render_capture_header(args.url, file=stdout)
    try:
        result = await freeze_dry(args.url, **_capture_kwargs(args))
    except FreezeDryError as e:
        log.error("Capture of %s failed: %s", args.url, e)
        return 1

    _write_capture(result, args, stdout)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous wrapper for the CLI entry point."""
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
