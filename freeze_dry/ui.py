# freeze_dry/ui.py
# Presentation-only utilities for CLI output.
from __future__ import annotations

from typing import IO, Iterable

from freeze_dry.models import CaptureResult


def _writeln(text: str = "", *, file: IO[str]) -> None:
    file.write(text + "\n")


def human_bytes(n: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    v = float(n)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    # max 2 decimals, strip trailing zeros
    s = f"{v:.2f}".rstrip("0").rstrip(".")
    return f"{s} {units[i]}"


def render_capture_header(url: str, *, file: IO[str]) -> None:
    _writeln(f"Capturing: {url}...", file=file)


def render_summary(result: CaptureResult, output: str, *, file: IO[str]) -> None:
    size = len(result.html.encode("utf-8"))
    _writeln(f"\nSaved {human_bytes(size)} to {output}", file=file)
    if result.files:
        total = sum(blob.size for blob in result.files.values())
        _writeln(f"Plus {len(result.files)} file(s), {human_bytes(total)}", file=file)


def render_files_section(directory: str, names: Iterable[str], *, file: IO[str]) -> None:
    names = sorted(names)
    if not names:
        return
    _writeln(f"\n--- Files in {directory} ---", file=file)
    for name in names:
        _writeln(f"- {name}", file=file)


def render_errors_section(errors: Iterable[str], *, file: IO[str]) -> None:
    errs = list(errors)
    if not errs:
        return
    _writeln("\n--- Errors Encountered ---", file=file)
    for e in errs:
        _writeln(f"- {e}", file=file)
