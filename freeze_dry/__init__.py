# Entrypoint for the freeze_dry package.
# This file makes the public API available to programmers.

from __future__ import annotations

from freeze_dry.__about__ import __version__
from freeze_dry.api import freeze_dry
from freeze_dry.capabilities import ArchiveIO, CancellationSignal
from freeze_dry.errors import (
    CaptureCancelledError,
    FetchError,
    FreezeDryError,
    LinkResolutionError,
    ParseError,
    StyleSheetParseError,
    UnsupportedLinkTypeError,
)
from freeze_dry.models import ArchiveMetadata, ArchiveOptions, Blob, CaptureResult

__all__ = [
    "freeze_dry",
    "ArchiveIO",
    "ArchiveMetadata",
    "ArchiveOptions",
    "Blob",
    "CancellationSignal",
    "CaptureResult",
    "CaptureCancelledError",
    "FetchError",
    "FreezeDryError",
    "LinkResolutionError",
    "ParseError",
    "StyleSheetParseError",
    "UnsupportedLinkTypeError",
    "__version__",
]
