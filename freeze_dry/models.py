# Defines the data structures shared across a capture.

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List
from urllib.parse import urlsplit


class SubresourceType(Enum):
    """What a link points at, from the point of view of the archive."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    FONT = "font"
    STYLE = "style"
    DOCUMENT = "document"
    TOP = "top"  # the synthetic link to the root document
    NONE = "none"


@dataclass
class ArchiveMetadata:
    """Provenance recorded in the root document."""

    time: datetime


@dataclass
class ArchiveOptions:
    """Options consumed by the root document of a capture."""

    url: str
    content_security_policy: str | None = None
    metadata: ArchiveMetadata | None = None
    keep_original_attributes: bool = True


@dataclass
class Blob:
    """Bytes plus the media type they should be served with."""

    data: bytes
    type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


def _charset(content_type: str) -> str | None:
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'")
    return None


@dataclass
class FetchResponse:
    """
    A completed download. ``url`` is the final URL after redirects.
    Header keys are lower-cased.
    """

    url: str
    status: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    encoding: str | None = None

    def __post_init__(self) -> None:
        self.headers = {k.lower(): v for k, v in (self.headers or {}).items()}

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def media_type(self) -> str:
        media_type = self.content_type.split(";")[0].strip().lower()
        if media_type:
            return media_type
        guessed, _ = mimetypes.guess_type(urlsplit(self.url).path)
        return guessed or "application/octet-stream"

    def text(self) -> str:
        encoding = self.encoding or _charset(self.content_type) or "utf-8"
        try:
            return self.content.decode(encoding, errors="replace")
        except LookupError:
            # Unknown charset label in the response headers.
            return self.content.decode("utf-8", errors="replace")

    def blob(self) -> Blob:
        return Blob(data=self.content, type=self.media_type)


@dataclass
class CaptureResult:
    """The final result of a freeze_dry capture."""

    url: str
    html: str
    captured_at: str | None = None  # ISO 8601 format
    errors: List[str] = field(default_factory=list)
    # Relative file name -> blob, filled only by the sibling-files policy.
    files: Dict[str, Blob] = field(default_factory=dict)
