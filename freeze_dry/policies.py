# freeze_dry/policies.py
"""
URL resolution policies: given a subresource, decide what its parent should
reference it by. A policy is any ``async (resource) -> str``.
"""
from __future__ import annotations

import base64
import hashlib
import logging
import mimetypes
from typing import TYPE_CHECKING, Dict

from freeze_dry.models import Blob

if TYPE_CHECKING:
    from freeze_dry.resource import Resource

log = logging.getLogger(__name__)

POLICY_NAMES = ("inline", "files", "absolute")

# Like the default policy, but subresources may load from sibling files.
SIBLING_FILES_CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'none'",
        "img-src 'self' data:",
        "media-src 'self' data:",
        "style-src 'self' data: 'unsafe-inline'",
        "font-src 'self' data:",
        "frame-src 'self' data:",
    ]
)


def blob_to_data_url(blob: Blob) -> str:
    encoded = base64.b64encode(blob.data).decode("ascii")
    return f"data:{blob.type};base64,{encoded}"


async def inline_data_url(resource: "Resource") -> str:
    """Inline the (freeze-dried) resource as a data URL."""
    blob = await resource.blob()
    return blob_to_data_url(blob)


async def keep_absolute(resource: "Resource") -> str:
    """Leave the link pointing at the original location."""
    return resource.url


class SiblingFiles:
    """
    Store every subresource as a file next to the archived document, named
    after a hash of its content. Files are only collected here; writing them
    is up to the caller.
    """

    def __init__(self) -> None:
        self.files: Dict[str, Blob] = {}

    @staticmethod
    def file_name(blob: Blob) -> str:
        digest = hashlib.sha256(blob.data).hexdigest()[:16]
        media_type = blob.type.split(";")[0].strip().lower()
        extension = mimetypes.guess_extension(media_type) or ".bin"
        return f"{digest}{extension}"

    async def __call__(self, resource: "Resource") -> str:
        blob = await resource.blob()
        name = self.file_name(blob)
        if name not in self.files:
            log.debug("Storing %s as %s", resource.url, name)
        self.files[name] = blob
        return name


def make_policy(name: str):
    """Build the policy named in the configuration."""
    if name == "inline":
        return inline_data_url
    if name == "files":
        return SiblingFiles()
    if name == "absolute":
        return keep_absolute
    raise ValueError(
        f"Unknown resolve policy {name!r}; expected one of {', '.join(POLICY_NAMES)}"
    )
