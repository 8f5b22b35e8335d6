# freeze_dry/errors.py
"""
Error taxonomy for a capture.

Recoverable at the parent resource (the link keeps its absolute URL):
  - FetchError (except CaptureCancelledError)
  - ParseError
  - LinkResolutionError

Fatal for the whole capture:
  - UnsupportedLinkTypeError
  - CaptureCancelledError
  - any FetchError raised while loading the root document
"""
from __future__ import annotations


class FreezeDryError(Exception):
    """Base class for every error raised by freeze_dry."""


class FetchError(FreezeDryError):
    """Network or transport failure while downloading a resource."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class CaptureCancelledError(FetchError):
    """The capture's cancellation signal was triggered."""


class ParseError(FreezeDryError):
    """Malformed input: a URL or a stylesheet."""


class StyleSheetParseError(ParseError):
    """The stylesheet source could not be parsed."""

    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.position = position


class UnsupportedLinkTypeError(FreezeDryError):
    """A resource discovered a child link of a type it cannot host."""


class LinkResolutionError(FreezeDryError):
    """A link could not be resolved, or the resolution policy rejected a resource."""


def is_fatal(error: BaseException) -> bool:
    """True if ``error`` must abort the capture instead of leaving a dangling link."""
    if isinstance(error, CaptureCancelledError):
        return True
    if isinstance(error, (FetchError, ParseError, LinkResolutionError)):
        return False
    # UnsupportedLinkTypeError, and anything we did not anticipate (a bug).
    return True
