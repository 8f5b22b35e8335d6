"""Metadata for freeze_dry."""

__all__ = [
    "__title__",
    "__version__",
    "__description__",
    "__credits__",
    "__requires_python__",
]

__title__ = "freeze_dry"
__version__ = "0.1.0"
__description__ = (
    "Capture a web page and its subresources as one static, self-contained HTML document."
)
__credits__ = [
    {"name": "Matthew D. Martin", "email": "matthewdeanmartin@users.noreply.github.com"}
]
__requires_python__ = ">=3.9"
