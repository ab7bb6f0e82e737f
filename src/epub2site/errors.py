"""Error kinds raised by the conversion pipeline."""

from __future__ import annotations


class ConversionError(RuntimeError):
    """Base class for fatal conversion failures."""


class MissingRequiredFile(ConversionError):
    """A file the package cannot be converted without is absent."""


class MalformedMarkup(ConversionError):
    """A TOC, navigation document or content page failed structural parsing."""


class UnplaceableSpinePage(ConversionError):
    """A spine page has no anchor in the table of contents."""

    def __init__(self, href: str, position: int) -> None:
        super().__init__(f"Spine page {href!r} (position {position}) has no anchor in the table of contents")
        self.href = href
        self.position = position


class UnsupportedContentType(ConversionError):
    """A content page has an extension that cannot be rendered."""
