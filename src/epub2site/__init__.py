"""Convert extracted EPUB packages into static web sites."""

from .version import __version__

__all__ = ["__version__"]
