"""Href and filename normalization shared by every stage."""

from __future__ import annotations

import posixpath
import re
from typing import Optional, Tuple
from urllib.parse import unquote

from .errors import UnsupportedContentType

OUTPUT_EXTENSION = ".html"
SOURCE_MARKUP_EXTENSIONS = {".xhtml", ".xht", ".htm"}
# Some packages ship extensionless placeholder pages for full-page images.
PLACEHOLDER_EXTENSION = ""

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def split_fragment(href: str) -> Tuple[str, str]:
    if "#" in href:
        path, fragment = href.split("#", 1)
        return path, fragment
    return href, ""


def normalize_package_path(path: str) -> str:
    sanitized = (path or "").replace("\\", "/")
    normalized = posixpath.normpath(sanitized)
    if normalized in ("", "."):
        return ""
    return normalized


def resolve_relative(base_dir: str, target: str) -> str:
    """Resolve ``target`` (fragment preserved) against ``base_dir`` inside the package."""
    path, fragment = split_fragment((target or "").strip())
    if not path:
        return f"#{fragment}" if fragment else ""
    if path.startswith("/"):
        resolved = normalize_package_path(path.lstrip("/"))
    else:
        resolved = normalize_package_path(posixpath.join(base_dir, path) if base_dir else path)
    return f"{resolved}#{fragment}" if fragment else resolved


def html_path_of(href: str) -> str:
    path, _ = split_fragment(href or "")
    return unquote(path)


def is_external(href: str) -> bool:
    value = (href or "").strip()
    return bool(_SCHEME_RE.match(value)) or value.startswith("//")


def is_rewritable(href: Optional[str]) -> bool:
    """True for a relative reference to another package file."""
    value = (href or "").strip()
    if not value or value.startswith("#") or value.startswith("/"):
        return False
    return not is_external(value)


def is_page_reference(href: str) -> bool:
    path, _ = split_fragment(href or "")
    if not path:
        return False
    ext = posixpath.splitext(path)[1].lower()
    return ext in (OUTPUT_EXTENSION, PLACEHOLDER_EXTENSION) or ext in SOURCE_MARKUP_EXTENSIONS


def normalize_extension(filename: str) -> str:
    """Map source markup extensions to the output extension, keeping any fragment.

    Idempotent: an already normalized name is returned unchanged.
    """
    path, fragment = split_fragment(filename)
    stem, ext = posixpath.splitext(path)
    lowered = ext.lower()
    if lowered == OUTPUT_EXTENSION:
        normalized = path
    elif lowered in SOURCE_MARKUP_EXTENSIONS:
        normalized = stem + OUTPUT_EXTENSION
    elif lowered == PLACEHOLDER_EXTENSION:
        normalized = path + OUTPUT_EXTENSION
    else:
        raise UnsupportedContentType(f"Unsupported content extension {ext!r} for {path!r}")
    return f"{normalized}#{fragment}" if fragment else normalized


def output_name(html_path: str) -> str:
    """Final output filename of a content page."""
    return normalize_extension(posixpath.basename(html_path))
