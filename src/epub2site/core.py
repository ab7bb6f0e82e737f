"""Core pipeline for epub2site."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .linearize import linearize
from .readers import PageLoader, read_package
from .render import RenderConfig, first_page, render_pages
from .search_index import build_search_index, write_search_index
from .toc import build_toc, reconcile

LOG = logging.getLogger("epub2site")
LOG_FORMAT = "%(levelname)s: %(message)s"

__all__ = ["convert", "setup_logging"]


def _resolve_log_level(verbose: bool, debug: bool) -> int:
    return logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)


def _configure_epub2site_logger(level: int) -> None:
    LOG.setLevel(level)
    LOG.propagate = False
    if not LOG.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        LOG.addHandler(handler)
    else:
        for handler in LOG.handlers:
            handler.setLevel(level)
            if handler.formatter is None:
                handler.setFormatter(logging.Formatter(LOG_FORMAT))


def setup_logging(verbose: bool, debug: bool) -> None:
    level = _resolve_log_level(verbose, debug)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    _configure_epub2site_logger(level)


def _progress_bar_line(current: int, total: int, width: int = 24) -> str:
    if total <= 0:
        return "[?]"
    clamped = max(0, min(current, total))
    filled = min(int((clamped / total) * width), width)
    return "[" + "#" * filled + "." * (width - filled) + "]"


def _log_progress(prefix: str, current: int, total: int, detail: Optional[str] = None) -> None:
    if not LOG.isEnabledFor(logging.INFO):
        return
    bar = _progress_bar_line(current, total)
    counter = f"[{current}/{total}]" if total > 0 else f"[{current}]"
    if total > 0:
        msg = f"{prefix} {bar} {counter} ({(current / total) * 100.0:.1f}%)"
    else:
        msg = f"{prefix} {bar} {counter}"
    if detail:
        msg = f"{msg} | {detail}"
    LOG.info(msg)


def _render_progress(current: int, total: int, detail: str) -> None:
    _log_progress("Rendering pages", current, total, detail)


def convert(from_dir: Path, out_dir: Path, config: RenderConfig) -> Optional[str]:
    """Convert the extracted package in ``from_dir`` into a site under ``out_dir``.

    Returns the output filename of the first page, or None for an empty book.
    Output written before a failure is left in place.
    """
    package = read_package(from_dir)
    loader = PageLoader(package.content_dir)

    tree = build_toc(package, loader)
    reconcile(tree, package.spine_hrefs(), loader)
    sequence = linearize(tree)
    LOG.info("Linearized %d navigation entries", len(sequence))
    if sequence.head is None:
        LOG.warning("Package %s has no pages", package.opf_path)
        return None

    out_dir.mkdir(parents=True, exist_ok=True)
    written = render_pages(
        config, sequence, loader, out_dir, book_title=package.title, progress=_render_progress
    )
    LOG.info("Rendered %d page(s) into %s", len(written), out_dir)

    index = build_search_index(sequence)
    index_path = write_search_index(out_dir, index)
    LOG.info("Search index written: %s", index_path)
    return first_page(sequence)
