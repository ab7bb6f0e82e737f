"""Full-text search index over the rendered pages."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict

from bs4 import BeautifulSoup

from .model import LinearSequence
from .paths import output_name
from .render import page_href, safe_write_text

LOG = logging.getLogger("epub2site")

SEARCH_INDEX_NAME = "search_index.json"


def extract_text(body_html: str) -> str:
    soup = BeautifulSoup(body_html or "", "html.parser")
    for tag in soup.find_all(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(" ", strip=True).split())


def build_search_index(sequence: LinearSequence) -> Dict[str, Dict[str, str]]:
    """One record per physical page, keyed by output filename.

    The first entry of a page wins; every node's body is released once visited.
    """
    index: Dict[str, Dict[str, str]] = {}
    for node in sequence:
        body = sequence.bodies.pop(node.index, None)
        if body is None:
            LOG.debug("No rendered body for %s, skipping search entry", node.html_path)
            continue
        key = output_name(node.html_path)
        if key in index:
            continue
        index[key] = {
            "title": node.title,
            "bodyText": extract_text(body),
            "url": page_href(node),
        }
    LOG.info("Search index: %d page(s)", len(index))
    return index


def write_search_index(out_dir: Path, index: Dict[str, Dict[str, str]]) -> Path:
    target = out_dir / SEARCH_INDEX_NAME
    safe_write_text(target, json.dumps(index, ensure_ascii=False, indent=2) + "\n")
    return target
