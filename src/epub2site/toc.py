"""Navigation tree construction and spine reconciliation."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .errors import UnplaceableSpinePage
from .model import (
    COVER_GUIDE_TYPE,
    ORIGIN_GUIDE,
    ORIGIN_SPINE,
    GuideEntry,
    NavNode,
    NavTree,
    Package,
)
from .paths import html_path_of, is_page_reference
from .readers import PageLoader, find_curated_toc, read_navigation_document, read_ncx

LOG = logging.getLogger("epub2site")


def synthesize_from_spine(spine_hrefs: Sequence[Optional[str]], loader: PageLoader) -> List[NavNode]:
    nodes: List[NavNode] = []
    for href in spine_hrefs:
        if href is None:
            continue
        html_path = html_path_of(href)
        nodes.append(NavNode(title=loader.document_title(html_path), href=href, origin=ORIGIN_SPINE))
    return nodes


def _is_guide_page(entry: GuideEntry) -> bool:
    if is_page_reference(entry.href):
        return True
    LOG.warning("Guide entry %r (%s) is not a content page, skipping", entry.href, entry.type)
    return False


def merge_guide(tree: NavTree, guide: Sequence[GuideEntry]) -> NavTree:
    """Place guide entries ahead of the tree: cover first, then the rest in guide order.

    Non-cover entries whose page already appears anywhere in the tree are not
    added. The cover always ends up first, duplicating its page if the tree
    lists it elsewhere. Guide entries pointing at images or other non-page
    files are dropped.
    """
    front: List[NavNode] = []
    for entry in guide:
        if entry.type == COVER_GUIDE_TYPE or not _is_guide_page(entry):
            continue
        path = html_path_of(entry.href)
        if tree.contains_path(path) or any(node.html_path == path for node in front):
            LOG.debug("Guide entry %r already in the table of contents", entry.href)
            continue
        front.append(NavNode(title=entry.title or entry.type, href=entry.href, origin=ORIGIN_GUIDE))
    tree.roots[:0] = front

    cover = next((entry for entry in guide if entry.type == COVER_GUIDE_TYPE), None)
    if cover is None or not _is_guide_page(cover):
        return tree
    cover_path = html_path_of(cover.href)
    if tree.roots and tree.roots[0].html_path == cover_path:
        return tree
    tree.roots.insert(0, NavNode(title=cover.title or "Cover", href=cover.href, origin=ORIGIN_GUIDE))
    return tree


def build_toc(package: Package, loader: PageLoader) -> NavTree:
    roots: List[NavNode] = []
    ncx_path = find_curated_toc(package)
    if ncx_path is not None:
        LOG.info("Using curated table of contents: %s", ncx_path)
        roots = read_ncx(ncx_path, package.content_dir)
        if not roots:
            LOG.warning("Curated table of contents %s has no entries", ncx_path)

    nav_item = package.navigation_document()
    if not roots and nav_item is not None:
        LOG.info("Using navigation document: %s", nav_item.href)
        roots = read_navigation_document(package.content_dir / nav_item.html_path, package.content_dir)

    if not roots:
        LOG.info("No table of contents found, synthesizing from the spine")
        roots = synthesize_from_spine(package.spine_hrefs(), loader)

    return merge_guide(NavTree(roots=roots), package.guide)


def reconcile(tree: NavTree, spine_hrefs: Sequence[Optional[str]], loader: PageLoader) -> int:
    """Insert every spine page the tree does not reference yet.

    Returns the number of inserted nodes. A page missing from the tree hangs
    as the last child of the tree node of the nearest earlier spine page; the
    lookup then maps it to that same anchor so a run of missing pages ends up
    as consecutive siblings.
    """
    lookup: Dict[str, NavNode] = {}
    for node in tree.walk():
        lookup.setdefault(node.html_path, node)

    paths = [html_path_of(href) if href is not None else None for href in spine_hrefs]
    inserted = 0
    for position, href in enumerate(spine_hrefs):
        path = paths[position]
        if href is None or path is None or path in lookup:
            continue

        node = NavNode(title=loader.heading_title(path), href=href, origin=ORIGIN_SPINE)
        if position == 0:
            tree.roots.insert(0, node)
            lookup[path] = node
            inserted += 1
            LOG.debug("Spine page %s inserted at the front", path)
            continue

        anchor: Optional[NavNode] = None
        for prior in range(position - 1, -1, -1):
            prior_path = paths[prior]
            if prior_path is not None and prior_path in lookup:
                anchor = lookup[prior_path]
                break
        if anchor is None:
            raise UnplaceableSpinePage(path, position)

        anchor.children.append(node)
        lookup[path] = anchor
        inserted += 1
        LOG.debug("Spine page %s appended under %s", path, anchor.html_path)

    if inserted:
        LOG.info("Inserted %d spine page(s) missing from the table of contents", inserted)
    return inserted
