"""Document model shared by the readers, the TOC stages and the renderers."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .paths import html_path_of, split_fragment

LOG = logging.getLogger("epub2site")

ORIGIN_CURATED_TOC = "curated-toc"
ORIGIN_NAV_DOCUMENT = "nav-document"
ORIGIN_SPINE = "spine-synthesized"
ORIGIN_GUIDE = "guide"

COVER_GUIDE_TYPE = "cover"


@dataclass
class ManifestItem:
    id: str
    href: str
    media_type: str
    is_navigation_document: bool = False

    @property
    def html_path(self) -> str:
        return html_path_of(self.href)


@dataclass
class SpineItem:
    idref: str


@dataclass
class GuideEntry:
    type: str
    title: str
    href: str


@dataclass
class Package:
    opf_path: Path
    manifest: Dict[str, ManifestItem]
    spine: List[SpineItem]
    guide: List[GuideEntry]
    title: str = ""
    toc_id: Optional[str] = None

    @property
    def content_dir(self) -> Path:
        return self.opf_path.parent

    def navigation_document(self) -> Optional[ManifestItem]:
        for item in self.manifest.values():
            if item.is_navigation_document:
                return item
        return None

    def spine_hrefs(self) -> List[Optional[str]]:
        hrefs: List[Optional[str]] = []
        for itemref in self.spine:
            item = self.manifest.get(itemref.idref)
            if item is None:
                LOG.warning("Spine item '%s' has no manifest entry", itemref.idref)
                hrefs.append(None)
                continue
            hrefs.append(item.href)
        return hrefs


@dataclass
class NavNode:
    title: str
    href: str
    children: List["NavNode"] = field(default_factory=list)
    origin: str = ORIGIN_CURATED_TOC

    @property
    def html_path(self) -> str:
        return html_path_of(self.href)

    @property
    def src(self) -> str:
        return posixpath.basename(self.html_path)

    @property
    def fragment(self) -> str:
        return split_fragment(self.href)[1]


@dataclass
class NavTree:
    roots: List[NavNode] = field(default_factory=list)

    def walk(self) -> Iterator[NavNode]:
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count(self) -> int:
        return sum(1 for _ in self.walk())

    def contains_path(self, html_path: str) -> bool:
        return any(node.html_path == html_path for node in self.walk())


@dataclass(frozen=True)
class LinearNode:
    index: int
    node: NavNode
    depth: int
    level: str
    prev: Optional[int]
    next: Optional[int]
    parent: Optional[int]
    children: Tuple[int, ...]
    html_path: str
    src: str
    dir: str
    src_raw: str

    @property
    def title(self) -> str:
        return self.node.title


@dataclass
class LinearSequence:
    nodes: List[LinearNode]
    roots: Tuple[int, ...]
    bodies: Dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[LinearNode]:
        return iter(self.nodes)

    @property
    def head(self) -> Optional[LinearNode]:
        return self.nodes[0] if self.nodes else None

    @property
    def tail(self) -> Optional[LinearNode]:
        return self.nodes[-1] if self.nodes else None

    def find_next_html(self, index: int) -> Optional[LinearNode]:
        """First node after ``index`` that lives in a different physical page."""
        current = self.nodes[index]
        cursor = current.next
        while cursor is not None:
            candidate = self.nodes[cursor]
            if candidate.src != current.src:
                return candidate
            cursor = candidate.next
        return None

    def find_prev_html(self, index: int) -> Optional[LinearNode]:
        current = self.nodes[index]
        cursor = current.prev
        while cursor is not None:
            candidate = self.nodes[cursor]
            if candidate.src != current.src:
                return candidate
            cursor = candidate.prev
        return None
