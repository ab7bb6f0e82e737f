"""Readers turning the extracted package into the document model."""

from __future__ import annotations

import logging
import posixpath
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Union

from bs4 import BeautifulSoup

from .errors import MalformedMarkup, MissingRequiredFile
from .model import (
    ORIGIN_CURATED_TOC,
    ORIGIN_NAV_DOCUMENT,
    GuideEntry,
    ManifestItem,
    NavNode,
    Package,
    SpineItem,
)
from .paths import normalize_package_path, resolve_relative

LOG = logging.getLogger("epub2site")

CONTAINER_PATH = Path("META-INF") / "container.xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
DEFAULT_NCX_NAME = "toc.ncx"
# Longer scraped titles are assumed to have captured markup.
TITLE_MAX_LEN = 128

MEDIA_TAGS = ("audio", "video", "source", "track", "embed")


def _parse_xml(path: Path) -> ET.Element:
    try:
        return ET.parse(str(path)).getroot()
    except ET.ParseError as exc:
        raise MalformedMarkup(f"Unable to parse {path}: {exc}") from exc


def _text(element: Optional[ET.Element]) -> str:
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def find_package_document(root_dir: Path) -> Path:
    container = root_dir / CONTAINER_PATH
    if not container.exists():
        raise MissingRequiredFile(f"{CONTAINER_PATH.as_posix()} not found in {root_dir}")
    root = _parse_xml(container)
    for rootfile in root.iterfind(".//{*}rootfile"):
        full_path = (rootfile.attrib.get("full-path") or "").strip()
        if full_path:
            opf_path = root_dir / normalize_package_path(full_path)
            if not opf_path.exists():
                raise MissingRequiredFile(f"Package document not found: {opf_path}")
            return opf_path
    raise MissingRequiredFile(f"No package document declared in {container}")


def read_package(root_dir: Path) -> Package:
    opf_path = find_package_document(root_dir)
    root = _parse_xml(opf_path)

    manifest: Dict[str, ManifestItem] = {}
    for item in root.iterfind("{*}manifest/{*}item"):
        item_id = item.attrib.get("id")
        href = item.attrib.get("href")
        if not item_id or not href:
            continue
        properties = (item.attrib.get("properties") or "").split()
        manifest[item_id] = ManifestItem(
            id=item_id,
            href=normalize_package_path(href),
            media_type=item.attrib.get("media-type", ""),
            is_navigation_document="nav" in properties,
        )

    spine: List[SpineItem] = []
    toc_id: Optional[str] = None
    spine_el = root.find("{*}spine")
    if spine_el is not None:
        toc_id = spine_el.attrib.get("toc") or None
        for itemref in spine_el.iterfind("{*}itemref"):
            idref = itemref.attrib.get("idref")
            if idref:
                spine.append(SpineItem(idref=idref))

    guide: List[GuideEntry] = []
    for reference in root.iterfind("{*}guide/{*}reference"):
        href = reference.attrib.get("href")
        if not href:
            continue
        guide.append(
            GuideEntry(
                type=(reference.attrib.get("type") or "").strip(),
                title=(reference.attrib.get("title") or "").strip(),
                href=resolve_relative("", href),
            )
        )

    title = _text(root.find("{*}metadata/{*}title"))
    LOG.debug("Package %s: %d manifest items, %d spine entries, %d guide entries", opf_path, len(manifest), len(spine), len(guide))
    return Package(opf_path=opf_path, manifest=manifest, spine=spine, guide=guide, title=title, toc_id=toc_id)


def find_curated_toc(package: Package) -> Optional[Path]:
    candidates: List[str] = []
    if package.toc_id and package.toc_id in package.manifest:
        candidates.append(package.manifest[package.toc_id].html_path)
    candidates.extend(item.html_path for item in package.manifest.values() if item.media_type == NCX_MEDIA_TYPE)
    candidates.append(DEFAULT_NCX_NAME)
    for rel in candidates:
        path = package.content_dir / rel
        if path.is_file():
            return path
    return None


def read_ncx(ncx_path: Path, content_dir: Path) -> List[NavNode]:
    root = _parse_xml(ncx_path)
    base_dir = normalize_package_path(ncx_path.parent.relative_to(content_dir).as_posix())
    nav_map = root.find("{*}navMap")
    if nav_map is None:
        raise MalformedMarkup(f"navMap missing from {ncx_path}")

    def walk(parent: ET.Element) -> List[NavNode]:
        nodes: List[NavNode] = []
        for point in parent.iterfind("{*}navPoint"):
            content = point.find("{*}content")
            src = content.attrib.get("src", "") if content is not None else ""
            if not src.strip():
                raise MalformedMarkup(f"navPoint without content src in {ncx_path}")
            nodes.append(
                NavNode(
                    title=_text(point.find("{*}navLabel/{*}text")),
                    href=resolve_relative(base_dir, src),
                    children=walk(point),
                    origin=ORIGIN_CURATED_TOC,
                )
            )
        return nodes

    return walk(nav_map)


def read_navigation_document(nav_path: Path, content_dir: Path) -> List[NavNode]:
    try:
        raw = nav_path.read_bytes()
    except FileNotFoundError as exc:
        raise MissingRequiredFile(f"Navigation document not found: {nav_path}") from exc
    soup = BeautifulSoup(raw, "html.parser")
    base_dir = normalize_package_path(nav_path.parent.relative_to(content_dir).as_posix())

    nav = soup.find("nav", attrs={"epub:type": "toc"}) or soup.find("nav")
    if nav is None:
        raise MalformedMarkup(f"No <nav> element in {nav_path}")
    root_ol = nav.find("ol")
    if root_ol is None:
        return []

    def walk_list(ol) -> List[NavNode]:
        nodes: List[NavNode] = []
        for li in ol.find_all("li", recursive=False):
            link = li.find("a", recursive=False)
            label = link if link is not None else li.find("span", recursive=False)
            title = label.get_text(" ", strip=True) if label is not None else ""
            href = link.get("href") if link is not None else None
            if not href:
                # Unlinked headings point at their first linked descendant.
                first = li.find("a", href=True)
                href = first.get("href") if first is not None else None
            child_ol = li.find("ol", recursive=False)
            children = walk_list(child_ol) if child_ol is not None else []
            if not href:
                LOG.warning("Skipping navigation entry without link: %r", title)
                nodes.extend(children)
                continue
            nodes.append(
                NavNode(
                    title=title,
                    href=resolve_relative(base_dir, href),
                    children=children,
                    origin=ORIGIN_NAV_DOCUMENT,
                )
            )
        return nodes

    return walk_list(root_ol)


def _sane_title(text: str, html_path: str) -> str:
    fallback = posixpath.basename(html_path)
    if not text:
        return fallback
    if len(text) > TITLE_MAX_LEN:
        LOG.debug("Scraped title for %s exceeds %d characters, using filename", html_path, TITLE_MAX_LEN)
        return fallback
    return text


class PageDocument:
    """Parsed content page with mutable element references."""

    def __init__(self, html_path: str, raw_html: Union[str, bytes]) -> None:
        self.html_path = html_path
        self.soup = BeautifulSoup(raw_html, "html.parser")

    def title(self) -> str:
        if self.soup.title is None:
            return ""
        return self.soup.title.get_text(" ", strip=True)

    def heading(self) -> str:
        for name in ("h1", "h2", "h3"):
            tag = self.soup.find(name)
            if tag is not None:
                text = tag.get_text(" ", strip=True)
                if text:
                    return text
        return ""

    def body_html(self) -> str:
        body = self.soup.body
        return body.decode_contents() if body is not None else self.soup.decode()

    def head_links(self) -> list:
        head = self.soup.head
        if head is None:
            return []
        return [link for link in head.find_all("link") if "stylesheet" in (link.get("rel") or [])]

    def images(self) -> list:
        return self.soup.find_all(["img", "image"])

    def media(self) -> list:
        return self.soup.find_all(list(MEDIA_TAGS)) + self.soup.find_all("object", data=True)

    def anchors(self) -> list:
        return self.soup.find_all("a", href=True)


class PageLoader:
    def __init__(self, content_dir: Path) -> None:
        self.content_dir = content_dir

    def load(self, html_path: str) -> PageDocument:
        path = self.content_dir / html_path
        if not path.is_file():
            raise MissingRequiredFile(f"Content page not found: {path}")
        # BeautifulSoup picks the encoding from the XML prolog or meta charset.
        return PageDocument(html_path, path.read_bytes())

    def document_title(self, html_path: str) -> str:
        return _sane_title(self.load(html_path).title(), html_path)

    def heading_title(self, html_path: str) -> str:
        return _sane_title(self.load(html_path).heading(), html_path)
