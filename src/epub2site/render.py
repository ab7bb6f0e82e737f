"""Navigation and page rendering."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from jinja2 import Environment, Template, TemplateSyntaxError, select_autoescape

from .errors import MalformedMarkup, MissingRequiredFile, UnsupportedContentType
from .model import LinearNode, LinearSequence
from .paths import (
    is_page_reference,
    is_rewritable,
    normalize_extension,
    output_name,
    resolve_relative,
    split_fragment,
)
from .readers import PageDocument, PageLoader

LOG = logging.getLogger("epub2site")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
PAGE_TEMPLATE_NAME = "page.html.j2"
NAVIGATION_TEMPLATE_NAME = "navigation.html.j2"


@dataclass(frozen=True)
class RenderConfig:
    page_template: Template
    navigation_template: Template
    asset_url: str = ""


@dataclass(frozen=True)
class NavEntry:
    title: str
    href: str
    src: str
    level: str
    children: Tuple["NavEntry", ...]


@dataclass(frozen=True)
class PageLink:
    title: str
    href: str


def _template_environment() -> Environment:
    return Environment(
        autoescape=select_autoescape(default_for_string=True),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _read_template(template_dir: Path, name: str) -> str:
    path = template_dir / name
    if not path.is_file():
        raise MissingRequiredFile(f"Template not found: {path}")
    return path.read_text(encoding="utf-8")


def load_render_config(template_dir: Optional[Path] = None, asset_url: str = "") -> RenderConfig:
    """Load and compile the page templates once for the whole run."""
    source_dir = template_dir or TEMPLATES_DIR
    env = _template_environment()
    compiled: Dict[str, Template] = {}
    for name in (PAGE_TEMPLATE_NAME, NAVIGATION_TEMPLATE_NAME):
        try:
            compiled[name] = env.from_string(_read_template(source_dir, name))
        except TemplateSyntaxError as exc:
            raise MalformedMarkup(f"Invalid template {source_dir / name}: {exc}") from exc
    if asset_url and not asset_url.endswith("/"):
        asset_url += "/"
    return RenderConfig(
        page_template=compiled[PAGE_TEMPLATE_NAME],
        navigation_template=compiled[NAVIGATION_TEMPLATE_NAME],
        asset_url=asset_url,
    )


def now() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def page_href(node: LinearNode, keep_fragment: bool = False) -> str:
    """Link target of a node in the flat output directory."""
    raw_path, fragment = split_fragment(node.node.href)
    href = normalize_extension(posixpath.basename(raw_path))
    return f"{href}#{fragment}" if keep_fragment and fragment else href


def is_renderable(node: LinearNode) -> bool:
    try:
        output_name(node.html_path)
    except UnsupportedContentType:
        return False
    return True


def first_page(sequence: LinearSequence) -> Optional[str]:
    for node in sequence:
        if is_renderable(node):
            return page_href(node)
    return None


def build_navigation_snapshot(sequence: LinearSequence) -> Tuple[NavEntry, ...]:
    """Freeze the tree for the menu; entries that are not pages give way to their children."""

    def entries(indices: Tuple[int, ...]) -> Tuple[NavEntry, ...]:
        out: List[NavEntry] = []
        for index in indices:
            node = sequence.nodes[index]
            children = entries(node.children)
            if not is_renderable(node):
                out.extend(children)
                continue
            out.append(
                NavEntry(
                    title=node.title,
                    href=page_href(node, keep_fragment=True),
                    src=node.src,
                    level=node.level,
                    children=children,
                )
            )
        return tuple(out)

    return entries(sequence.roots)


def render_navigation(config: RenderConfig, snapshot: Tuple[NavEntry, ...], current: LinearNode) -> str:
    return config.navigation_template.render(entries=snapshot, current_src=current.src, current_level=current.level)


def _rewrite_asset(tag, attr: str, base_dir: str) -> None:
    value = tag.get(attr)
    if is_rewritable(value):
        tag[attr] = resolve_relative(base_dir, value)


def rewrite_page(document: PageDocument, node: LinearNode) -> None:
    """Make asset references directory-qualified and page links point at output files."""
    for tag in document.images():
        for attr in ("src", "href", "xlink:href"):
            _rewrite_asset(tag, attr, node.dir)
    for tag in document.media():
        _rewrite_asset(tag, "data" if tag.name == "object" else "src", node.dir)
    for link in document.head_links():
        _rewrite_asset(link, "href", node.dir)
    for anchor in document.anchors():
        href = anchor.get("href")
        if not is_rewritable(href):
            continue
        if is_page_reference(href):
            raw_path, fragment = split_fragment(href)
            target = normalize_extension(posixpath.basename(raw_path))
            anchor["href"] = f"{target}#{fragment}" if fragment else target
        else:
            anchor["href"] = resolve_relative(node.dir, href)


def _page_link(sequence: LinearSequence, node: LinearNode, forward: bool) -> Optional[PageLink]:
    find = sequence.find_next_html if forward else sequence.find_prev_html
    target = find(node.index)
    while target is not None and (target.src == node.src or not is_renderable(target)):
        target = find(target.index)
    if target is None:
        return None
    return PageLink(title=target.title, href=page_href(target))


def _remove_stale(out_dir: Path, node: LinearNode, target: Path) -> None:
    for stale in (out_dir / node.html_path, out_dir / node.src):
        if stale != target and stale.is_file():
            stale.unlink()
            LOG.debug("Removed stale source page %s", stale)


def safe_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


def render_page(
    config: RenderConfig,
    sequence: LinearSequence,
    snapshot: Tuple[NavEntry, ...],
    loader: PageLoader,
    node: LinearNode,
    out_dir: Path,
    book_title: str = "",
) -> Path:
    navigation = render_navigation(config, snapshot, node)
    document = loader.load(node.html_path)
    rewrite_page(document, node)
    body = document.body_html()
    html = config.page_template.render(
        title=node.title,
        book_title=book_title,
        level=node.level,
        depth=node.depth,
        navigation=navigation,
        head_links="\n".join(str(link) for link in document.head_links()),
        body=body,
        prev=_page_link(sequence, node, forward=False),
        next=_page_link(sequence, node, forward=True),
        asset_url=config.asset_url,
        generated_at=now(),
    )
    target = out_dir / output_name(node.html_path)
    safe_write_text(target, html)
    if target.name != node.src:
        _remove_stale(out_dir, node, target)
    sequence.bodies[node.index] = body
    return target


def render_pages(
    config: RenderConfig,
    sequence: LinearSequence,
    loader: PageLoader,
    out_dir: Path,
    book_title: str = "",
    progress: Optional[Callable[[int, int, str], None]] = None,
) -> List[Path]:
    """Render every node from tail to head.

    Entries sharing a physical page overwrite the same file, so the file ends
    up carrying the title of the first entry pointing at it. Entries whose
    target is not a content page are left out.
    """
    snapshot = build_navigation_snapshot(sequence)
    owners: Dict[str, str] = {}
    skipped: Set[str] = set()
    for node in sequence:
        if not is_renderable(node):
            if node.html_path not in skipped:
                LOG.warning("Skipping %s: unsupported content type", node.html_path)
                skipped.add(node.html_path)
            continue
        owner = owners.setdefault(node.src, node.html_path)
        if owner != node.html_path:
            LOG.warning("Pages %s and %s share the output name %s", owner, node.html_path, node.src)

    written: List[Path] = []
    total = len(sequence)
    for done, node in enumerate(reversed(sequence.nodes), 1):
        if node.html_path not in skipped:
            target = render_page(config, sequence, snapshot, loader, node, out_dir, book_title)
            if target not in written:
                written.append(target)
        if progress is not None:
            progress(done, total, node.html_path)
    written.reverse()
    return written
