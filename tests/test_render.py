import re
from pathlib import Path

import pytest

from epub2site.errors import MissingRequiredFile, UnsupportedContentType
from epub2site.linearize import linearize
from epub2site.model import NavNode, NavTree
from epub2site.paths import is_page_reference, normalize_extension, output_name
from epub2site.readers import PageDocument, PageLoader
from epub2site.render import (
    build_navigation_snapshot,
    first_page,
    load_render_config,
    now,
    render_navigation,
    render_pages,
    rewrite_page,
)


CH1 = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head>
  <title>One</title>
  <link rel="stylesheet" type="text/css" href="../Styles/book.css"/>
</head>
<body>
<h1>Chapter One</h1>
<p>Alpha text.</p>
<p><img src="../Images/fig.png" alt="fig"/></p>
<p><a href="ch2.xhtml#intro">onwards</a> <a href="#s2">below</a> <a href="https://example.org/">web</a></p>
<h2 id="s2">Section Two</h2>
<p>Beta text.</p>
</body>
</html>
"""

CH2 = """<html><head><title>Two</title></head>
<body><h1 id="intro">Chapter Two</h1><p>Gamma text.</p><a href="ch1.xhtml">back</a></body></html>
"""


def _create_content(tmp_path: Path) -> Path:
    content_dir = tmp_path / "OEBPS"
    (content_dir / "Text").mkdir(parents=True)
    (content_dir / "Text" / "ch1.xhtml").write_text(CH1, encoding="utf-8")
    (content_dir / "Text" / "ch2.xhtml").write_text(CH2, encoding="utf-8")
    return content_dir


def _shared_page_tree() -> NavTree:
    return NavTree(
        roots=[
            NavNode(
                title="Chapter One",
                href="Text/ch1.xhtml",
                children=[NavNode(title="Section Two", href="Text/ch1.xhtml#s2")],
            ),
            NavNode(title="Chapter Two", href="Text/ch2.xhtml"),
        ]
    )


def test_normalize_extension_maps_source_markup_to_html():
    assert normalize_extension("ch1.xhtml") == "ch1.html"
    assert normalize_extension("ch1.htm#part") == "ch1.html#part"
    assert normalize_extension("ch1.XHT") == "ch1.html"
    assert normalize_extension("cover") == "cover.html"
    assert output_name("Text/chapter 1.xhtml") == "chapter 1.html"


def test_normalize_extension_is_idempotent():
    for name in ("a.xhtml", "b.htm", "c.html#x", "d", "Text/e.xht#frag"):
        once = normalize_extension(name)
        assert normalize_extension(once) == once


def test_normalize_extension_rejects_unknown_content_type():
    with pytest.raises(UnsupportedContentType):
        normalize_extension("cover.jpg")


def test_rewrite_page_qualifies_assets_and_normalizes_page_links(tmp_path):
    content_dir = _create_content(tmp_path)
    sequence = linearize(_shared_page_tree())
    document = PageLoader(content_dir).load("Text/ch1.xhtml")

    rewrite_page(document, sequence.head)

    assert document.images()[0]["src"] == "Images/fig.png"
    assert document.head_links()[0]["href"] == "Styles/book.css"
    assert [a["href"] for a in document.anchors()] == ["ch2.html#intro", "#s2", "https://example.org/"]


def test_rewrite_page_leaves_external_and_data_references():
    sequence = linearize(NavTree(roots=[NavNode(title="P", href="Text/p.xhtml")]))
    document = PageDocument(
        "Text/p.xhtml",
        '<html><body><img src="data:image/png;base64,AAAA"/><img src="//cdn.example.org/x.png"/>'
        '<video src="../Media/clip.mp4"></video><a href="../Images/big.jpg">full size</a></body></html>',
    )

    rewrite_page(document, sequence.head)

    assert [img["src"] for img in document.images()] == ["data:image/png;base64,AAAA", "//cdn.example.org/x.png"]
    assert document.media()[0]["src"] == "Media/clip.mp4"
    assert document.anchors()[0]["href"] == "Images/big.jpg"


def test_rewrite_page_maps_extensionless_page_links():
    sequence = linearize(NavTree(roots=[NavNode(title="P", href="Text/p.xhtml")]))
    document = PageDocument(
        "Text/p.xhtml",
        '<html><body><a href="../Text/plate">plate</a><a href="plate#fig">figure</a>'
        '<a href="../Images/plate.png">image</a></body></html>',
    )

    rewrite_page(document, sequence.head)

    assert [a["href"] for a in document.anchors()] == ["plate.html", "plate.html#fig", "Images/plate.png"]
    assert is_page_reference("plate")
    assert not is_page_reference("plate.png")
    assert not is_page_reference("#plate")


def test_render_navigation_highlights_current_page():
    sequence = linearize(_shared_page_tree())
    config = load_render_config()
    snapshot = build_navigation_snapshot(sequence)

    html = render_navigation(config, snapshot, sequence.nodes[2])

    assert 'href="ch1.html"' in html
    assert 'href="ch1.html#s2"' in html
    assert re.search(r'class="chapter active" data-level="2">\s*<a href="ch2.html">Chapter Two</a>', html)
    assert 'class="chapter active" data-level="1"' not in html


def test_render_pages_writes_one_file_per_physical_page(tmp_path):
    content_dir = _create_content(tmp_path)
    out_dir = tmp_path / "site"
    sequence = linearize(_shared_page_tree())

    written = render_pages(load_render_config(), sequence, PageLoader(content_dir), out_dir)

    assert written == [out_dir / "ch1.html", out_dir / "ch2.html"]
    ch1 = (out_dir / "ch1.html").read_text(encoding="utf-8")
    ch2 = (out_dir / "ch2.html").read_text(encoding="utf-8")
    # the file is written last for its first entry
    assert "<title>Chapter One</title>" in ch1
    assert 'href="Styles/book.css"' in ch1
    assert 'src="Images/fig.png"' in ch1
    assert 'navigation-next" href="ch2.html"' in ch1
    assert "navigation-prev" not in ch1
    assert 'navigation-prev" href="ch1.html"' in ch2
    assert "navigation-next" not in ch2
    assert 'href="ch1.html">back</a>' in ch2
    assert set(sequence.bodies) == {0, 1, 2}


def test_render_pages_reports_progress_for_every_entry(tmp_path):
    content_dir = _create_content(tmp_path)
    calls = []

    render_pages(
        load_render_config(),
        linearize(_shared_page_tree()),
        PageLoader(content_dir),
        tmp_path / "site",
        progress=lambda done, total, detail: calls.append((done, total, detail)),
    )

    assert calls == [(1, 3, "Text/ch2.xhtml"), (2, 3, "Text/ch1.xhtml"), (3, 3, "Text/ch1.xhtml")]


def test_render_pages_removes_stale_source_named_files(tmp_path):
    content_dir = _create_content(tmp_path)
    out_dir = tmp_path / "site"
    (out_dir / "Text").mkdir(parents=True)
    (out_dir / "Text" / "ch1.xhtml").write_text(CH1, encoding="utf-8")
    (out_dir / "ch2.xhtml").write_text(CH2, encoding="utf-8")
    (out_dir / "Text" / "keep.css").write_text("p {}", encoding="utf-8")

    render_pages(load_render_config(), linearize(_shared_page_tree()), PageLoader(content_dir), out_dir)

    assert not (out_dir / "Text" / "ch1.xhtml").exists()
    assert not (out_dir / "ch2.xhtml").exists()
    assert (out_dir / "Text" / "keep.css").exists()


def test_render_pages_fails_on_missing_content(tmp_path):
    content_dir = tmp_path / "OEBPS"
    content_dir.mkdir()
    sequence = linearize(NavTree(roots=[NavNode(title="Gone", href="gone.xhtml")]))

    with pytest.raises(MissingRequiredFile):
        render_pages(load_render_config(), sequence, PageLoader(content_dir), tmp_path / "site")


def test_render_pages_leaves_out_entries_that_are_not_pages(tmp_path):
    content_dir = _create_content(tmp_path)
    (content_dir / "Images").mkdir()
    (content_dir / "Images" / "cover.svg").write_text("<svg xmlns=\"http://www.w3.org/2000/svg\"/>", encoding="utf-8")
    out_dir = tmp_path / "site"
    tree = NavTree(
        roots=[
            NavNode(title="Chapter One", href="Text/ch1.xhtml"),
            NavNode(
                title="Plate",
                href="Images/cover.svg",
                children=[NavNode(title="Chapter Two", href="Text/ch2.xhtml")],
            ),
        ]
    )
    sequence = linearize(tree)

    written = render_pages(load_render_config(), sequence, PageLoader(content_dir), out_dir)

    assert written == [out_dir / "ch1.html", out_dir / "ch2.html"]
    assert sorted(path.name for path in out_dir.iterdir()) == ["ch1.html", "ch2.html"]
    assert [entry.href for entry in build_navigation_snapshot(sequence)] == ["ch1.html", "ch2.html"]
    ch1 = (out_dir / "ch1.html").read_text(encoding="utf-8")
    ch2 = (out_dir / "ch2.html").read_text(encoding="utf-8")
    assert "cover.svg" not in ch1
    assert 'navigation-next" href="ch2.html"' in ch1
    assert 'navigation-prev" href="ch1.html"' in ch2
    assert set(sequence.bodies) == {0, 2}


def test_first_page_skips_entries_that_are_not_pages():
    tree = NavTree(
        roots=[
            NavNode(title="Cover", href="Images/cover.jpg"),
            NavNode(title="Chapter One", href="Text/ch1.xhtml#start"),
        ]
    )

    assert first_page(linearize(tree)) == "ch1.html"
    assert first_page(linearize(NavTree(roots=[]))) is None


def test_load_render_config_uses_custom_templates_and_asset_url(tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "page.html.j2").write_text("{{ asset_url }}|{{ title }}|{{ navigation | safe }}", encoding="utf-8")
    (templates / "navigation.html.j2").write_text("NAV", encoding="utf-8")
    content_dir = _create_content(tmp_path)
    out_dir = tmp_path / "site"
    sequence = linearize(NavTree(roots=[NavNode(title="Chapter Two", href="Text/ch2.xhtml")]))

    config = load_render_config(template_dir=templates, asset_url="https://cdn.example.org")
    render_pages(config, sequence, PageLoader(content_dir), out_dir)

    assert (out_dir / "ch2.html").read_text(encoding="utf-8") == "https://cdn.example.org/|Chapter Two|NAV"


def test_load_render_config_requires_both_templates(tmp_path):
    (tmp_path / "page.html.j2").write_text("x", encoding="utf-8")

    with pytest.raises(MissingRequiredFile):
        load_render_config(template_dir=tmp_path)


def test_now_is_extended_iso8601_with_offset():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}", now())
