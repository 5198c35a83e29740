from datetime import date, datetime
from pathlib import Path, PurePosixPath

import pytest

from jotter.config import Config
from jotter.content import (
    ContentItem,
    FileKind,
    ItemKind,
    PostInfo,
    Scanner,
    classify,
    layout_name,
)
from jotter.errors import ScanError
from jotter.extractors import extract_frontmatter, parse_labels, resolve_post_date
from jotter.protocols import ContentRenderer
from jotter.renderers import MarkdownRenderer, PassthroughRenderer, RendererRegistry


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "src"
    (site / "_layouts").mkdir(parents=True)
    (site / "_posts").mkdir()
    (site / "_drafts").mkdir()
    (site / "blog" / "_posts").mkdir(parents=True)
    (site / "css").mkdir()
    (site / "_config.yml").write_text("title: Test\n", encoding="utf-8")
    (site / "_layouts" / "default.html").write_text("<html>{{ content }}</html>", encoding="utf-8")
    (site / "_layouts" / "post.html").write_text("<article>{{ content }}</article>", encoding="utf-8")
    (site / "_posts" / "2021-03-04-hello-world.md").write_text(
        "---\ntitle: Hello\nlayout: post\ntags: [python, web]\nsubtitle: First\n---\n# Hi\n",
        encoding="utf-8",
    )
    (site / "blog" / "_posts" / "2020-01-01-older.md").write_text(
        "---\ncategories: news\n---\nOld", encoding="utf-8"
    )
    (site / "_drafts" / "2021-05-05-draft.md").write_text("draft", encoding="utf-8")
    (site / "about.md").write_text("---\nlayout: default\n---\nAbout *me*", encoding="utf-8")
    (site / "index.html").write_text("<p>{{ site.title }}</p>", encoding="utf-8")
    (site / "css" / "site.css").write_text("body {}", encoding="utf-8")
    (site / ".hidden").write_text("secret", encoding="utf-8")
    (site / "about.md~").write_text("backup", encoding="utf-8")
    return site


def scan(site: Path, **config):
    return Scanner(site, Config(config)).scan()


def test_scanner_classifies_tree(tmp_path):
    site = create_site(tmp_path)
    store = scan(site)

    assert [p.path for p in store.posts] == [
        "_posts/2021-03-04-hello-world.md",
        "blog/_posts/2020-01-01-older.md",
    ]
    assert [p.path for p in store.pages] == ["about.md", "index.html"]
    assert store.static_files == ["css/site.css"]
    assert store.templates.names == ["default.html", "post.html"]


def test_scanner_builds_posts(tmp_path):
    site = create_site(tmp_path)
    hello, older = scan(site).posts

    assert hello.kind is ItemKind.POST
    assert hello.is_post
    assert hello.title == "Hello"
    assert hello.layout == "post"
    assert hello.date == datetime(2021, 3, 4)
    assert hello.tags == ["python", "web"]
    assert hello.categories == []
    assert hello.url == "/2021/03/04/hello-world.html"
    assert hello.id == "/2021/03/04/hello-world"
    assert "<h1>Hi</h1>" in hello.content
    assert hello.body == "# Hi\n"
    # custom front matter is reachable as an attribute
    assert hello.subtitle == "First"

    assert older.categories == ["blog", "news"]
    assert older.url == "/blog/news/2020/01/01/older.html"
    assert older.title == "Older"


def test_scanner_builds_pages(tmp_path):
    site = create_site(tmp_path)
    about, index = scan(site).pages

    assert about.kind is ItemKind.PAGE
    assert about.post is None
    assert about.url == "/about.html"
    assert about.layout == "default"
    assert "<em>me</em>" in about.content
    assert about.date is None
    # html bodies are kept for the render pass
    assert index.url == "/index.html"
    assert index.content == "<p>{{ site.title }}</p>"
    assert index.layout is None


def test_permalink_from_config_and_front_matter(tmp_path):
    site = create_site(tmp_path)
    (site / "_posts" / "2021-06-01-custom.md").write_text(
        "---\npermalink: /special/:title/\n---\nx", encoding="utf-8"
    )
    (site / "contact.md").write_text("---\npermalink: contact/\n---\nx", encoding="utf-8")
    store = scan(site, permalink="pretty")

    urls = {p.path: p.url for p in store.posts}
    assert urls["_posts/2021-03-04-hello-world.md"] == "/2021/03/04/hello-world/"
    assert urls["_posts/2021-06-01-custom.md"] == "/special/custom/"
    pages = {p.path: p.url for p in store.pages}
    assert pages["contact.md"] == "/contact/"


def test_front_matter_date_overrides_filename(tmp_path):
    site = create_site(tmp_path)
    (site / "_posts" / "2021-01-01-moved.md").write_text(
        "---\ndate: 2022-05-06 07:08:09\n---\nx", encoding="utf-8"
    )
    posts = scan(site).posts
    moved = next(p for p in posts if p.stem == "2021-01-01-moved")
    assert moved.date == datetime(2022, 5, 6, 7, 8, 9)
    assert moved.url == "/2022/05/06/moved.html"
    # newest first
    assert posts[0] is moved


def test_post_with_impossible_date_is_skipped(tmp_path):
    site = create_site(tmp_path)
    (site / "_posts" / "2021-02-30-bad.md").write_text("x", encoding="utf-8")
    assert all("bad" not in p.path for p in scan(site).posts)


def test_malformed_front_matter_reports_file(tmp_path):
    site = create_site(tmp_path)
    (site / "broken.md").write_text("---\ntitle: [oops\n---\nx", encoding="utf-8")
    with pytest.raises(ScanError) as excinfo:
        scan(site)
    assert str(excinfo.value.source_path) == "broken.md"


def test_scanner_skips_excluded_directories(tmp_path):
    site = create_site(tmp_path)
    (site / "public").mkdir()
    (site / "public" / "index.html").write_text("old output", encoding="utf-8")
    store = Scanner(site, Config(), exclude=[site / "public"]).scan()
    assert all(not p.path.startswith("public/") for p in store.pages)


def test_classify():
    assert classify(PurePosixPath("_layouts/default.html")) is FileKind.TEMPLATE
    assert classify(PurePosixPath("_includes/nav/top.html")) is FileKind.TEMPLATE
    assert classify(PurePosixPath("_posts/2021-01-01-x.md")) is FileKind.POST
    assert classify(PurePosixPath("a/b/_posts/2021-01-01-x.html")) is FileKind.POST
    assert classify(PurePosixPath("_posts/notes.md")) is FileKind.IGNORED
    assert classify(PurePosixPath("_posts/2021-01-01-x.png")) is FileKind.IGNORED
    assert classify(PurePosixPath("_drafts/2021-01-01-x.md")) is FileKind.IGNORED
    assert classify(PurePosixPath("docs/guide.md")) is FileKind.PAGE
    assert classify(PurePosixPath("img/logo.png")) is FileKind.STATIC


def test_layout_name_sentinels():
    assert layout_name({}) is None
    assert layout_name({"layout": None}) is None
    assert layout_name({"layout": "nil"}) is None
    assert layout_name({"layout": "None"}) is None
    assert layout_name({"layout": " "}) is None
    assert layout_name({"layout": "post"}) == "post"


def test_content_item_attribute_fallback():
    item = ContentItem(
        kind=ItemKind.PAGE,
        path="blog/index.html",
        body="",
        frontmatter={"hero": "big"},
        ext=".html",
        url="/blog/",
        layout=None,
        content="",
    )
    assert item.hero == "big"
    assert item.id == "/blog"
    assert item.title == "Index"
    with pytest.raises(AttributeError):
        item.missing
    context = item.to_context()
    assert context["hero"] == "big"
    assert context["url"] == "/blog/"
    assert context["tags"] == []


def test_to_context_prefers_rendered_content():
    item = ContentItem(
        kind=ItemKind.POST,
        path="_posts/2021-01-01-x.md",
        body="x",
        frontmatter={},
        ext=".md",
        url="/x.html",
        layout=None,
        content="<p>x</p>",
        post=PostInfo(date=datetime(2021, 1, 1)),
    )
    assert item.to_context()["content"] == "<p>x</p>"
    item.rendered = "<p>done</p>"
    assert item.to_context()["content"] == "<p>done</p>"


# --- Extractors ---


def test_extract_frontmatter():
    assert extract_frontmatter("plain body") == ({}, "plain body")
    assert extract_frontmatter("---\ntitle: A\n---\nbody") == ({"title": "A"}, "body")
    assert extract_frontmatter("---\n---\nbody") == ({}, "body")
    # a rule inside the body is not front matter
    assert extract_frontmatter("intro\n---\nmore")[0] == {}


def test_extract_frontmatter_rejects_non_mapping():
    with pytest.raises(ScanError):
        extract_frontmatter("---\n- a\n- b\n---\nx", "list.md")


def test_parse_labels():
    assert parse_labels(None, "a b", ["b", "c"], 3) == ["a", "b", "c", "3"]
    assert parse_labels() == []


def test_resolve_post_date():
    path = Path("2021-03-04-x.md")
    assert resolve_post_date(path, {}) == datetime(2021, 3, 4)
    assert resolve_post_date(path, {"date": date(2020, 1, 2)}) == datetime(2020, 1, 2)
    assert resolve_post_date(path, {"date": "2020-01-02T03:04:05+02:00"}) == datetime(
        2020, 1, 2, 3, 4, 5
    )
    assert resolve_post_date(Path("x.md"), {}) is None
    with pytest.raises(ScanError):
        resolve_post_date(path, {"date": "yesterday"})


# --- Renderers ---


def test_markdown_renderer_highlights_code():
    html = MarkdownRenderer().render("```python\nprint(1)\n```\n")
    assert 'class="highlight"' in html

    html = MarkdownRenderer().render("```nosuchlang\n<a>\n```\n")
    assert '<code class="language-nosuchlang">&lt;a&gt;' in html


def test_markdown_renderer_plugins():
    html = MarkdownRenderer().render("~~gone~~\n\n| a |\n|---|\n| b |\n")
    assert "<del>gone</del>" in html
    assert "<table>" in html


def test_renderer_registry():
    registry = RendererRegistry()
    assert registry.get_renderer(Path("a.md")).source_type == "markdown"
    assert registry.get_renderer(Path("a.html")).source_type == "template"
    assert registry.get_renderer(Path("a.png")) is None
    assert PassthroughRenderer().render("{{ x }}") == "{{ x }}"


def test_renderer_implements_protocol():
    assert isinstance(MarkdownRenderer(), ContentRenderer)
    assert isinstance(PassthroughRenderer(), ContentRenderer)
