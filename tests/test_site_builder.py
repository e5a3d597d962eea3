"""Tests for full site builds."""

from pathlib import Path

import pytest

from blog_publisher.config import Settings
from blog_publisher.errors import BlogPublisherError, SiteBuildError
from blog_publisher.renderer import RenderedPage
from blog_publisher.site_builder import build_site, write_pages
from tests.conftest import make_post_text, make_settings, write_post


def test_build_writes_pages(settings: Settings) -> None:
    result = build_site(settings)
    out = settings.output_path
    assert result.output_dir == out
    assert (out / "index.html").is_file()
    assert (out / "2019/02/01/git-aliases.html").is_file()
    assert (out / "tags/graphql/index.html").is_file()
    assert not (out / "2019/05/20/conference.html").exists()
    assert len(result.pages) == 10
    assert result.report.ok


def test_build_includes_drafts_when_enabled(site: Path) -> None:
    settings = make_settings(site, include_drafts=True)
    build_site(settings)
    assert (settings.output_path / "2019/05/20/conference.html").is_file()


def test_build_copies_static_files(site: Path, settings: Settings) -> None:
    (site / "assets" / "css").mkdir(parents=True)
    (site / "assets" / "css" / "site.css").write_text("body {}")
    build_site(settings)
    assert (settings.output_path / "assets" / "css" / "site.css").read_text() == "body {}"


def test_build_cleans_stale_output(settings: Settings) -> None:
    stale = settings.output_path / "old.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")
    build_site(settings)
    assert not stale.exists()


def test_build_keeps_output_when_clean_disabled(site: Path) -> None:
    settings = make_settings(site, clean_output=False)
    stale = settings.output_path / "old.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")
    build_site(settings)
    assert stale.exists()


def test_strict_build_refuses_on_lint_errors(site: Path) -> None:
    write_post(site, "2019-06-01-broken.md", make_post_text(body="[x](/missing.html)"))
    settings = make_settings(site)
    with pytest.raises(SiteBuildError) as exc_info:
        build_site(settings)
    assert exc_info.value.report.error_count == 1
    assert not settings.output_path.exists()


def test_non_strict_build_writes_anyway(site: Path) -> None:
    write_post(site, "2019-06-01-broken.md", make_post_text(body="[x](/missing.html)"))
    settings = make_settings(site)
    result = build_site(settings, strict=False)
    assert not result.report.ok
    assert (settings.output_path / "2019/06/01/broken.html").is_file()


def test_build_refuses_to_clean_site_root(site: Path) -> None:
    settings = make_settings(site, output_dir=Path("."))
    with pytest.raises(BlogPublisherError, match="refusing to clean"):
        build_site(settings)
    assert (site / "_posts").is_dir()


def test_strict_build_refuses_escaping_permalink(tmp_path: Path) -> None:
    site = tmp_path / "site"
    write_post(site, "2019-01-01-a.md", make_post_text(permalink="/../../escaped.html"))
    settings = make_settings(site)
    with pytest.raises(SiteBuildError) as exc_info:
        build_site(settings)
    assert [i.rule for i in exc_info.value.report.issues] == ["unsafe-permalink"]
    assert not (tmp_path / "escaped.html").exists()


def test_non_strict_build_never_writes_outside_output(tmp_path: Path) -> None:
    site = tmp_path / "site"
    write_post(site, "2019-01-01-a.md", make_post_text(permalink="/../../escaped.html"))
    with pytest.raises(BlogPublisherError, match="refusing to write"):
        build_site(make_settings(site), strict=False)
    assert not (tmp_path / "escaped.html").exists()


def test_write_pages_checks_every_page_first(tmp_path: Path) -> None:
    output = tmp_path / "out"
    output.mkdir()
    pages = [
        RenderedPage(url="/", output_path="index.html", html="home"),
        RenderedPage(url="/../x.html", output_path="../x.html", html="escape"),
    ]
    with pytest.raises(BlogPublisherError):
        write_pages(pages, output)
    assert not (output / "index.html").exists()
    assert not (tmp_path / "x.html").exists()


def test_strict_build_refuses_unknown_layout(tmp_path: Path) -> None:
    write_post(tmp_path, "2019-01-01-a.md", make_post_text(layout="gallery"))
    settings = make_settings(tmp_path)
    with pytest.raises(SiteBuildError) as exc_info:
        build_site(settings)
    assert [i.rule for i in exc_info.value.report.issues] == ["unknown-layout"]
    assert not settings.output_path.exists()


def test_colliding_tag_slugs_share_one_page(tmp_path: Path) -> None:
    write_post(tmp_path, "2019-01-01-plain.md", make_post_text(title="Plain C", tags="[C]"))
    write_post(tmp_path, "2019-01-02-sharp.md", make_post_text(title="Sharp", tags="['C#']"))
    settings = make_settings(tmp_path)
    result = build_site(settings)
    assert result.pages.count("tags/c/index.html") == 1
    html = (settings.output_path / "tags/c/index.html").read_text()
    assert "Plain C" in html
    assert "Sharp" in html
