"""Render posts to HTML with Markdown and Jinja2 layouts."""

from __future__ import annotations

import re
from importlib import resources
from typing import Any

import markdown
import structlog
from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup
from pydantic import BaseModel, ConfigDict, Field

from blog_publisher.config import Settings
from blog_publisher.errors import LayoutNotFoundError, RenderError
from blog_publisher.markup import (
    POST_URL_RE,
    highlight_to_fences,
    replace_outside_code,
)
from blog_publisher.metrics import pages_rendered_total
from blog_publisher.models import Post
from blog_publisher.post_loader import PostCollection
from blog_publisher.urls import INDEX_URL, output_path_for, permalink_for, tag_pages, tag_url

log = structlog.get_logger()

_TEMPLATE_SUFFIX = ".html"
_MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "sane_lists"]
_SUMMARY_SPLIT_RE = re.compile(r"\n\s*\n")


class RenderedPage(BaseModel):
    """One HTML page ready to be written or served."""

    model_config = ConfigDict(frozen=True)
    url: str = Field(description="Site-absolute URL of the page")
    output_path: str = Field(description="Path relative to the output directory")
    html: str
    kind: str = Field(default="post", description="post, index or tag")


def _builtin_layouts() -> set[str]:
    templates = resources.files("blog_publisher") / "templates"
    return {
        entry.name[: -len(_TEMPLATE_SUFFIX)]
        for entry in templates.iterdir()
        if entry.name.endswith(_TEMPLATE_SUFFIX)
    }


def available_layouts(settings: Settings) -> set[str]:
    """Layout names with a template in the layouts directory or built in."""
    layouts = _builtin_layouts()
    if settings.layouts_path.is_dir():
        layouts |= {
            p.name[: -len(_TEMPLATE_SUFFIX)]
            for p in settings.layouts_path.glob(f"*{_TEMPLATE_SUFFIX}")
        }
    return layouts


class Renderer:
    """Turns a post collection into HTML pages."""

    def __init__(self, settings: Settings, collection: PostCollection) -> None:
        self._settings = settings
        self._collection = collection
        self._md = markdown.Markdown(extensions=_MARKDOWN_EXTENSIONS, output_format="html")
        self._env = Environment(
            loader=ChoiceLoader(
                [
                    FileSystemLoader(str(settings.layouts_path)),
                    PackageLoader("blog_publisher", "templates"),
                ]
            ),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.globals.update(
            site={"title": settings.site_title, "base_url": settings.base_url},
            url_for=self.url_for,
            tag_url=lambda tag: self.url_for(tag_url(tag)),
        )

    def url_for(self, url: str) -> str:
        """Prefix a site-absolute URL with the configured base URL."""
        return f"{self._settings.base_url}{url}"

    def permalink(self, post: Post) -> str:
        return permalink_for(post, self._settings.permalink)

    def _resolve_post_url(self, match: re.Match[str]) -> str:
        target = self._collection.by_id(match["post_id"])
        if target is None:
            raise RenderError(f"post_url references unknown post {match['post_id']!r}")
        return self.url_for(self.permalink(target))

    def render_body(self, post: Post) -> str:
        """Convert a post body (Markdown plus Liquid tags) to HTML."""
        text = highlight_to_fences(post.body)
        try:
            text = replace_outside_code(text, POST_URL_RE, self._resolve_post_url)
        except RenderError as exc:
            raise RenderError(f"{post.source_path}: {exc}") from exc
        self._md.reset()
        return self._md.convert(text)

    def _layout(self, name: str) -> Any:
        try:
            return self._env.get_template(f"{name}{_TEMPLATE_SUFFIX}")
        except TemplateNotFound as exc:
            raise LayoutNotFoundError(name) from exc

    def summary(self, post: Post) -> Markup:
        """First paragraph of the post, rendered."""
        first = _SUMMARY_SPLIT_RE.split(post.body.strip(), maxsplit=1)[0]
        return Markup(self.render_body(post.model_copy(update={"body": first})))

    def _page_context(self, post: Post) -> dict[str, Any]:
        return {
            **post.metadata.extra,
            "id": post.post_id,
            "title": post.title,
            "layout": post.layout,
            "tags": post.tags,
            "date": post.date,
            "url": self.url_for(self.permalink(post)),
        }

    def render_post(self, post: Post) -> RenderedPage:
        url = self.permalink(post)
        content = Markup(self.render_body(post))
        html = self._layout(post.layout).render(page=self._page_context(post), content=content)
        pages_rendered_total.add(1, {"kind": "post"})
        log.debug("post_rendered", post_id=post.post_id, url=url)
        return RenderedPage(url=url, output_path=output_path_for(url), html=html, kind="post")

    def _listing(self, posts: list[Post]) -> list[dict[str, Any]]:
        return [{**self._page_context(p), "summary": self.summary(p)} for p in posts]

    def render_index(self) -> RenderedPage:
        html = self._layout("index").render(
            page={"title": self._settings.site_title, "url": self.url_for(INDEX_URL)},
            posts=self._listing(self._collection.posts),
            tags=[name for name, _ in tag_pages(self._collection).values()],
        )
        pages_rendered_total.add(1, {"kind": "index"})
        return RenderedPage(
            url=INDEX_URL, output_path=output_path_for(INDEX_URL), html=html, kind="index"
        )

    def render_tag_page(self, tag: str, posts: list[Post]) -> RenderedPage:
        url = tag_url(tag)
        html = self._layout("tag").render(
            page={"title": f"Posts tagged {tag}", "url": self.url_for(url)},
            tag=tag,
            posts=self._listing(posts),
        )
        pages_rendered_total.add(1, {"kind": "tag"})
        return RenderedPage(url=url, output_path=output_path_for(url), html=html, kind="tag")

    def render_tag_pages(self) -> list[RenderedPage]:
        pages = tag_pages(self._collection).values()
        return [self.render_tag_page(name, posts) for name, posts in pages]

    def render_all(self) -> list[RenderedPage]:
        pages = [self.render_post(post) for post in self._collection]
        pages.append(self.render_index())
        pages.extend(self.render_tag_pages())
        return pages
