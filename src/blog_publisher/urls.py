"""URL layout of the generated site: permalinks, tag pages and output paths."""

from __future__ import annotations

from collections.abc import Iterable

from blog_publisher.markup import slugify
from blog_publisher.models import Post

INDEX_URL = "/"
TAGS_PREFIX = "/tags/"


def permalink_for(post: Post, pattern: str) -> str:
    """Expand a Jekyll-style permalink pattern for *post*.

    An explicit ``permalink`` in the front-matter takes precedence.
    """
    if post.metadata.permalink:
        url = post.metadata.permalink
        return url if url.startswith("/") else "/" + url

    date = post.date
    replacements = {
        ":year": f"{date.year:04d}" if date else "",
        ":month": f"{date.month:02d}" if date else "",
        ":day": f"{date.day:02d}" if date else "",
        ":slug": post.slug,
        ":title": slugify(post.title) or post.slug,
    }
    url = pattern
    for token, value in replacements.items():
        url = url.replace(token, value)
    # Undated posts leave empty path segments behind
    while "//" in url:
        url = url.replace("//", "/")
    return url


def has_dot_segment(url: str) -> bool:
    """True when *url* has a ``.`` or ``..`` path segment."""
    return any(part in (".", "..") for part in url.split("/"))


def tag_url(tag: str) -> str:
    return f"{TAGS_PREFIX}{slugify(tag) or tag.lower()}/"


def tag_pages(posts: Iterable[Post]) -> dict[str, tuple[str, list[Post]]]:
    """Group posts by tag page URL.

    Tags whose slugs collide (``C#`` and ``C``) share one page, named after
    the first spelling seen. Posts keep the order of *posts*.
    """
    pages: dict[str, tuple[str, list[Post]]] = {}
    for post in posts:
        for tag in post.tags:
            _, group = pages.setdefault(tag_url(tag), (tag, []))
            if not group or group[-1] is not post:
                group.append(post)
    return pages


def output_path_for(url: str) -> str:
    """Relative file path a URL is written to under the output directory."""
    path = url.lstrip("/")
    if not path or path.endswith("/"):
        return path + "index.html"
    return path


def normalize_url(url: str) -> str:
    """Map equivalent spellings of a page URL onto one key."""
    if url.endswith("/index.html"):
        url = url[: -len("index.html")]
    return url or INDEX_URL
