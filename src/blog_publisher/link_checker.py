"""Extract links from post bodies and check that they resolve."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Literal
from urllib.parse import unquote, urlparse

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from blog_publisher.config import Settings
from blog_publisher.markup import (
    HIGHLIGHT_RE,
    POST_URL_RE,
    heading_anchors,
    split_fenced,
)
from blog_publisher.models import Post
from blog_publisher.post_loader import PostCollection
from blog_publisher.urls import INDEX_URL, normalize_url, permalink_for, tag_url

log = structlog.get_logger()

_USER_AGENT = "blog-publisher-linkcheck/0.1"
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_CODE_SPAN_RE = re.compile(r"(`+)(?:(?!\1).)+?\1")
_INLINE_LINK_RE = re.compile(
    r"(?P<image>!?)\[(?:[^\[\]]|\[[^\]]*\])*\]"
    r"\(\s*<?(?P<target>[^)\s>]+)>?(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
_REFERENCE_DEF_RE = re.compile(r"^ {0,3}\[(?P<label>[^\]]+)\]:\s*<?(?P<target>[^\s>]+)>?")
_AUTOLINK_RE = re.compile(r"<(?P<target>(?:https?|mailto):[^\s>]+)>")
_PLACEHOLDER = "\x00post_url\x00"

LinkKind = Literal["inline", "image", "reference", "autolink", "post_url"]


class Link(BaseModel):
    """A link target found in a post body."""

    model_config = ConfigDict(frozen=True)
    target: str = Field(description="Link destination as written")
    line: int = Field(description="1-based line number within the body")
    kind: LinkKind


def is_external(target: str) -> bool:
    return target.startswith("//") or bool(_SCHEME_RE.match(target))


def extract_links(body: str) -> list[Link]:
    """Find links in prose, skipping fenced code, highlight blocks and code spans."""
    # Blank highlight blocks line-for-line so line numbers stay aligned
    text = HIGHLIGHT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), body)

    links: list[Link] = []
    lineno = 0
    for in_code, lines in split_fenced(text):
        for line in lines:
            lineno += 1
            if in_code:
                continue
            line = _CODE_SPAN_RE.sub(lambda m: " " * len(m.group(0)), line)

            for match in POST_URL_RE.finditer(line):
                links.append(Link(target=match["post_id"], line=lineno, kind="post_url"))
            line = POST_URL_RE.sub(_PLACEHOLDER, line)

            ref = _REFERENCE_DEF_RE.match(line)
            if ref:
                if _PLACEHOLDER not in ref["target"]:
                    links.append(Link(target=ref["target"], line=lineno, kind="reference"))
                continue

            for match in _INLINE_LINK_RE.finditer(line):
                if _PLACEHOLDER in match["target"]:
                    continue
                kind: LinkKind = "image" if match["image"] else "inline"
                links.append(Link(target=match["target"], line=lineno, kind=kind))
            for match in _AUTOLINK_RE.finditer(line):
                links.append(Link(target=match["target"], line=lineno, kind="autolink"))
    return links


class SiteIndex:
    """Everything an internal link may point at."""

    def __init__(self, collection: PostCollection, settings: Settings) -> None:
        self.site_root = settings.site_root.resolve()
        self.base_path = urlparse(settings.base_url).path.rstrip("/")
        self.post_ids = {p.post_id for p in collection}
        self.posts_by_url: dict[str, Post] = {
            normalize_url(permalink_for(p, settings.permalink)): p for p in collection
        }
        self.page_urls = {INDEX_URL} | {tag_url(t) for t in collection.tags()}
        self._anchor_cache: dict[str, set[str]] = {}

    def anchors(self, post: Post) -> set[str]:
        if post.post_id not in self._anchor_cache:
            self._anchor_cache[post.post_id] = heading_anchors(post.body)
        return self._anchor_cache[post.post_id]

    def file_exists(self, path: Path) -> bool:
        try:
            resolved = path.resolve()
        except OSError:
            return False
        return resolved.is_relative_to(self.site_root) and resolved.exists()

    def resolve_absolute(self, path: str, fragment: str) -> bool:
        if self.base_path and (path == self.base_path or path.startswith(self.base_path + "/")):
            path = path[len(self.base_path) :] or INDEX_URL
        url = normalize_url(path)
        post = self.posts_by_url.get(url)
        if post is not None:
            return not fragment or fragment in self.anchors(post)
        if url in self.page_urls:
            return True
        return self.file_exists(self.site_root / path.lstrip("/"))


def resolve_internal(link: Link, post: Post, site: SiteIndex) -> bool:
    """Return True when an internal *link* from *post* points at something real."""
    if link.kind == "post_url":
        return link.target in site.post_ids

    parsed = urlparse(link.target)
    path = unquote(parsed.path)
    fragment = unquote(parsed.fragment)

    if not path:
        return not fragment or fragment in site.anchors(post)
    if path.startswith("/"):
        return site.resolve_absolute(path, fragment)
    return site.file_exists(post.source_path.parent / path) or site.file_exists(
        site.site_root / path
    )


def http_target(link: Link) -> str | None:
    """The URL to request for an external link, or None if it is not HTTP(S)."""
    if link.kind == "post_url" or not is_external(link.target):
        return None
    url = "https:" + link.target if link.target.startswith("//") else link.target
    if not url.startswith(("http://", "https://")):
        return None
    return url.split("#", 1)[0]


async def check_external(
    urls: Iterable[str],
    *,
    timeout: float = 10.0,
    concurrency: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, int | str]:
    """Request each URL; result is the final status code or an error string.

    HEAD first, falling back to GET when HEAD answers with a status >= 400.
    """
    semaphore = asyncio.Semaphore(concurrency)
    unique = list(dict.fromkeys(urls))

    async with httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": _USER_AGENT},
        transport=transport,
    ) as client:

        async def _check(url: str) -> tuple[str, int | str]:
            async with semaphore:
                try:
                    resp = await client.head(url)
                    if resp.status_code >= 400:
                        resp = await client.get(url)
                    return url, resp.status_code
                except httpx.HTTPError as exc:
                    await log.adebug("external_link_failed", url=url, error=str(exc))
                    return url, f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__

        results = await asyncio.gather(*(_check(u) for u in unique))

    return dict(results)
