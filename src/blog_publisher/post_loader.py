"""Discover and load blog posts (Markdown files with YAML front-matter)."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator
from pathlib import Path

import frontmatter  # type: ignore[import-untyped]
import structlog
import yaml
from pydantic import ValidationError

from blog_publisher.errors import PostParseError
from blog_publisher.models import Post, PostMetadata, parse_filename

log = structlog.get_logger()

POST_SUFFIXES = frozenset({".md", ".markdown", ".txt"})


class PostCollection:
    """Posts loaded from a directory, plus the files that failed to parse."""

    def __init__(self, posts: list[Post], errors: list[PostParseError] | None = None) -> None:
        by_id = sorted(posts, key=lambda p: p.post_id)
        self.posts: list[Post] = sorted(by_id, key=lambda p: p.date or dt.date.min, reverse=True)
        self.errors: list[PostParseError] = errors or []
        self._index = {p.post_id: p for p in self.posts}

    def __len__(self) -> int:
        return len(self.posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self.posts)

    def by_id(self, post_id: str) -> Post | None:
        return self._index.get(post_id)

    def by_tag(self) -> dict[str, list[Post]]:
        """Group posts by tag; tags keep their first-seen order."""
        groups: dict[str, list[Post]] = {}
        for post in self.posts:
            for tag in post.tags:
                groups.setdefault(tag, []).append(post)
        return groups

    def tags(self) -> list[str]:
        return list(self.by_tag())


def parse_post(path: Path) -> Post:
    """Parse one post file.

    Raises:
        PostParseError: If the file is unreadable, has no front-matter, or
            the front-matter has invalid fields.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PostParseError(path, f"cannot read file: {exc}") from exc

    try:
        parsed = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise PostParseError(path, f"invalid YAML front-matter: {exc}") from exc

    meta = parsed.metadata
    if not meta:
        raise PostParseError(path, "no YAML front-matter")

    try:
        metadata = PostMetadata.from_front_matter(meta)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise PostParseError(path, f"invalid front-matter: {problems}") from exc

    file_date, slug = parse_filename(path.stem)
    date = file_date or (metadata.date.date() if metadata.date else None)

    return Post(
        source_path=path,
        post_id=path.stem,
        slug=slug,
        date=date,
        metadata=metadata,
        body=parsed.content,
        front_matter=dict(meta),
    )


def load_posts(posts_dir: Path, *, include_drafts: bool = False) -> PostCollection:
    """Load every post under *posts_dir*, collecting per-file parse errors."""
    if not posts_dir.is_dir():
        raise PostParseError(posts_dir, "posts directory not found")

    posts: list[Post] = []
    errors: list[PostParseError] = []
    for path in sorted(posts_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in POST_SUFFIXES:
            continue
        try:
            post = parse_post(path)
        except PostParseError as exc:
            log.warning("post_parse_skipped", path=str(path), reason=exc.reason)
            errors.append(exc)
            continue
        if post.metadata.draft and not include_drafts:
            log.debug("post_draft_skipped", path=str(path))
            continue
        posts.append(post)

    log.info("posts_loaded", posts_dir=str(posts_dir), count=len(posts), errors=len(errors))
    return PostCollection(posts, errors)
