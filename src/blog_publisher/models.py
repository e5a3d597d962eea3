"""Pydantic models for blog posts and their front-matter."""

from __future__ import annotations

import datetime as dt
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATED_FILENAME_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})-(?P<slug>.+)$")
_TZ_GAP_RE = re.compile(r"\s+(?=[+-]\d{2}:?\d{2}$)")

# Front-matter keys with a dedicated PostMetadata field
KNOWN_FIELDS = frozenset({"layout", "title", "tags", "date", "permalink", "draft", "published"})


def parse_filename(stem: str) -> tuple[dt.date | None, str]:
    """Split a ``YYYY-MM-DD-slug`` stem into its date and slug.

    Stems without a valid date prefix return ``(None, stem)``.
    """
    match = DATED_FILENAME_RE.match(stem)
    if not match:
        return None, stem
    try:
        date = dt.date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError:
        return None, stem
    return date, match["slug"]


def normalize_tags(value: Any) -> list[str]:
    """Turn a YAML list or a space-separated string into an ordered tag set."""
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split()
    elif isinstance(value, list | tuple):
        items = list(value)
    else:
        raise ValueError(f"tags must be a list or a string, got {type(value).__name__}")

    tags: list[str] = []
    seen: set[str] = set()
    for item in items:
        if isinstance(item, dict | list):
            raise ValueError(f"tag entries must be scalars, got {type(item).__name__}")
        tag = str(item).strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


class PostMetadata(BaseModel):
    """Front-matter fields of a single post."""

    model_config = ConfigDict(frozen=True)

    layout: str = Field(default="", description="Name of the layout template")
    title: str = Field(default="", description="Post title")
    tags: list[str] = Field(default_factory=list, description="Ordered, de-duplicated tags")
    date: dt.datetime | None = Field(default=None, description="Publication timestamp")
    permalink: str | None = Field(default=None, description="Explicit URL overriding the pattern")
    draft: bool = Field(default=False, description="Excluded from builds unless drafts are on")
    extra: dict[str, Any] = Field(
        default_factory=dict, description="Front-matter keys without a dedicated field"
    )

    @field_validator("layout", "title", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, dict | list):
            raise ValueError(f"expected a string, got {type(v).__name__}")
        return str(v).strip()

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> dt.datetime | None:
        if v is None or isinstance(v, dt.datetime):
            return v
        if isinstance(v, dt.date):
            return dt.datetime.combine(v, dt.time())
        if isinstance(v, str):
            text = _TZ_GAP_RE.sub("", v.strip())
            try:
                return dt.datetime.fromisoformat(text)
            except ValueError as exc:
                raise ValueError(f"invalid date {v!r}") from exc
        raise ValueError(f"invalid date {v!r}")

    @classmethod
    def from_front_matter(cls, meta: dict[str, Any]) -> PostMetadata:
        """Build metadata from a raw front-matter mapping."""
        draft = bool(meta.get("draft", False)) or meta.get("published") is False
        return cls(
            layout=meta.get("layout"),
            title=meta.get("title"),
            tags=meta.get("tags"),
            date=meta.get("date"),
            permalink=meta.get("permalink"),
            draft=draft,
            extra={k: v for k, v in meta.items() if k not in KNOWN_FIELDS},
        )


class Post(BaseModel):
    """A single authored article: metadata plus a Markdown body."""

    model_config = ConfigDict(frozen=True)

    source_path: Path = Field(description="File the post was loaded from")
    post_id: str = Field(description="Filename stem, the identifier used by post_url")
    slug: str = Field(description="URL slug derived from the filename")
    date: dt.date | None = Field(default=None, description="Publication date")
    metadata: PostMetadata
    body: str = Field(description="Unrendered Markdown body")
    front_matter: dict[str, Any] = Field(
        default_factory=dict, description="Raw front-matter as written"
    )

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def layout(self) -> str:
        return self.metadata.layout

    @property
    def tags(self) -> list[str]:
        return self.metadata.tags

    @property
    def year(self) -> int | None:
        return self.date.year if self.date else None

    @property
    def month(self) -> int | None:
        return self.date.month if self.date else None

    @property
    def day(self) -> int | None:
        return self.date.day if self.date else None

    @property
    def sort_key(self) -> tuple[dt.date, str]:
        return (self.date or dt.date.min, self.post_id)
