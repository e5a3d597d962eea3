"""Lint posts against the front-matter contract and check their links."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from blog_publisher import link_checker
from blog_publisher.config import Settings
from blog_publisher.link_checker import SiteIndex, extract_links, is_external, resolve_internal
from blog_publisher.metrics import lint_issues_total
from blog_publisher.models import DATED_FILENAME_RE, Post, normalize_tags, parse_filename
from blog_publisher.post_loader import PostCollection
from blog_publisher.renderer import available_layouts
from blog_publisher.telemetry import get_tracer
from blog_publisher.urls import (
    INDEX_URL,
    has_dot_segment,
    output_path_for,
    permalink_for,
    tag_pages,
)

log = structlog.get_logger()
_tracer = get_tracer(__name__)

Severity = Literal["error", "warning"]

RULES: dict[str, Severity] = {
    "parse-error": "error",
    "missing-title": "error",
    "missing-layout": "error",
    "unknown-layout": "error",
    "filename-date": "warning",
    "date-mismatch": "warning",
    "duplicate-tag": "warning",
    "duplicate-permalink": "error",
    "unsafe-permalink": "error",
    "empty-body": "warning",
    "broken-link": "error",
    "external-link": "warning",
}


class LintIssue(BaseModel):
    """A single problem found in a post."""

    model_config = ConfigDict(frozen=True)
    path: str = Field(description="Post file the issue belongs to")
    line: int | None = Field(default=None, description="1-based body line, when known")
    rule: str = Field(description="Rule identifier, e.g. 'missing-title'")
    severity: Severity
    message: str

    def format(self) -> str:
        location = f"{self.path}:{self.line}" if self.line is not None else self.path
        return f"{location}: {self.severity} [{self.rule}] {self.message}"


class LintReport(BaseModel):
    """All issues found across a post collection."""

    issues: list[LintIssue] = Field(default_factory=list)
    posts_checked: int = 0

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == "warning")

    @property
    def ok(self) -> bool:
        return self.error_count == 0

    def format_text(self) -> str:
        lines = [issue.format() for issue in self.issues]
        lines.append(
            f"{self.posts_checked} post(s) checked: "
            f"{self.error_count} error(s), {self.warning_count} warning(s)"
        )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "posts_checked": self.posts_checked,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "issues": [i.model_dump() for i in self.issues],
        }


class _Collector:
    def __init__(self, disabled: frozenset[str]) -> None:
        self.disabled = disabled
        self.issues: list[LintIssue] = []

    def add(self, path: Path | str, rule: str, message: str, line: int | None = None) -> None:
        if rule in self.disabled:
            return
        self.issues.append(
            LintIssue(path=str(path), line=line, rule=rule, severity=RULES[rule], message=message)
        )


def _raw_duplicate_tags(raw: Any) -> list[str]:
    if isinstance(raw, str):
        items = raw.split()
    elif isinstance(raw, list | tuple):
        items = [str(t).strip() for t in raw]
    else:
        return []
    counts = Counter(t.lower() for t in items if t)
    return [tag for tag in normalize_tags(items) if counts[tag.lower()] > 1]


def _lint_post(
    post: Post,
    out: _Collector,
    site: SiteIndex,
    layout_exists: Callable[[str], bool],
) -> None:
    path = post.source_path
    meta = post.metadata

    if not meta.title:
        out.add(path, "missing-title", "front-matter 'title' is missing or empty")
    if not meta.layout:
        out.add(path, "missing-layout", "front-matter 'layout' is missing or empty")
    elif not layout_exists(meta.layout):
        out.add(path, "unknown-layout", f"no template for layout {meta.layout!r}")

    file_date, _ = parse_filename(path.stem)
    if file_date is None:
        if DATED_FILENAME_RE.match(path.stem):
            out.add(path, "filename-date", f"filename date in {path.name!r} is not a real date")
        else:
            out.add(path, "filename-date", f"filename {path.name!r} lacks a YYYY-MM-DD- prefix")
    elif meta.date is not None and meta.date.date() != file_date:
        out.add(
            path,
            "date-mismatch",
            f"front-matter date {meta.date.date()} differs from filename date {file_date}",
        )

    for tag in _raw_duplicate_tags(post.front_matter.get("tags")):
        out.add(path, "duplicate-tag", f"tag {tag!r} is listed more than once")

    if not post.body.strip():
        out.add(path, "empty-body", "post has no content")

    for link in extract_links(post.body):
        if link.kind != "post_url" and is_external(link.target):
            continue
        if not resolve_internal(link, post, site):
            out.add(path, "broken-link", f"link target {link.target!r} does not resolve", link.line)


def _lint_local(
    collection: PostCollection,
    settings: Settings,
    layout_exists: Callable[[str], bool] | None,
) -> _Collector:
    out = _Collector(settings.disabled_rule_set)
    if layout_exists is None:
        layouts = available_layouts(settings)
        layout_exists = layouts.__contains__

    for error in collection.errors:
        out.add(error.path, "parse-error", error.reason)

    site = SiteIndex(collection, settings)
    # Keyed on the written file, so /a/ and /a/index.html collide
    owners = {output_path_for(INDEX_URL): "the index page"}
    for url in tag_pages(collection):
        owners[output_path_for(url)] = f"the tag page {url}"

    for post in collection:
        _lint_post(post, out, site, layout_exists)
        url = permalink_for(post, settings.permalink)
        if has_dot_segment(url):
            out.add(
                post.source_path,
                "unsafe-permalink",
                f"URL {url} has a '.' or '..' segment and would escape the output directory",
            )
            continue
        target = output_path_for(url)
        if target in owners:
            out.add(
                post.source_path,
                "duplicate-permalink",
                f"URL {url} writes {target}, which is also produced by {owners[target]}",
            )
        else:
            owners[target] = post.source_path.name
    return out


async def lint_external(
    collection: PostCollection,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[LintIssue]:
    """Request every external link and report the ones that fail."""
    out = _Collector(settings.disabled_rule_set)
    if "external-link" in out.disabled:
        return []

    sources: dict[str, list[tuple[Post, int]]] = {}
    for post in collection:
        for link in extract_links(post.body):
            url = link_checker.http_target(link)
            if url:
                sources.setdefault(url, []).append((post, link.line))

    results = await link_checker.check_external(
        sources,
        timeout=settings.external_timeout,
        concurrency=settings.external_concurrency,
        transport=transport,
    )
    for url, status in results.items():
        if isinstance(status, int) and status < 400:
            continue
        detail = f"HTTP {status}" if isinstance(status, int) else status
        for post, line in sources[url]:
            out.add(post.source_path, "external-link", f"{url} failed: {detail}", line)
    await log.ainfo("external_links_checked", urls=len(results), failed=len(out.issues))
    return out.issues


def lint_posts(
    collection: PostCollection,
    settings: Settings,
    *,
    check_external: bool = False,
    layout_exists: Callable[[str], bool] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LintReport:
    """Run every enabled rule over *collection*.

    External links are only requested when *check_external* is set; this
    runs its own event loop, so async callers use :func:`lint_external`.
    """
    with _tracer.start_as_current_span("lint_posts") as span:
        out = _lint_local(collection, settings, layout_exists)
        issues = out.issues
        if check_external:
            issues += asyncio.run(lint_external(collection, settings, transport=transport))

        report = LintReport(issues=issues, posts_checked=len(collection))
        span.set_attribute("lint.posts", report.posts_checked)
        span.set_attribute("lint.errors", report.error_count)

    for issue in report.issues:
        lint_issues_total.add(1, {"rule": issue.rule, "severity": issue.severity})
    log.info(
        "posts_linted",
        posts=report.posts_checked,
        errors=report.error_count,
        warnings=report.warning_count,
    )
    return report
