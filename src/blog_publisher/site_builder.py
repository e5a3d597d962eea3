"""Build the static site: load, lint, render, write."""

from __future__ import annotations

import shutil
import time
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from blog_publisher.config import Settings
from blog_publisher.errors import BlogPublisherError, SiteBuildError
from blog_publisher.linter import LintReport, lint_posts
from blog_publisher.metrics import build_duration, builds_total
from blog_publisher.post_loader import load_posts
from blog_publisher.renderer import RenderedPage, Renderer
from blog_publisher.telemetry import get_tracer

log = structlog.get_logger()
_tracer = get_tracer(__name__)


class BuildResult(BaseModel):
    """Outcome of a successful build."""

    model_config = ConfigDict(frozen=True)
    output_dir: Path
    pages: list[str] = Field(description="Output paths written, relative to output_dir")
    report: LintReport
    duration: float = Field(description="Wall-clock seconds")


def _clean(output: Path, settings: Settings) -> None:
    """Empty the output directory, refusing to touch the source tree itself."""
    resolved = output.resolve()
    root = settings.site_root.resolve()
    if resolved == root or root.is_relative_to(resolved):
        raise BlogPublisherError(f"refusing to clean {output}: it contains the site root")
    if output.is_dir():
        shutil.rmtree(output)


def write_pages(pages: list[RenderedPage], output: Path) -> list[str]:
    """Write *pages* under *output*.

    Raises:
        BlogPublisherError: If any page would land outside *output*. Nothing
            is written in that case.
    """
    root = output.resolve()
    for page in pages:
        if not (output / page.output_path).resolve().is_relative_to(root):
            raise BlogPublisherError(f"refusing to write {page.url}: outside {output}")

    written: list[str] = []
    for page in pages:
        target = output / page.output_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(page.html, encoding="utf-8")
        written.append(page.output_path)
    return written


def build_site(settings: Settings, *, strict: bool = True) -> BuildResult:
    """Render every post, the index and tag pages into ``settings.output_path``.

    Raises:
        SiteBuildError: If *strict* and linting found errors. Nothing is
            written in that case.
    """
    start = time.monotonic()
    output = settings.output_path
    outcome = "error"
    try:
        with _tracer.start_as_current_span("build_site") as span:
            with _tracer.start_as_current_span("load_posts"):
                collection = load_posts(
                    settings.posts_path, include_drafts=settings.include_drafts
                )

            report = lint_posts(collection, settings)
            if strict and not report.ok:
                outcome = "refused"
                raise SiteBuildError(report)

            with _tracer.start_as_current_span("render"):
                pages = Renderer(settings, collection).render_all()

            with _tracer.start_as_current_span("write"):
                if settings.clean_output:
                    _clean(output, settings)
                output.mkdir(parents=True, exist_ok=True)
                written = write_pages(pages, output)
                if settings.static_path.is_dir():
                    shutil.copytree(
                        settings.static_path,
                        output / settings.static_path.name,
                        dirs_exist_ok=True,
                    )

            span.set_attribute("build.pages", len(written))
            outcome = "success"
    finally:
        builds_total.add(1, {"outcome": outcome})
        build_duration.record(time.monotonic() - start, {"outcome": outcome})

    duration = time.monotonic() - start
    log.info("site_built", output=str(output), pages=len(written), duration=round(duration, 3))
    return BuildResult(output_dir=output, pages=written, report=report, duration=duration)
