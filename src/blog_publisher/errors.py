"""Exceptions raised by the blog tooling."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blog_publisher.linter import LintReport


class BlogPublisherError(Exception):
    """Base class for all domain errors."""


class PostParseError(BlogPublisherError):
    """Raised when a post file cannot be turned into a Post."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class LayoutNotFoundError(BlogPublisherError):
    """Raised when a post names a layout with no matching template."""

    def __init__(self, layout: str) -> None:
        super().__init__(f"layout not found: {layout!r}")
        self.layout = layout


class RenderError(BlogPublisherError):
    """Raised when a post body cannot be rendered."""


class SiteBuildError(BlogPublisherError):
    """Raised when a strict build is refused because lint found errors."""

    def __init__(self, report: LintReport) -> None:
        super().__init__(f"build refused: {report.error_count} lint error(s)")
        self.report = report
