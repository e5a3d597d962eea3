"""Command-line entrypoint: lint, build, scaffold and preview posts."""

from __future__ import annotations

import argparse
import datetime as dt
import json
import sys
from collections.abc import Sequence
from pathlib import Path

import frontmatter  # type: ignore[import-untyped]
import structlog
from pydantic import ValidationError

from blog_publisher.config import Settings
from blog_publisher.errors import BlogPublisherError, SiteBuildError
from blog_publisher.linter import lint_posts
from blog_publisher.markup import slugify
from blog_publisher.post_loader import load_posts
from blog_publisher.site_builder import build_site
from blog_publisher.telemetry import configure_logging, init_telemetry, shutdown_telemetry
from blog_publisher.urls import permalink_for

log = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _cmd_lint(args: argparse.Namespace, settings: Settings) -> int:
    collection = load_posts(settings.posts_path, include_drafts=settings.include_drafts)
    report = lint_posts(collection, settings, check_external=args.external)
    if args.format == "json":
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(report.format_text())
    return EXIT_OK if report.ok else EXIT_FAILED


def _cmd_build(args: argparse.Namespace, settings: Settings) -> int:
    try:
        result = build_site(settings, strict=not args.no_strict)
    except SiteBuildError as exc:
        print(exc.report.format_text(), file=sys.stderr)
        log.error("build_refused", errors=exc.report.error_count)
        return EXIT_FAILED
    print(f"Wrote {len(result.pages)} page(s) to {result.output_dir}")
    return EXIT_OK


def _cmd_new(args: argparse.Namespace, settings: Settings) -> int:
    try:
        date = dt.date.fromisoformat(args.date) if args.date else dt.date.today()
    except ValueError:
        log.error("new_post_rejected", date=args.date, reason="date must be YYYY-MM-DD")
        return EXIT_FAILED
    slug = slugify(args.title)
    if not slug:
        log.error("new_post_rejected", title=args.title, reason="title produces an empty slug")
        return EXIT_FAILED

    path = settings.posts_path / f"{date.isoformat()}-{slug}.md"
    if path.exists():
        log.error("new_post_rejected", path=str(path), reason="file already exists")
        return EXIT_FAILED

    post = frontmatter.Post(
        "\n",
        layout=args.layout or settings.default_layout,
        title=args.title,
        tags=args.tags or [],
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(frontmatter.dumps(post, sort_keys=False) + "\n", encoding="utf-8")
    log.info("post_created", path=str(path))
    print(path)
    return EXIT_OK


def _cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    collection = load_posts(settings.posts_path, include_drafts=settings.include_drafts)
    for post in collection:
        if args.tag and args.tag.lower() not in (t.lower() for t in post.tags):
            continue
        date = post.date.isoformat() if post.date else "-" * 10
        line = f"{date}  {post.title or post.post_id}  {permalink_for(post, settings.permalink)}"
        if post.tags:
            line += f"  [{', '.join(post.tags)}]"
        print(line)
    return EXIT_OK


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from blog_publisher.preview import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level,
    )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blog-publisher", description="Lint, build and preview a Markdown blog."
    )
    parser.add_argument("--root", type=Path, help="Site source root (default: BLOG_SITE_ROOT)")
    sub = parser.add_subparsers(dest="command", required=True)

    lint = sub.add_parser("lint", help="Check posts for front-matter and link problems")
    lint.add_argument("--external", action="store_true", help="Also request external links")
    lint.add_argument("--format", choices=["text", "json"], default="text")
    lint.set_defaults(func=_cmd_lint)

    build = sub.add_parser("build", help="Render the site into the output directory")
    build.add_argument("--no-strict", action="store_true", help="Build even with lint errors")
    build.add_argument("--output", type=Path, help="Output directory (default: BLOG_OUTPUT_DIR)")
    build.set_defaults(func=_cmd_build)

    new = sub.add_parser("new", help="Create a new post with front-matter")
    new.add_argument("title")
    new.add_argument("--tags", nargs="*", default=[])
    new.add_argument("--layout")
    new.add_argument("--date", help="Publication date, YYYY-MM-DD (default: today)")
    new.set_defaults(func=_cmd_new)

    listing = sub.add_parser("list", help="List posts, newest first")
    listing.add_argument("--tag")
    listing.set_defaults(func=_cmd_list)

    serve = sub.add_parser("serve", help="Run the live preview server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.set_defaults(func=_cmd_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    overrides: dict[str, object] = {}
    if args.root is not None:
        overrides["site_root"] = args.root
    if getattr(args, "output", None) is not None:
        overrides["output_dir"] = args.output
    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        configure_logging()
        log.error("invalid_settings", errors=exc.errors(include_url=False))
        return EXIT_CONFIG

    configure_logging(settings.log_level)
    init_telemetry()
    try:
        return int(args.func(args, settings))
    except BlogPublisherError as exc:
        log.error("command_failed", command=args.command, error=str(exc))
        return EXIT_FAILED
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    sys.exit(main())
