"""FastAPI app that renders posts on request for local preview."""

from __future__ import annotations

import datetime as dt
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from blog_publisher.config import Settings
from blog_publisher.errors import BlogPublisherError
from blog_publisher.linter import lint_posts
from blog_publisher.models import Post
from blog_publisher.post_loader import PostCollection, load_posts
from blog_publisher.renderer import Renderer
from blog_publisher.telemetry import init_telemetry, shutdown_telemetry
from blog_publisher.urls import TAGS_PREFIX, normalize_url, tag_pages

log = structlog.get_logger()

router = APIRouter()


class PostSummary(BaseModel):
    id: str
    title: str
    layout: str
    tags: list[str]
    date: dt.date | None
    url: str


class PostDetail(PostSummary):
    html: str


def _load(request: Request) -> tuple[Settings, PostCollection, Renderer]:
    settings: Settings = request.app.state.settings
    try:
        collection = load_posts(settings.posts_path, include_drafts=settings.include_drafts)
    except BlogPublisherError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return settings, collection, Renderer(settings, collection)


def _summary(post: Post, renderer: Renderer) -> PostSummary:
    return PostSummary(
        id=post.post_id,
        title=post.title,
        layout=post.layout,
        tags=post.tags,
        date=post.date,
        url=renderer.url_for(renderer.permalink(post)),
    )


def _html(render: Any) -> HTMLResponse:
    try:
        page = render()
    except BlogPublisherError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return HTMLResponse(page.html)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/posts")
async def list_posts(request: Request, tag: str | None = None) -> list[PostSummary]:
    _, collection, renderer = _load(request)
    posts = collection.posts
    if tag is not None:
        posts = [p for p in posts if tag.lower() in (t.lower() for t in p.tags)]
    return [_summary(p, renderer) for p in posts]


@router.get("/api/posts/{post_id}")
async def get_post(request: Request, post_id: str) -> PostDetail:
    _, collection, renderer = _load(request)
    post = collection.by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=f"post {post_id!r} not found")
    try:
        html = renderer.render_body(post)
    except BlogPublisherError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return PostDetail(**_summary(post, renderer).model_dump(), html=html)


@router.get("/api/lint")
async def lint(request: Request) -> dict[str, Any]:
    settings, collection, _ = _load(request)
    return lint_posts(collection, settings).to_dict()


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    _, _, renderer = _load(request)
    return _html(renderer.render_index)


@router.get("/tags/{tag}/", response_class=HTMLResponse)
async def tag_page(request: Request, tag: str) -> HTMLResponse:
    _, collection, renderer = _load(request)
    page = tag_pages(collection).get(f"{TAGS_PREFIX}{tag}/")
    if page is None:
        raise HTTPException(status_code=404, detail=f"tag {tag!r} not found")
    name, posts = page
    return _html(lambda: renderer.render_tag_page(name, posts))


@router.get("/{path:path}", response_class=HTMLResponse)
async def post_page(request: Request, path: str) -> HTMLResponse:
    _, collection, renderer = _load(request)
    url = normalize_url("/" + path)
    for post in collection:
        if normalize_url(renderer.permalink(post)) == url:
            return _html(lambda: renderer.render_post(post))
    raise HTTPException(status_code=404, detail=f"no page at /{path}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the preview app; settings default to the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        init_telemetry()
        if getattr(app.state, "settings", None) is None:
            app.state.settings = Settings()
        await log.ainfo("preview_started", posts_dir=str(app.state.settings.posts_path))
        yield
        await log.ainfo("preview_stopped")
        shutdown_telemetry()

    app = FastAPI(title="Blog Preview", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(router)
    return app
