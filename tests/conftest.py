"""Shared test constants, fixtures, and factory functions."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
from httpx import ASGITransport, AsyncClient

from blog_publisher.config import Settings
from blog_publisher.post_loader import PostCollection, load_posts
from blog_publisher.preview import create_app

# -- Constants --

SITE_TITLE = "Notes"

GIT_ALIASES_POST = """---
layout: post
title: Handy git aliases
tags: [git, tooling]
---

A few aliases I use every day.

## Logging

```
[alias]
    lg = log --graph --oneline
```

See the [GraphQL post]({% post_url 2019-03-02-graphql-validation %}) for something else.
"""

GRAPHQL_POST = """---
layout: post
title: Walking through a GraphQL validation rule
tags:
  - graphql
  - javascript
---

How the `NoUnusedFragments` rule works.

## The rule

{% highlight javascript %}
export function NoUnusedFragments(context) {
  return { OperationDefinition: () => [] };
}
{% endhighlight %}

Back to [the rule](#the-rule) or read the [GraphQL docs](https://graphql.org/learn/validation/).
"""

WINDOWS_SDK_POST = """---
layout: post
title: Windows SDK announcement
tags: windows sdk
---

The new SDK is out. Also see [git aliases](/2019/02/01/git-aliases.html).
"""

CONFERENCE_POST = """---
layout: post
title: Speaking at a conference
tags: [conference]
draft: true
---

Details soon.
"""

POSTS: dict[str, str] = {
    "2019-02-01-git-aliases.md": GIT_ALIASES_POST,
    "2019-03-02-graphql-validation.md": GRAPHQL_POST,
    "2019-04-10-windows-sdk.md": WINDOWS_SDK_POST,
    "2019-05-20-conference.md": CONFERENCE_POST,
}


# -- Factories --


def make_settings(site_root: Path, **overrides: Any) -> Settings:
    """Create a Settings instance rooted at *site_root*. Override any field."""
    defaults: dict[str, Any] = {"site_root": site_root, "site_title": SITE_TITLE}
    return Settings(**(defaults | overrides))  # type: ignore[arg-type]


def write_post(site_root: Path, name: str, text: str) -> Path:
    """Write a post file under ``_posts`` and return its path."""
    path = site_root / "_posts" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def make_post_text(body: str = "Body text.\n", **meta: Any) -> str:
    """Render front-matter plus *body*; keys with value None are omitted."""
    fields = {"layout": "post", "title": "A post"} | meta
    lines = ["---"]
    for key, value in fields.items():
        if value is None:
            continue
        lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n\n" + body


# -- Fixtures --


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A site tree with the sample posts."""
    for name, text in POSTS.items():
        write_post(tmp_path, name, text)
    return tmp_path


@pytest.fixture
def settings(site: Path) -> Settings:
    return make_settings(site)


@pytest.fixture
def collection(settings: Settings) -> PostCollection:
    return load_posts(settings.posts_path)


@pytest.fixture
async def client(settings: Settings) -> AsyncIterator[AsyncClient]:
    """AsyncClient wired to the preview app for the sample site."""
    app = create_app(settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
