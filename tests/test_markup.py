"""Tests for Markdown/Liquid helpers and URL layout."""

import datetime as dt
from pathlib import Path

from blog_publisher.markup import (
    POST_URL_RE,
    heading_anchors,
    highlight_to_fences,
    replace_outside_code,
    slugify,
    split_fenced,
)
from blog_publisher.models import Post, PostMetadata
from blog_publisher.urls import (
    has_dot_segment,
    normalize_url,
    output_path_for,
    permalink_for,
    tag_pages,
    tag_url,
)

PATTERN = "/:year/:month/:day/:slug.html"


def _post(post_id: str = "2019-02-01-git-aliases", **meta: object) -> Post:
    return Post(
        source_path=Path(f"_posts/{post_id}.md"),
        post_id=post_id,
        slug=post_id[11:] if post_id[:4].isdigit() else post_id,
        date=dt.date(2019, 2, 1) if post_id[:4].isdigit() else None,
        metadata=PostMetadata(**{"layout": "post", "title": "Git Aliases!"} | meta),
        body="",
    )


def test_slugify() -> None:
    assert slugify("Walking through a GraphQL rule!") == "walking-through-a-graphql-rule"


def test_highlight_to_fences() -> None:
    text = "Before\n{% highlight js linenos %}\nconst a = 1;\n{% endhighlight %}\nAfter\n"
    assert highlight_to_fences(text) == "Before\n```js\nconst a = 1;\n```\nAfter\n"


def test_split_fenced_flags_code_runs() -> None:
    text = "intro\n```python\nx = 1\n```\noutro"
    runs = split_fenced(text)
    assert runs == [
        (False, ["intro"]),
        (True, ["```python", "x = 1", "```"]),
        (False, ["outro"]),
    ]


def test_split_fenced_unclosed_fence_is_code() -> None:
    runs = split_fenced("a\n~~~\nnever closed")
    assert runs[-1] == (True, ["~~~", "never closed"])


def test_replace_outside_code_skips_fences() -> None:
    text = "{% post_url a %}\n```\n{% post_url a %}\n```\n"
    out = replace_outside_code(text, POST_URL_RE, lambda m: "/a.html")
    assert out == "/a.html\n```\n{% post_url a %}\n```\n"


def test_heading_anchors_atx_setext_and_duplicates() -> None:
    text = (
        "# Intro\n\n## The *rule*\n\nSetext Heading\n--------------\n\n"
        "## Intro\n\n```\n# not a heading\n```\n"
    )
    assert heading_anchors(text) == {"intro", "the-rule", "setext-heading", "intro_1"}


def test_heading_anchors_ignores_highlight_blocks() -> None:
    text = "{% highlight bash %}\n# comment\n{% endhighlight %}\n"
    assert heading_anchors(text) == set()


def test_permalink_from_pattern() -> None:
    assert permalink_for(_post(), PATTERN) == "/2019/02/01/git-aliases.html"


def test_permalink_title_token() -> None:
    assert permalink_for(_post(), "/blog/:title/") == "/blog/git-aliases/"


def test_permalink_front_matter_wins() -> None:
    assert permalink_for(_post(permalink="about/"), PATTERN) == "/about/"


def test_permalink_undated_post_collapses_segments() -> None:
    assert permalink_for(_post("about"), PATTERN) == "/about.html"


def test_tag_url_and_output_paths() -> None:
    assert tag_url("Windows SDK") == "/tags/windows-sdk/"
    assert output_path_for("/") == "index.html"
    assert output_path_for("/tags/git/") == "tags/git/index.html"
    assert output_path_for("/2019/02/01/a.html") == "2019/02/01/a.html"


def test_normalize_url() -> None:
    assert normalize_url("/index.html") == "/"
    assert normalize_url("/tags/git/index.html") == "/tags/git/"
    assert normalize_url("/a.html") == "/a.html"


def test_has_dot_segment() -> None:
    assert has_dot_segment("/../../escaped.html")
    assert has_dot_segment("/a/./b.html")
    assert not has_dot_segment("/2019/02/01/git-aliases.html")
    assert not has_dot_segment("/notes/v1..2/")


def test_tag_pages_merge_colliding_slugs() -> None:
    older = _post(tags=["C"])
    newer = _post("2019-03-01-sharp", tags=["C#", "dotnet", "c"])
    pages = tag_pages([newer, older])
    assert list(pages) == ["/tags/c/", "/tags/dotnet/"]
    name, posts = pages["/tags/c/"]
    assert name == "C#"
    assert [p.post_id for p in posts] == ["2019-03-01-sharp", "2019-02-01-git-aliases"]
