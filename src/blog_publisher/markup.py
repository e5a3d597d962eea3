"""Markdown and Liquid text helpers shared by the link checker and the renderer."""

from __future__ import annotations

import re
from collections.abc import Callable

from markdown.extensions.toc import slugify as _toc_slugify

HIGHLIGHT_RE = re.compile(
    r"\{%-?\s*highlight\s+(?P<lang>[\w+#.-]+)[^%]*-?%\}\n?(?P<code>.*?)\{%-?\s*endhighlight\s*-?%\}",
    re.DOTALL,
)
POST_URL_RE = re.compile(r"\{%-?\s*post_url\s+(?P<post_id>[^\s%]+)\s*-?%\}")
_FENCE_OPEN_RE = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})")
_ATX_HEADING_RE = re.compile(r"^ {0,3}#{1,6}\s+(?P<text>.+?)\s*#*\s*$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)\s*$")
_INLINE_LINK_TEXT_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_EMPHASIS_RE = re.compile(r"[*_`]")


def slugify(value: str) -> str:
    """Slug used for heading anchors, tag URLs and new post filenames."""
    return _toc_slugify(value, "-")


def highlight_to_fences(text: str) -> str:
    """Rewrite ``{% highlight lang %}`` blocks as fenced code blocks."""

    def _fence(match: re.Match[str]) -> str:
        code = match["code"].rstrip("\n")
        return f"```{match['lang']}\n{code}\n```"

    return HIGHLIGHT_RE.sub(_fence, text)


def split_fenced(text: str) -> list[tuple[bool, list[str]]]:
    """Split *text* into runs of lines, flagging runs inside fenced code.

    Concatenating every run reproduces the original lines in order, so callers
    can keep track of line numbers.
    """
    runs: list[tuple[bool, list[str]]] = []
    current: list[str] = []
    fence: str | None = None

    for line in text.splitlines():
        if fence is None:
            match = _FENCE_OPEN_RE.match(line)
            if match:
                if current:
                    runs.append((False, current))
                current = [line]
                fence = match["fence"]
                continue
            current.append(line)
        else:
            current.append(line)
            stripped = line.strip()
            if stripped.startswith(fence) and set(stripped) == {fence[0]}:
                runs.append((True, current))
                current = []
                fence = None

    if current:
        runs.append((fence is not None, current))
    return runs


def replace_outside_code(
    text: str, pattern: re.Pattern[str], repl: Callable[[re.Match[str]], str]
) -> str:
    """Apply ``pattern.sub(repl, ...)`` only to lines outside fenced code."""
    out: list[str] = []
    for in_code, lines in split_fenced(text):
        chunk = "\n".join(lines)
        out.append(chunk if in_code else pattern.sub(repl, chunk))
    result = "\n".join(out)
    return result + "\n" if text.endswith("\n") else result


def _heading_text(raw: str) -> str:
    text = _INLINE_LINK_TEXT_RE.sub(r"\1", raw)
    return _EMPHASIS_RE.sub("", text).strip()


def heading_anchors(text: str) -> set[str]:
    """Anchors the table-of-contents extension assigns to headings in *text*.

    Repeated headings get ``_1``, ``_2`` suffixes the same way the extension
    de-duplicates ids.
    """
    anchors: set[str] = set()

    def _add(heading: str) -> None:
        base = slugify(_heading_text(heading))
        anchor = base
        n = 1
        while anchor in anchors:
            anchor = f"{base}_{n}"
            n += 1
        anchors.add(anchor)

    for in_code, lines in split_fenced(highlight_to_fences(text)):
        if in_code:
            continue
        previous = ""
        for line in lines:
            atx = _ATX_HEADING_RE.match(line)
            if atx:
                _add(atx["text"])
            elif previous.strip() and _SETEXT_RE.match(line) and not previous.lstrip().startswith(
                ("-", "*", ">", "|")
            ):
                _add(previous.strip())
            previous = line
    return anchors
