"""Default reference tokenizer for documents.

Recognizes two forms, one reference per match:

    ::file path/to/other.md            include another file
    ::file path/to/other.md 10-24      include a line range
    ![alt text](images/hero.png)       embed an image

A trailing ``!`` or ``?`` on the reference marks it required or optional.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

_FILE_DIRECTIVE = re.compile(
    r"^[ \t]*::file[ \t]+(?P<ref>\S+)(?:[ \t]+(?P<start>\d+)(?:-(?P<end>\d+))?)?[ \t]*$",
    re.MULTILINE,
)
_MARKDOWN_IMAGE = re.compile(r"!\[(?P<alt>[^\]]*)\]\((?P<ref>[^)\s]*)(?:\s+\"[^\"]*\")?\)")


class ReferenceToken(BaseModel):
    """A raw reference as written in the document."""

    raw: str
    line: int
    alt: str | None = None
    start_line: int | None = None
    end_line: int | None = None


def extract_references(text: str) -> list[ReferenceToken]:
    """Return reference tokens in document order."""
    found: list[tuple[int, ReferenceToken]] = []

    for m in _FILE_DIRECTIVE.finditer(text):
        start = int(m.group("start")) if m.group("start") else None
        end = int(m.group("end")) if m.group("end") else start
        found.append((m.start(), ReferenceToken(
            raw=m.group("ref"),
            line=_line_of(text, m.start()),
            start_line=start,
            end_line=end,
        )))

    for m in _MARKDOWN_IMAGE.finditer(text):
        found.append((m.start(), ReferenceToken(
            raw=m.group("ref"),
            line=_line_of(text, m.start()),
            alt=m.group("alt"),
        )))

    found.sort(key=lambda pair: pair[0])
    return [token for _, token in found]


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1
