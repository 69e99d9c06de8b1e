"""Single-page text layout: header band, content band, footer band."""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

TRUNCATION_MARKER = "…"
HEADER_HEIGHT = 90
FOOTER_HEIGHT = 70
CONTENT_PADDING = 20


@dataclass(frozen=True)
class PageLayout:
    header: tuple[str, ...]
    body: tuple[str, ...]
    footer: tuple[str, ...]
    truncated: bool

    @property
    def lines(self) -> tuple[str, ...]:
        return self.header + self.body + self.footer


def wrap_paragraph(paragraph: str, width: int) -> list[str]:
    """Wrap one paragraph to *width* columns; long words are hard-split."""

    wrapped: list[str] = []
    for line in paragraph.split("\n"):
        wrapped.extend(
            textwrap.wrap(line, width=width, break_long_words=True, break_on_hyphens=False) or [""]
        )
    return wrapped


def wrap_paragraphs(paragraphs: Sequence[str], width: int) -> list[str]:
    lines: list[str] = []
    for index, paragraph in enumerate(paragraphs):
        if index:
            lines.append("")
        lines.extend(wrap_paragraph(paragraph, width))
    return lines


def content_capacity(page_height: int, line_height: int) -> int:
    usable = page_height - HEADER_HEIGHT - FOOTER_HEIGHT - 2 * CONTENT_PADDING
    return max(usable // line_height, 1)


def layout_page(
    paragraphs: Sequence[str],
    *,
    width: int,
    page_size: tuple[int, int],
    line_height: int,
    source_label: str,
    page_number: int = 1,
    attribution: str = "IntelliConvert",
    already_truncated: bool = False,
    now: datetime | None = None,
) -> PageLayout:
    body = wrap_paragraphs(paragraphs, width)
    capacity = content_capacity(page_size[1], line_height)
    truncated = already_truncated or len(body) > capacity
    if truncated:
        # The marker takes the last line of the band.
        body = body[: capacity - 1]
        while body and not body[-1]:
            body.pop()
        body.append(TRUNCATION_MARKER)

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M UTC")
    header = ("Converted preview (text extracted)", f"Source: {source_label.upper()} | Page {page_number}")
    footer = (f"Page {page_number} - Text extracted", f"{stamp} | {attribution}")
    return PageLayout(header=header, body=tuple(body), footer=footer, truncated=truncated)


__all__ = ["PageLayout", "TRUNCATION_MARKER", "layout_page", "wrap_paragraph", "wrap_paragraphs", "content_capacity"]
