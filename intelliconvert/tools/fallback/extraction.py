"""Bounded, failure-tolerant text extraction for the fallback renderer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...core.formats import FormatTag
from ...core.sanitizer import split_paragraphs
from ..backends.text import extract_text

_LOGGER = logging.getLogger("intelliconvert.fallback")

PLACEHOLDER = "No readable text could be extracted from this file."
MAX_PDF_PAGES = 3
# Worst-case UTF-8 width of one character.
BYTES_PER_CHARACTER = 4
_RAW_TEXT_SOURCES = {FormatTag.TEXT, FormatTag.HTML, FormatTag.DOC}


@dataclass(frozen=True)
class ExtractedContent:
    paragraphs: tuple[str, ...]
    truncated: bool = False
    degraded: bool = False


def clip_raw_text(data: bytes, text_budget: int) -> tuple[bytes, bool]:
    """Cut raw text bytes to what *text_budget* characters can need.

    The cut backs off to a UTF-8 character boundary so the prefix still decodes.
    """

    limit = text_budget * BYTES_PER_CHARACTER
    if len(data) <= limit:
        return data, False
    while limit and data[limit] & 0xC0 == 0x80:
        limit -= 1
    return data[:limit], True


def extract_preview(data: bytes, source_format: FormatTag, text_budget: int) -> ExtractedContent:
    """Return at most *text_budget* characters of paragraphs, or the placeholder."""

    clipped = False
    if source_format in _RAW_TEXT_SOURCES:
        data, clipped = clip_raw_text(data, text_budget)
    try:
        text = extract_text(data, source_format, max_pages=MAX_PDF_PAGES)
    except Exception as exc:  # noqa: BLE001 - unreadable input degrades to the placeholder
        _LOGGER.debug("Preview extraction from %s failed: %s", source_format.value, exc)
        text = ""

    truncated = clipped or len(text) > text_budget
    if truncated:
        text = text[:text_budget].rstrip()

    paragraphs = tuple(split_paragraphs(text))
    if not paragraphs:
        return ExtractedContent(paragraphs=(PLACEHOLDER,), degraded=True)
    return ExtractedContent(paragraphs=paragraphs, truncated=truncated)


__all__ = ["BYTES_PER_CHARACTER", "ExtractedContent", "PLACEHOLDER", "clip_raw_text", "extract_preview"]
