from __future__ import annotations

import io
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from PIL import Image

from intelliconvert.core.formats import FormatTag, detect_image_format
from intelliconvert.tools.fallback import (
    PLACEHOLDER,
    TRUNCATION_MARKER,
    FallbackRenderer,
    extract_preview,
    layout_page,
)
from intelliconvert.tools.fallback import extraction
from intelliconvert.tools.fallback.layout import content_capacity, wrap_paragraph


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_unreadable_input_renders_the_placeholder(settings) -> None:
    page = FallbackRenderer(settings).render(b"%PDF-1.4 broken beyond repair", FormatTag.PDF)

    assert page.degraded
    assert not page.truncated
    image = _open(page.image_bytes)
    assert image.format == "PNG"
    assert image.size == (800, 1000)


def test_text_pdf_is_not_degraded(settings, text_pdf: bytes) -> None:
    content = extract_preview(text_pdf, FormatTag.PDF, settings.text_budget)
    assert not content.degraded
    assert "Hello pipeline" in " ".join(content.paragraphs)

    page = FallbackRenderer(settings).render(text_pdf, FormatTag.PDF)
    assert not page.degraded


def test_image_sources_have_no_text(png_bytes: bytes) -> None:
    content = extract_preview(png_bytes, FormatTag.IMAGE, 3000)
    assert content.paragraphs == (PLACEHOLDER,)
    assert content.degraded


def test_preview_respects_the_text_budget() -> None:
    content = extract_preview(("word " * 2000).encode("utf-8"), FormatTag.TEXT, 100)
    assert content.truncated
    assert sum(len(paragraph) for paragraph in content.paragraphs) <= 100


def test_long_content_is_cut_with_a_marker() -> None:
    paragraphs = [f"Paragraph number {index} with a little text." for index in range(60)]
    layout = layout_page(
        paragraphs,
        width=80,
        page_size=(800, 1000),
        line_height=18,
        source_label="pdf",
    )

    assert layout.truncated
    assert layout.body[-1] == TRUNCATION_MARKER
    assert len(layout.body) <= content_capacity(1000, 18)


def test_over_budget_text_is_marked_even_when_it_fits() -> None:
    layout = layout_page(
        ["short"],
        width=80,
        page_size=(800, 1000),
        line_height=18,
        source_label="text",
        already_truncated=True,
    )
    assert layout.body == ("short", TRUNCATION_MARKER)


def test_header_and_footer_describe_the_source() -> None:
    now = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    layout = layout_page(
        ["body"],
        width=80,
        page_size=(800, 1000),
        line_height=18,
        source_label="docx",
        page_number=2,
        attribution="Tests",
        now=now,
    )

    assert layout.header == ("Converted preview (text extracted)", "Source: DOCX | Page 2")
    assert layout.footer == ("Page 2 - Text extracted", "2024-05-01 12:30 UTC | Tests")
    assert not layout.truncated


def test_words_longer_than_the_line_are_split() -> None:
    lines = wrap_paragraph("x" * 25, 10)
    assert lines == ["x" * 10, "x" * 10, "x" * 5]


def test_jpeg_output_and_custom_page_size(settings) -> None:
    small = replace(settings, page_size=(400, 500))
    page = FallbackRenderer(small).render(b"Plain words for the preview.", FormatTag.TEXT, image_format="jpeg")

    assert detect_image_format(page.image_bytes) == "jpeg"
    assert _open(page.image_bytes).size == (400, 500)


@pytest.mark.parametrize("source_format", [FormatTag.TEXT, FormatTag.HTML, FormatTag.DOC])
def test_raw_text_sources_are_read_only_up_to_the_budget(monkeypatch, source_format) -> None:
    seen: list[int] = []

    def recording_extract_text(data, fmt, *, max_pages=None):
        seen.append(len(data))
        return data.decode("latin-1")

    monkeypatch.setattr(extraction, "extract_text", recording_extract_text)

    content = extract_preview(b"a" * 5_000_000, source_format, 100)

    assert seen == [100 * extraction.BYTES_PER_CHARACTER]
    assert content.truncated


def test_clipping_keeps_multibyte_characters_whole() -> None:
    data = ("€" * 300).encode("utf-8")

    clipped, was_clipped = extraction.clip_raw_text(data, 101)

    assert was_clipped
    assert clipped.decode("utf-8") == "€" * 134


def test_short_raw_text_is_not_clipped() -> None:
    content = extract_preview(b"Only a few words.", FormatTag.TEXT, 100)
    assert content.paragraphs == ("Only a few words.",)
    assert not content.truncated


def test_truncated_page_never_exceeds_its_capacity() -> None:
    capacity = content_capacity(1000, 18)
    paragraphs = ["\n".join(f"line {index}" for index in range(capacity))]

    layout = layout_page(
        paragraphs,
        width=80,
        page_size=(800, 1000),
        line_height=18,
        source_label="text",
        already_truncated=True,
    )

    assert len(layout.body) == capacity
    assert layout.body[-1] == TRUNCATION_MARKER
    assert layout.body[-2] == f"line {capacity - 2}"
