"""Word-processing document builders based on python-docx."""

from __future__ import annotations

import io
from datetime import datetime

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt
from PIL import Image

from ...core.formats import FormatTag, detect_image_format
from ...core.sanitizer import extract_title, split_paragraphs
from ...core.utils import get_logger
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_BUILTIN, register_backend
from .text import extract_text

LOGGER = get_logger("intelliconvert.backends.docx")

# python-docx embeds these encodings as-is; anything else is converted to PNG.
_EMBEDDABLE_IMAGES = {"png", "jpeg", "gif", "bmp", "tiff"}


def build_text_document(
    text: str,
    *,
    title: str | None = None,
    original_filename: str | None = None,
    attribution: str = "IntelliConvert",
) -> bytes:
    """Create a DOCX document holding *text* split into paragraphs.

    When no *title* is given a short leading line of *text* is promoted to the
    document heading.
    """

    body = text
    if not title:
        title, body = extract_title(text)

    document = Document()
    style = document.styles["Normal"]
    style.font.size = Pt(11)

    if title:
        document.add_heading(title, level=1)
    if original_filename:
        origin = document.add_paragraph()
        run = origin.add_run(f"Original file: {original_filename}")
        run.italic = True
        run.font.size = Pt(9)

    for paragraph in split_paragraphs(body):
        document.add_paragraph(paragraph)

    footer = document.sections[0].footer.paragraphs[0]
    footer.text = f"Converted by {attribution} on {datetime.now().strftime('%Y-%m-%d')}"
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_image_document(data: bytes, *, title: str | None = None, attribution: str = "IntelliConvert") -> bytes:
    image_format = detect_image_format(data)
    if image_format not in _EMBEDDABLE_IMAGES:
        with Image.open(io.BytesIO(data)) as image:
            converted = io.BytesIO()
            image.convert("RGBA").save(converted, format="PNG")
        data = converted.getvalue()

    document = Document()
    if title:
        document.add_heading(title, level=1)
    document.add_picture(io.BytesIO(data), width=Inches(6))
    footer = document.sections[0].footer.paragraphs[0]
    footer.text = f"Converted by {attribution} on {datetime.now().strftime('%Y-%m-%d')}"

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@register_backend(
    "docx-builder",
    pairs=[
        ("text", "docx"),
        ("text", "doc"),
        ("pdf", "docx"),
        ("pdf", "doc"),
        ("html", "docx"),
        ("doc", "docx"),
        ("docx", "doc"),
    ],
    priority=PRIORITY_BUILTIN,
)
class DocxBuilderBackend(ConverterBackend):
    """Build an OOXML document from the sanitised text of the input.

    Requests for legacy ``doc`` output are served with OOXML bytes as well;
    word processors open both and the pipeline names the file after the bytes.
    """

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        text = extract_text(data, source_format)
        if not text:
            return BackendOutcome.failed(f"no extractable text in {source_format.value} input")
        LOGGER.debug("Building document from %d characters of %s", len(text), source_format.value)
        return BackendOutcome.produced(
            build_text_document(
                text,
                title=options.title,
                original_filename=options.original_filename,
                attribution=options.settings.attribution,
            )
        )


@register_backend("docx-image", pairs=[("image", "docx"), ("image", "doc")], priority=PRIORITY_BUILTIN)
class DocxImageBackend(ConverterBackend):
    """Place the picture on a single document page."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        return BackendOutcome.produced(
            build_image_document(data, title=options.title, attribution=options.settings.attribution)
        )


__all__ = ["build_text_document", "build_image_document", "DocxBuilderBackend", "DocxImageBackend"]
