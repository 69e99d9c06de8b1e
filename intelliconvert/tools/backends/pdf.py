"""Local PDF writers and readers: ReportLab, PyMuPDF and pdf2docx."""

from __future__ import annotations

import io
from datetime import datetime

import fitz
from pdf2docx import Converter
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from ...core.formats import FormatTag
from ...core.sanitizer import escape_markup, extract_title, split_paragraphs
from ...core.utils import get_logger, time_block
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_BUILTIN, PRIORITY_LIBRARY, register_backend
from .image import encode_image
from .text import extract_text

LOGGER = get_logger("intelliconvert.backends.pdf")

_MARGIN = 20 * mm
_RENDER_ZOOM = 2.0


def typeset_text(text: str, *, title: str | None = None, attribution: str = "IntelliConvert") -> bytes:
    """Lay *text* out on A4 pages with a heading and a footer line."""

    body = text
    if not title:
        title, body = extract_title(text)

    styles = getSampleStyleSheet()
    story = []
    if title:
        story.append(Paragraph(escape_markup(title), styles["Title"]))
        story.append(Spacer(1, 6 * mm))
    for paragraph in split_paragraphs(body):
        lines = [escape_markup(line) for line in paragraph.split("\n")]
        story.append(Paragraph("<br/>".join(lines), styles["BodyText"]))
        story.append(Spacer(1, 3 * mm))

    stamp = datetime.now().strftime("%Y-%m-%d %H:%M")

    def draw_footer(pdf_canvas, document) -> None:
        pdf_canvas.saveState()
        pdf_canvas.setFont("Helvetica", 8)
        pdf_canvas.drawCentredString(
            A4[0] / 2, 10 * mm, f"Page {document.page} - Converted by {attribution} - {stamp}"
        )
        pdf_canvas.restoreState()

    buffer = io.BytesIO()
    template = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=_MARGIN,
        rightMargin=_MARGIN,
        topMargin=_MARGIN,
        bottomMargin=_MARGIN,
        title=title or "Converted document",
        author=attribution,
    )
    template.build(story, onFirstPage=draw_footer, onLaterPages=draw_footer)
    return buffer.getvalue()


def place_image(data: bytes, *, attribution: str = "IntelliConvert") -> bytes:
    """Put the picture on one A4 page, scaled to fit inside the margins."""

    with Image.open(io.BytesIO(data)) as image:
        image.load()
        width, height = image.size
        reader = ImageReader(image.convert("RGB"))

    page_width, page_height = A4
    box_width = page_width - 2 * _MARGIN
    box_height = page_height - 2 * _MARGIN
    scale = min(box_width / width, box_height / height, 1.0)
    draw_width, draw_height = width * scale, height * scale

    buffer = io.BytesIO()
    pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
    pdf_canvas.setAuthor(attribution)
    pdf_canvas.drawImage(
        reader,
        (page_width - draw_width) / 2,
        (page_height - draw_height) / 2,
        width=draw_width,
        height=draw_height,
    )
    pdf_canvas.showPage()
    pdf_canvas.save()
    return buffer.getvalue()


def render_page(data: bytes, page_number: int = 1, image_format: str = "png", zoom: float = _RENDER_ZOOM) -> bytes:
    """Rasterise one PDF page; out-of-range numbers clamp to the last page."""

    document = fitz.open(stream=data, filetype="pdf")
    try:
        if document.page_count == 0:
            raise ValueError("PDF has no pages")
        index = min(max(page_number, 1), document.page_count) - 1
        pixmap = document[index].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        png_bytes = pixmap.tobytes("png")
    finally:
        document.close()
    if image_format == "png":
        return png_bytes
    with Image.open(io.BytesIO(png_bytes)) as image:
        image.load()
        return encode_image(image, image_format)


@register_backend(
    "reportlab-text",
    pairs=[("text", "pdf"), ("html", "pdf"), ("doc", "pdf"), ("docx", "pdf")],
    priority=PRIORITY_BUILTIN,
)
class ReportLabTextBackend(ConverterBackend):
    """Typeset the sanitised text of the input with ReportLab."""

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
        with time_block(LOGGER, "ReportLab typesetting"):
            pdf_bytes = typeset_text(text, title=options.title, attribution=options.settings.attribution)
        return BackendOutcome.produced(pdf_bytes)


@register_backend("reportlab-image", pairs=[("image", "pdf")], priority=PRIORITY_LIBRARY)
class ReportLabImageBackend(ConverterBackend):
    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        return BackendOutcome.produced(place_image(data, attribution=options.settings.attribution))


@register_backend("pymupdf", pairs=[("pdf", "image")], priority=PRIORITY_LIBRARY)
class PyMuPdfBackend(ConverterBackend):
    """Render the requested page through PyMuPDF."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        with time_block(LOGGER, "PyMuPDF rendering"):
            image_bytes = render_page(data, options.page_number, options.image_format)
        return BackendOutcome.produced(image_bytes)


@register_backend("pdf2docx", pairs=[("pdf", "docx")], priority=PRIORITY_LIBRARY)
class Pdf2DocxBackend(ConverterBackend):
    """Layout-preserving PDF to DOCX conversion via pdf2docx."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        if options.scratch is None:
            return BackendOutcome.reject("pdf2docx needs scratch storage")
        source = options.scratch.write(data, "pdf", role="source")
        with options.scratch.scratch("docx", role="work") as (destination, _release):
            try:
                converter = Converter(str(source.path))
                try:
                    with time_block(LOGGER, "pdf2docx conversion"):
                        converter.convert(str(destination), start=0, end=None)
                finally:
                    converter.close()
                return BackendOutcome.produced(destination.read_bytes())
            finally:
                options.scratch.release(source)


__all__ = [
    "typeset_text",
    "place_image",
    "render_page",
    "ReportLabTextBackend",
    "ReportLabImageBackend",
    "PyMuPdfBackend",
    "Pdf2DocxBackend",
]
