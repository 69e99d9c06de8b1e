"""Text extraction helpers and the ``* -> text`` backends."""

from __future__ import annotations

import io
import re

from bs4 import BeautifulSoup
from docx import Document
from pypdf import PdfReader

from ...core.formats import FormatTag
from ...core.sanitizer import decode_text, sanitize
from ...core.utils import get_logger
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_BUILTIN, PRIORITY_LIBRARY, register_backend

LOGGER = get_logger("intelliconvert.backends.text")

_ASCII_RUN = re.compile(rb"[\x20-\x7E\t\r\n]{4,}")
_UTF16_RUN = re.compile(rb"(?:[\x20-\x7E]\x00){4,}")
_RTF_CONTROL = re.compile(r"\\[a-zA-Z]+-?\d* ?|\\[^a-zA-Z]|[{}]")
_LETTERS = re.compile(r"[A-Za-z]")

# Structure names found in every OLE2 container; never user content.
_OLE_NOISE = {
    "Root Entry",
    "WordDocument",
    "SummaryInformation",
    "DocumentSummaryInformation",
    "CompObj",
    "Microsoft Word Document",
    "MSWordDoc",
    "Word.Document.8",
    "Normal.dot",
    "Normal.dotm",
    "1Table",
    "0Table",
    "Data",
    "Times New Roman",
    "Symbol",
    "Arial",
}


def pdf_text(data: bytes, max_pages: int | None = None) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = reader.pages if max_pages is None else reader.pages[:max_pages]
    chunks = []
    for page in pages:
        chunks.append(page.extract_text() or "")
    return "\n\n".join(chunk.strip() for chunk in chunks if chunk.strip())


def docx_text(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    paragraphs = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                paragraphs.append(" | ".join(cells))
    return "\n\n".join(paragraphs)


def legacy_doc_text(data: bytes) -> str:
    """Recover readable text from a legacy word-processing file.

    RTF payloads are stripped of control words; binary containers are scanned
    for printable runs in both 8-bit and UTF-16LE encodings, whichever
    recovers more.
    """

    if data[:5] == b"{\\rtf":
        return _RTF_CONTROL.sub("", decode_text(data)).strip()

    ascii_runs = [run.decode("ascii", errors="ignore") for run in _ASCII_RUN.findall(data)]
    wide_runs = [run.decode("utf-16-le", errors="ignore") for run in _UTF16_RUN.findall(data)]
    runs = wide_runs if sum(map(len, wide_runs)) > sum(map(len, ascii_runs)) else ascii_runs
    kept = []
    for run in runs:
        cleaned = run.strip()
        if not cleaned or cleaned in _OLE_NOISE:
            continue
        if len(_LETTERS.findall(cleaned)) < len(cleaned) / 3:
            continue
        kept.append(cleaned)
    return "\n\n".join(kept)


def html_text(data: bytes) -> str:
    soup = BeautifulSoup(decode_text(data), "html.parser")
    for element in soup(["script", "style", "noscript", "head"]):
        element.decompose()
    return soup.get_text("\n")


def extract_text(data: bytes, source_format: FormatTag, *, max_pages: int | None = None) -> str:
    """Return sanitised text for *data*; image sources have none."""

    if source_format is FormatTag.PDF:
        raw = pdf_text(data, max_pages=max_pages)
    elif source_format is FormatTag.DOCX:
        raw = docx_text(data)
    elif source_format is FormatTag.DOC:
        raw = legacy_doc_text(data)
    elif source_format is FormatTag.HTML:
        raw = html_text(data)
    elif source_format is FormatTag.TEXT:
        raw = decode_text(data)
    else:
        return ""
    return sanitize(raw)


class _TextExtractionBackend(ConverterBackend):
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
        LOGGER.debug("%s extracted %d characters", self.name, len(text))
        return BackendOutcome.produced(text.encode("utf-8"))


@register_backend("pypdf-text", pairs=[("pdf", "text")], priority=PRIORITY_LIBRARY)
class PypdfTextBackend(_TextExtractionBackend):
    """Extract the text layer of a PDF with pypdf."""


@register_backend("docx-text", pairs=[("docx", "text")], priority=PRIORITY_LIBRARY)
class DocxTextBackend(_TextExtractionBackend):
    """Read paragraph and table text with python-docx."""


@register_backend("raw-text", pairs=[("doc", "text")], priority=PRIORITY_BUILTIN)
class RawTextBackend(_TextExtractionBackend):
    """Printable-run extraction for legacy binary documents."""


@register_backend("html-text", pairs=[("html", "text")], priority=PRIORITY_LIBRARY)
class HtmlTextBackend(_TextExtractionBackend):
    """Visible text of an HTML page via BeautifulSoup."""


__all__ = [
    "extract_text",
    "pdf_text",
    "docx_text",
    "legacy_doc_text",
    "html_text",
    "PypdfTextBackend",
    "DocxTextBackend",
    "RawTextBackend",
    "HtmlTextBackend",
]
