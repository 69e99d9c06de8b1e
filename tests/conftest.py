from __future__ import annotations

import io
import sys
import time
from pathlib import Path
from typing import Callable

import pytest
from docx import Document
from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import DictionaryObject, NameObject, NumberObject, StreamObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from intelliconvert import (  # noqa: E402
    BackendOutcome,
    BackendRegistry,
    ConversionPipeline,
    ConverterBackend,
    PipelineSettings,
)

PDF_OUTPUT = b"%PDF-1.4\n" + b"0" * 120 + b"\n%%EOF\n"
OLE2_SIGNATURE = bytes.fromhex("d0cf11e0a1b11ae1")


class StubBackend(ConverterBackend):
    """Scripted backend recording every call it receives."""

    def __init__(
        self,
        name: str,
        output: bytes | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        reject: bool = False,
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.output = output
        self.error = error
        self.delay = delay
        self.reject = reject
        self._timeout = timeout
        self.received: list[bytes] = []

    @property
    def calls(self) -> int:
        return len(self.received)

    def timeout(self, settings: PipelineSettings) -> float:
        return self._timeout if self._timeout is not None else super().timeout(settings)

    def attempt(self, data, source_format, target_format, options) -> BackendOutcome:
        self.received.append(data)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.reject:
            return BackendOutcome.reject("stub is not configured")
        if self.output is None:
            return BackendOutcome.failed("stub failure")
        return BackendOutcome.produced(self.output)


def write_text_pdf(text: str) -> bytes:
    writer = PdfWriter()
    page = writer.add_blank_page(width=300, height=200)
    font_dict = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/Type1"),
            NameObject("/BaseFont"): NameObject("/Helvetica"),
        }
    )
    font_ref = writer._add_object(font_dict)
    page[NameObject("/Resources")] = DictionaryObject(
        {NameObject("/Font"): DictionaryObject({NameObject("/F1"): font_ref})}
    )
    content_bytes = f"BT /F1 12 Tf 20 100 Td ({text}) Tj ET".encode("utf-8")
    stream = StreamObject()
    stream[NameObject("/Length")] = NumberObject(len(content_bytes))
    stream._data = content_bytes
    page[NameObject("/Contents")] = writer._add_object(stream)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture()
def settings(tmp_path: Path) -> PipelineSettings:
    return PipelineSettings(scratch_root=tmp_path / "scratch").offline()


@pytest.fixture()
def pipeline(settings: PipelineSettings) -> ConversionPipeline:
    return ConversionPipeline(settings=settings)


@pytest.fixture()
def stub_backend() -> Callable[..., StubBackend]:
    return StubBackend


@pytest.fixture()
def stub_registry() -> BackendRegistry:
    return BackendRegistry()


@pytest.fixture()
def text_pdf() -> bytes:
    return write_text_pdf("Hello pipeline")


@pytest.fixture()
def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "intelliconvert-tests", "/Title": "Blank"})
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture()
def docx_bytes() -> bytes:
    document = Document()
    document.add_paragraph("Quarterly summary")
    document.add_paragraph("Revenue grew in every region.")
    document.add_paragraph("Costs stayed flat.")
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    image = Image.effect_noise((64, 48), 60).convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def webp_bytes() -> bytes:
    image = Image.new("RGB", (40, 30), (200, 30, 30))
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP")
    return buffer.getvalue()


@pytest.fixture()
def legacy_doc_bytes() -> bytes:
    return (
        OLE2_SIGNATURE
        + b"\x00" * 504
        + b"Quarterly report for the board\r"
        + b"\x00\x01\x02" * 8
        + b"Revenue grew in every region this quarter.\r"
        + b"\x00" * 512
    )


@pytest.fixture()
def pdf_output() -> bytes:
    return PDF_OUTPUT
