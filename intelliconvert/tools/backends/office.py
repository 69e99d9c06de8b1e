"""External converter processes: LibreOffice and poppler's ``pdftoppm``."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from ...core.formats import FormatTag
from ...core.scratch import ScratchSpace
from ...core.utils import get_logger, run_subprocess, which
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_EXTERNAL, register_backend
from .image import reencode

LOGGER = get_logger("intelliconvert.backends.office")


class ToolType(str, Enum):
    """Enumeration of supported external converter programs."""

    LIBREOFFICE = "libreoffice"
    PDFTOPPM = "pdftoppm"


@dataclass(frozen=True)
class ExternalTool:
    """Represents an external converter and its executable."""

    type: ToolType
    executable: str


_TOOL_CANDIDATES: dict[ToolType, Sequence[str]] = {
    ToolType.LIBREOFFICE: ("soffice", "libreoffice", "soffice.exe"),
    ToolType.PDFTOPPM: ("pdftoppm", "pdftoppm.exe"),
}

# --convert-to arguments per target format.
_LIBREOFFICE_FILTERS: dict[FormatTag, tuple[str, str]] = {
    FormatTag.PDF: ("pdf", ".pdf"),
    FormatTag.DOCX: ("docx:MS Word 2007 XML", ".docx"),
    FormatTag.DOC: ("doc:MS Word 97", ".doc"),
    FormatTag.TEXT: ("txt:Text (encoded):UTF8", ".txt"),
}


def detect_tool(tool_type: ToolType) -> ExternalTool | None:
    executable = which(_TOOL_CANDIDATES[tool_type])
    return ExternalTool(tool_type, executable) if executable else None


def build_libreoffice_command(
    executable: str,
    source: Path,
    outdir: Path,
    source_format: FormatTag,
    target_format: FormatTag,
) -> list[str]:
    """Construct the headless LibreOffice command for one conversion."""

    convert_to, _ = _LIBREOFFICE_FILTERS[target_format]
    command = [
        executable,
        f"-env:UserInstallation={(outdir / 'lo-profile').as_uri()}",
        "--headless",
        "--norestore",
        "--nologo",
    ]
    if source_format is FormatTag.PDF:
        command.append("--infilter=writer_pdf_import")
    command.extend(["--convert-to", convert_to, "--outdir", str(outdir), str(source)])
    return command


def build_pdftoppm_command(executable: str, source: Path, prefix: Path, page_number: int, image_format: str) -> list[str]:
    device = "-jpeg" if image_format == "jpeg" else "-png"
    return [
        executable,
        "-f",
        str(page_number),
        "-l",
        str(page_number),
        "-r",
        "150",
        device,
        "-singlefile",
        str(source),
        str(prefix),
    ]


class _ExternalToolBackend(ConverterBackend):
    tool_type: ToolType

    def _prepare(self, options: BackendOptions) -> tuple[ExternalTool | None, str | None]:
        if not options.settings.external_tools:
            return None, "external tools are disabled"
        if options.scratch is None:
            return None, "no scratch storage available"
        tool = detect_tool(self.tool_type)
        if tool is None:
            return None, f"{self.tool_type.value} executable not found"
        return tool, None

    def _process_timeout(self, options: BackendOptions) -> float:
        # Leave the cascade a moment to record the failure itself.
        return max(self.timeout(options.settings) - 1.0, 1.0)

    def _run(self, command: list[str], options: BackendOptions) -> BackendOutcome | None:
        try:
            run_subprocess(command, timeout=self._process_timeout(options))
        except subprocess.TimeoutExpired:
            return BackendOutcome.failed(f"{self.tool_type.value} timed out")
        except subprocess.CalledProcessError as exc:
            LOGGER.debug("%s stderr: %s", self.tool_type.value, exc.stderr)
            return BackendOutcome.failed(f"{self.tool_type.value} exited with status {exc.returncode}")
        return None


@register_backend(
    "libreoffice",
    pairs=[
        ("doc", "pdf"),
        ("docx", "pdf"),
        ("pdf", "docx"),
        ("pdf", "doc"),
        ("text", "doc"),
        ("doc", "docx"),
        ("docx", "doc"),
        ("doc", "text"),
    ],
    priority=PRIORITY_EXTERNAL,
)
class LibreOfficeBackend(_ExternalToolBackend):
    """Headless ``soffice --convert-to`` conversion."""

    tool_type = ToolType.LIBREOFFICE

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        tool, reason = self._prepare(options)
        if tool is None:
            return BackendOutcome.reject(reason or "unavailable")
        scratch: ScratchSpace = options.scratch  # type: ignore[assignment]

        source = scratch.write(data, source_format.value, role="source")
        _, suffix = _LIBREOFFICE_FILTERS[target_format]
        produced = source.path.with_suffix(suffix)
        try:
            LOGGER.info("Running %s for %s -> %s", tool.type.value, source_format.value, target_format.value)
            failure = self._run(
                build_libreoffice_command(tool.executable, source.path, source.path.parent, source_format, target_format),
                options,
            )
            if failure is not None:
                return failure
            if not produced.exists():
                return BackendOutcome.failed("libreoffice produced no output file")
            return BackendOutcome.produced(produced.read_bytes())
        finally:
            scratch.release(source)
            produced.unlink(missing_ok=True)


@register_backend("pdftoppm", pairs=[("pdf", "image")], priority=PRIORITY_EXTERNAL)
class PdftoppmBackend(_ExternalToolBackend):
    """Poppler rasteriser for a single PDF page."""

    tool_type = ToolType.PDFTOPPM

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        tool, reason = self._prepare(options)
        if tool is None:
            return BackendOutcome.reject(reason or "unavailable")
        scratch: ScratchSpace = options.scratch  # type: ignore[assignment]

        source = scratch.write(data, "pdf", role="source")
        prefix = source.path.with_name(source.path.stem + "-page")
        suffix = ".jpg" if options.image_format == "jpeg" else ".png"
        produced = prefix.with_name(prefix.name + suffix)
        try:
            failure = self._run(
                build_pdftoppm_command(tool.executable, source.path, prefix, options.page_number, options.image_format),
                options,
            )
            if failure is not None:
                return failure
            if not produced.exists():
                return BackendOutcome.failed("pdftoppm produced no output file")
            return BackendOutcome.produced(reencode(produced.read_bytes(), options.image_format))
        finally:
            scratch.release(source)
            produced.unlink(missing_ok=True)


__all__ = [
    "ToolType",
    "ExternalTool",
    "detect_tool",
    "build_libreoffice_command",
    "build_pdftoppm_command",
    "LibreOfficeBackend",
    "PdftoppmBackend",
]
