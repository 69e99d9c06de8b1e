from __future__ import annotations

import subprocess
from dataclasses import replace
from pathlib import Path

import pytest

from intelliconvert.core.formats import FormatTag
from intelliconvert.core.scratch import ScratchSpace
from intelliconvert.tools.backends import office
from intelliconvert.tools.backends.office import (
    LibreOfficeBackend,
    PdftoppmBackend,
    ToolType,
    build_libreoffice_command,
    build_pdftoppm_command,
    detect_tool,
)
from intelliconvert.tools.common.interfaces import BackendOptions


@pytest.fixture()
def tools_enabled(settings):
    return replace(settings, external_tools=True)


@pytest.fixture()
def space(tmp_path: Path):
    with ScratchSpace(tmp_path / "work") as scratch:
        yield scratch


def test_disabled_external_tools_decline(settings, space) -> None:
    outcome = LibreOfficeBackend().attempt(
        b"doc", FormatTag.DOC, FormatTag.PDF, BackendOptions(settings=settings, scratch=space)
    )
    assert outcome.rejected
    assert outcome.failure_reason == "external tools are disabled"


def test_missing_executable_declines(tools_enabled, space, monkeypatch) -> None:
    monkeypatch.setattr(office, "which", lambda candidates: None)
    outcome = PdftoppmBackend().attempt(
        b"%PDF", FormatTag.PDF, FormatTag.IMAGE, BackendOptions(settings=tools_enabled, scratch=space)
    )
    assert outcome.rejected
    assert outcome.failure_reason == "pdftoppm executable not found"


def test_detect_tool_uses_the_candidate_list(monkeypatch) -> None:
    seen = []

    def fake_which(candidates):
        seen.extend(candidates)
        return "/usr/bin/soffice"

    monkeypatch.setattr(office, "which", fake_which)
    tool = detect_tool(ToolType.LIBREOFFICE)
    assert tool.executable == "/usr/bin/soffice"
    assert "soffice" in seen and "libreoffice" in seen


def test_libreoffice_reads_the_converted_file(tools_enabled, space, monkeypatch, pdf_output: bytes) -> None:
    commands = []

    def fake_run(command, *, timeout=None, env=None, check=True):
        commands.append(command)
        source = Path(command[-1])
        source.with_suffix(".pdf").write_bytes(pdf_output)
        return subprocess.CompletedProcess(command, 0, "", "")

    monkeypatch.setattr(office, "which", lambda candidates: "/usr/bin/soffice")
    monkeypatch.setattr(office, "run_subprocess", fake_run)

    outcome = LibreOfficeBackend().attempt(
        b"legacy bytes", FormatTag.DOC, FormatTag.PDF, BackendOptions(settings=tools_enabled, scratch=space)
    )

    assert outcome.output_bytes == pdf_output
    assert commands[0][0] == "/usr/bin/soffice"
    assert "--headless" in commands[0]
    assert commands[0][-1].endswith("-source.doc")
    assert space.live_files == ()
    assert not any(path.suffix in (".doc", ".pdf") for path in space.directory.iterdir())


def test_libreoffice_without_output_fails(tools_enabled, space, monkeypatch) -> None:
    monkeypatch.setattr(office, "which", lambda candidates: "/usr/bin/soffice")
    monkeypatch.setattr(
        office, "run_subprocess", lambda command, **kwargs: subprocess.CompletedProcess(command, 0, "", "")
    )
    outcome = LibreOfficeBackend().attempt(
        b"text", FormatTag.TEXT, FormatTag.DOC, BackendOptions(settings=tools_enabled, scratch=space)
    )
    assert outcome.failure_reason == "libreoffice produced no output file"


def test_process_timeout_is_a_failure(tools_enabled, space, monkeypatch) -> None:
    def hang(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

    monkeypatch.setattr(office, "which", lambda candidates: "/usr/bin/soffice")
    monkeypatch.setattr(office, "run_subprocess", hang)
    outcome = LibreOfficeBackend().attempt(
        b"word", FormatTag.DOCX, FormatTag.PDF, BackendOptions(settings=tools_enabled, scratch=space)
    )
    assert not outcome.rejected
    assert outcome.failure_reason == "libreoffice timed out"


def test_non_zero_exit_is_a_failure(tools_enabled, space, monkeypatch) -> None:
    def crash(command, **kwargs):
        raise subprocess.CalledProcessError(77, command, "", "boom")

    monkeypatch.setattr(office, "which", lambda candidates: "/usr/bin/pdftoppm")
    monkeypatch.setattr(office, "run_subprocess", crash)
    outcome = PdftoppmBackend().attempt(
        b"%PDF", FormatTag.PDF, FormatTag.IMAGE, BackendOptions(settings=tools_enabled, scratch=space)
    )
    assert outcome.failure_reason == "pdftoppm exited with status 77"


def test_pdftoppm_output_is_reencoded(tools_enabled, space, monkeypatch, png_bytes: bytes) -> None:
    def fake_run(command, **kwargs):
        prefix = Path(command[-1])
        prefix.with_name(prefix.name + ".png").write_bytes(png_bytes)
        return subprocess.CompletedProcess(command, 0, "", "")

    monkeypatch.setattr(office, "which", lambda candidates: "/usr/bin/pdftoppm")
    monkeypatch.setattr(office, "run_subprocess", fake_run)
    outcome = PdftoppmBackend().attempt(
        b"%PDF", FormatTag.PDF, FormatTag.IMAGE, BackendOptions(settings=tools_enabled, scratch=space, page_number=3)
    )
    assert outcome.output_bytes == png_bytes


def test_pdf_sources_use_the_writer_import_filter(tmp_path: Path) -> None:
    command = build_libreoffice_command(
        "soffice", tmp_path / "001-source.pdf", tmp_path, FormatTag.PDF, FormatTag.DOCX
    )
    assert "--infilter=writer_pdf_import" in command
    assert command[command.index("--convert-to") + 1] == "docx:MS Word 2007 XML"
    assert command[1].startswith("-env:UserInstallation=file://")


def test_pdftoppm_command_selects_page_and_device(tmp_path: Path) -> None:
    command = build_pdftoppm_command("pdftoppm", tmp_path / "in.pdf", tmp_path / "out", 4, "jpeg")
    assert command[1:5] == ["-f", "4", "-l", "4"]
    assert "-jpeg" in command and "-singlefile" in command
