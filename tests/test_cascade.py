from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import pytest

from intelliconvert.core.config import PipelineSettings
from intelliconvert.core.exceptions import ErrorKind
from intelliconvert.core.formats import FormatTag
from intelliconvert.core.scratch import ScratchSpace
from intelliconvert.tools.cascade import CascadeExecutor
from intelliconvert.tools.common.interfaces import AttemptStatus, BackendOptions
from intelliconvert.tools.common.pipeline import BackendRegistry
from intelliconvert.tools.router import ConversionPath

TEXT_TO_PDF = (FormatTag.TEXT, FormatTag.PDF)


@pytest.fixture()
def options(settings: PipelineSettings) -> BackendOptions:
    return BackendOptions(settings=settings)


def test_stops_at_first_success(stub_registry: BackendRegistry, stub_backend, settings, options, pdf_output) -> None:
    first = stub_registry.register(stub_backend("first"), [TEXT_TO_PDF])
    second = stub_registry.register(stub_backend("second", pdf_output), [TEXT_TO_PDF])
    third = stub_registry.register(stub_backend("third", pdf_output), [TEXT_TO_PDF])

    result = CascadeExecutor(stub_registry, settings).execute(TEXT_TO_PDF, b"Hello", options)

    assert result.success
    assert result.output_bytes == pdf_output
    assert (first.calls, second.calls, third.calls) == (1, 1, 0)
    assert [attempt.status for attempt in result.attempts] == [AttemptStatus.ERROR, AttemptStatus.SUCCESS]
    assert result.suggested_file_name == "converted.pdf"


def test_all_failures_exhaust_the_cascade(
    stub_registry: BackendRegistry, stub_backend, settings, options, caplog
) -> None:
    stub_registry.register(stub_backend("remote", reject=True), [TEXT_TO_PDF])
    stub_registry.register(stub_backend("broken", error=RuntimeError("disk on fire")), [TEXT_TO_PDF])
    stub_registry.register(stub_backend("empty", b""), [TEXT_TO_PDF])

    with caplog.at_level(logging.WARNING, logger="intelliconvert.cascade"):
        result = CascadeExecutor(stub_registry, settings).execute(TEXT_TO_PDF, b"Hello", options)

    assert not result.success
    assert result.output_bytes is None
    assert result.error_kind is ErrorKind.BACKEND_EXHAUSTED
    assert [attempt.status for attempt in result.attempts] == [
        AttemptStatus.REJECTED,
        AttemptStatus.ERROR,
        AttemptStatus.ERROR,
    ]
    assert "disk on fire" in caplog.text
    assert "broken" in caplog.text
    # The user-facing text never names a backend.
    assert "broken" not in result.user_message
    assert "disk on fire" not in (result.detail or "")


def test_timeout_counts_as_failure(stub_registry: BackendRegistry, stub_backend, settings, options, pdf_output) -> None:
    slow = stub_registry.register(stub_backend("slow", pdf_output, delay=1.0, timeout=0.1), [TEXT_TO_PDF])
    fast = stub_registry.register(stub_backend("fast", pdf_output), [TEXT_TO_PDF])

    result = CascadeExecutor(stub_registry, settings).execute(TEXT_TO_PDF, b"Hello", options)

    assert result.success
    assert result.attempts[0].status is AttemptStatus.TIMEOUT
    assert result.attempts[0].backend == "slow"
    assert result.attempts[0].elapsed < 1.0
    assert slow.calls == 1 and fast.calls == 1


@pytest.mark.parametrize(
    ("output", "reason"),
    [
        (b"%PDF", "too small"),
        (b"<html>" + b"x" * 200, "does not look like pdf"),
    ],
)
def test_implausible_output_is_rejected(
    stub_registry: BackendRegistry, stub_backend, settings, options, output: bytes, reason: str
) -> None:
    stub_registry.register(stub_backend("liar", output), [TEXT_TO_PDF])

    result = CascadeExecutor(stub_registry, settings).execute(TEXT_TO_PDF, b"Hello", options)

    assert not result.success
    assert reason in result.attempts[0].reason


def test_minimum_sizes_come_from_settings(stub_registry: BackendRegistry, stub_backend, settings, pdf_output) -> None:
    strict = replace(settings, min_output_bytes={"pdf": 10_000})
    stub_registry.register(stub_backend("small", pdf_output), [TEXT_TO_PDF])

    result = CascadeExecutor(stub_registry, strict).execute(TEXT_TO_PDF, b"Hello", BackendOptions(settings=strict))

    assert not result.success


def test_two_hop_stages_one_intermediate(
    stub_registry: BackendRegistry, stub_backend, settings, pdf_output, png_bytes, tmp_path: Path
) -> None:
    stub_registry.register(stub_backend("doc-pdf", pdf_output), [(FormatTag.DOC, FormatTag.PDF)])
    rasteriser = stub_registry.register(stub_backend("pdf-image", png_bytes), [(FormatTag.PDF, FormatTag.IMAGE)])
    path = ConversionPath.two_hop(FormatTag.DOC, FormatTag.PDF, FormatTag.IMAGE)

    with ScratchSpace(tmp_path) as space:
        result = CascadeExecutor(stub_registry, settings).execute_path(
            path, b"legacy", BackendOptions(settings=settings, scratch=space)
        )
        intermediates = [entry for entry in space.history if entry.role == "intermediate"]
        assert len(intermediates) == 1
        assert not intermediates[0].path.exists()

    assert result.success
    assert result.path == path
    assert rasteriser.received == [pdf_output]
    assert [attempt.backend for attempt in result.attempts] == ["doc-pdf", "pdf-image"]
    assert result.suggested_file_name == "converted.png"


def test_first_segment_failure_short_circuits(
    stub_registry: BackendRegistry, stub_backend, settings, png_bytes, tmp_path: Path
) -> None:
    stub_registry.register(stub_backend("doc-pdf"), [(FormatTag.DOC, FormatTag.PDF)])
    rasteriser = stub_registry.register(stub_backend("pdf-image", png_bytes), [(FormatTag.PDF, FormatTag.IMAGE)])
    path = ConversionPath.two_hop(FormatTag.DOC, FormatTag.PDF, FormatTag.IMAGE)

    with ScratchSpace(tmp_path) as space:
        result = CascadeExecutor(stub_registry, settings).execute_path(
            path, b"legacy", BackendOptions(settings=settings, scratch=space)
        )
        assert space.history == ()

    assert not result.success
    assert result.error_kind is ErrorKind.BACKEND_EXHAUSTED
    assert rasteriser.calls == 0


def test_two_hop_without_scratch_uses_a_private_space(
    stub_registry: BackendRegistry, stub_backend, settings, pdf_output, png_bytes
) -> None:
    stub_registry.register(stub_backend("doc-pdf", pdf_output), [(FormatTag.DOC, FormatTag.PDF)])
    stub_registry.register(stub_backend("pdf-image", png_bytes), [(FormatTag.PDF, FormatTag.IMAGE)])
    path = ConversionPath.two_hop(FormatTag.DOC, FormatTag.PDF, FormatTag.IMAGE)

    result = CascadeExecutor(stub_registry, settings).execute_path(path, b"legacy", BackendOptions(settings=settings))

    assert result.success
    assert not any(settings.scratch_root.iterdir())
