"""Cascade executor: try each backend of a segment until one succeeds."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from contextlib import ExitStack
from time import perf_counter

from ..core.config import PipelineSettings
from ..core.exceptions import BackendExhaustedError, ErrorKind, ResourceFaultError
from ..core.formats import FormatTag, extension_for, matches_signature, mime_type_for, detect_image_format
from ..core.scratch import ScratchSpace
from .common.interfaces import (
    AttemptStatus,
    BackendAttempt,
    BackendOptions,
    BackendOutcome,
    ConversionResult,
    ConverterBackend,
)
from .common.pipeline import BackendRegistry
from .router import ConversionPath

_LOGGER = logging.getLogger("intelliconvert.cascade")

Segment = tuple[FormatTag, FormatTag]


def _segment_label(segment: Segment) -> tuple[str, str]:
    return segment[0].value, segment[1].value


def default_file_name(target: FormatTag, data: bytes, image_format: str | None = None) -> str:
    if target is FormatTag.IMAGE:
        image_format = detect_image_format(data) or image_format
    return "converted" + extension_for(target, image_format)


class CascadeExecutor:
    """Runs the ordered backends of one segment with isolation and timeouts."""

    def __init__(self, registry: BackendRegistry, settings: PipelineSettings | None = None) -> None:
        self.registry = registry
        self.settings = settings or PipelineSettings()

    def validate_output(self, data: bytes | None, target: FormatTag) -> str | None:
        """Return why *data* is not a plausible *target* document, or ``None``."""

        if not data:
            return "empty output"
        minimum = self.settings.minimum_output(target.value)
        if len(data) < minimum:
            return f"output too small ({len(data)} bytes, expected at least {minimum})"
        if not matches_signature(data, target):
            return f"output does not look like {target.value}"
        return None

    def _run_attempt(
        self,
        backend: ConverterBackend,
        segment: Segment,
        data: bytes,
        options: BackendOptions,
    ) -> tuple[BackendOutcome | None, BackendAttempt]:
        source, target = segment
        timeout = backend.timeout(options.settings)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"intelliconvert-{backend.name}")
        start = perf_counter()
        try:
            future = executor.submit(backend.attempt, data, source, target, options)
            outcome = future.result(timeout=timeout)
        except ResourceFaultError:
            # Scratch storage is gone; the whole run aborts.
            raise
        except FuturesTimeoutError:
            future.cancel()
            return None, BackendAttempt(
                backend.name, _segment_label(segment), perf_counter() - start, AttemptStatus.TIMEOUT,
                f"timed out after {timeout:.1f}s",
            )
        except Exception as exc:  # noqa: BLE001 - backends are isolated from the cascade
            return None, BackendAttempt(
                backend.name, _segment_label(segment), perf_counter() - start, AttemptStatus.ERROR,
                f"{type(exc).__name__}: {exc}",
            )
        finally:
            # A timed-out worker is abandoned, not joined.
            executor.shutdown(wait=False)

        elapsed = perf_counter() - start
        if not isinstance(outcome, BackendOutcome):
            return None, BackendAttempt(
                backend.name, _segment_label(segment), elapsed, AttemptStatus.ERROR, "backend returned no outcome"
            )
        if not outcome.success:
            status = AttemptStatus.REJECTED if outcome.rejected else AttemptStatus.ERROR
            return outcome, BackendAttempt(
                backend.name, _segment_label(segment), elapsed, status, outcome.failure_reason or "failed"
            )
        problem = self.validate_output(outcome.output_bytes, target)
        if problem:
            return None, BackendAttempt(backend.name, _segment_label(segment), elapsed, AttemptStatus.ERROR, problem)
        return outcome, BackendAttempt(backend.name, _segment_label(segment), elapsed, AttemptStatus.SUCCESS)

    def _succeeded(
        self,
        segment: Segment,
        outcome: BackendOutcome,
        attempts: tuple[BackendAttempt, ...],
        options: BackendOptions,
    ) -> ConversionResult:
        source, target = segment
        output = outcome.output_bytes or b""
        return ConversionResult.ok(
            output,
            default_file_name(target, output, options.image_format),
            mime_type=mime_type_for(target, detect_image_format(output)),
            degraded=outcome.degraded,
            attempts=attempts,
            path=ConversionPath.direct(source, target),
        )

    def _exhausted(
        self,
        segment: Segment,
        attempts: tuple[BackendAttempt, ...],
        logged: tuple[BackendAttempt, ...],
    ) -> ConversionResult:
        source, target = segment
        error = BackendExhaustedError(_segment_label(segment), [f"{a.backend}: {a.reason}" for a in logged])
        for attempt in logged:
            _LOGGER.warning(
                "Backend %s failed for %s -> %s (%s): %s",
                attempt.backend,
                source.value,
                target.value,
                attempt.status.value,
                attempt.reason,
            )
        return ConversionResult.failure(
            ErrorKind.BACKEND_EXHAUSTED,
            error.message,
            user_message=error.user_message,
            attempts=attempts,
            path=ConversionPath.direct(source, target),
        )

    def execute(self, segment: Segment, data: bytes, options: BackendOptions) -> ConversionResult:
        """Run the cascade of *segment* over *data*; stop at the first success."""

        source, target = segment
        backends = self.registry.backends_for(source, target)
        attempts: list[BackendAttempt] = []
        for backend in backends:
            outcome, attempt = self._run_attempt(backend, segment, data, options)
            attempts.append(attempt)
            if attempt.succeeded and outcome is not None and outcome.output_bytes is not None:
                _LOGGER.debug(
                    "%s -> %s served by %s in %.2fs", source.value, target.value, backend.name, attempt.elapsed
                )
                return self._succeeded(segment, outcome, tuple(attempts), options)
            _LOGGER.debug("Backend %s did not convert %s -> %s: %s", backend.name, source.value, target.value, attempt.reason)

        if not backends:
            _LOGGER.warning("No backends registered for %s -> %s", source.value, target.value)
        return self._exhausted(segment, tuple(attempts), tuple(attempts))

    def run_single(
        self,
        backend: ConverterBackend,
        segment: Segment,
        data: bytes,
        options: BackendOptions,
        previous: tuple[BackendAttempt, ...] = (),
    ) -> ConversionResult:
        """Run one backend outside the table with the usual timeout and checks.

        *previous* attempts are carried into the result so callers can report
        a whole run.
        """

        outcome, attempt = self._run_attempt(backend, segment, data, options)
        attempts = tuple(previous) + (attempt,)
        if attempt.succeeded and outcome is not None and outcome.output_bytes is not None:
            return self._succeeded(segment, outcome, attempts, options)
        return self._exhausted(segment, attempts, (attempt,))

    def execute_path(self, path: ConversionPath, data: bytes, options: BackendOptions) -> ConversionResult:
        """Run every segment of *path*, staging two-hop output in scratch storage."""

        segments = path.segments
        if not segments:
            raise ValueError("A pass-through path has nothing to execute")
        if len(segments) == 1:
            return self.execute(segments[0], data, options).with_updates(path=path)

        with ExitStack() as stack:
            scratch = options.scratch
            if scratch is None:
                scratch = stack.enter_context(ScratchSpace(options.settings.scratch_root))
                options = options.with_updates(scratch=scratch)

            first = self.execute(segments[0], data, options)
            if not first.success or first.output_bytes is None:
                return first.with_updates(path=path)

            intermediate = scratch.write(first.output_bytes, segments[0][1].value, role="intermediate")
            try:
                staged = intermediate.path.read_bytes()
                second = self.execute(segments[1], staged, options)
            finally:
                scratch.release(intermediate)

        return second.with_updates(
            attempts=first.attempts + second.attempts,
            degraded=first.degraded or second.degraded,
            path=path,
        )


__all__ = ["CascadeExecutor", "default_file_name"]
