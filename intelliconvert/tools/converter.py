"""End-to-end conversion pipeline."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import PurePath
from time import perf_counter

from ..core.config import PipelineSettings
from ..core.exceptions import ErrorKind, ResourceFaultError, UnsupportedFormatPairError
from ..core.formats import (
    FormatTag,
    detect,
    detect_image_format,
    extension_for,
    is_canonical,
    mime_type_for,
    normalise_tag,
    sniff,
)
from ..core.sanitizer import sanitize_filename
from ..core.scratch import ScratchSpace
from . import load_builtin_backends
from .cascade import CascadeExecutor
from .common.interfaces import BackendOptions, ConversionRequest, ConversionResult
from .common.pipeline import BackendRegistry
from .common.pipeline import registry as default_registry
from .fallback import FallbackRendererBackend
from .router import ConversionPath, ConversionRouter

LOGGER = logging.getLogger("intelliconvert.pipeline")

DEFAULT_BASENAME = "converted"
_BINARY_FORMATS = {FormatTag.PDF, FormatTag.DOC, FormatTag.DOCX, FormatTag.IMAGE}


def _label(value: FormatTag | str) -> str:
    return value.value if isinstance(value, FormatTag) else str(value)


def output_format(output: bytes, target: FormatTag) -> tuple[FormatTag, str | None]:
    """Format (and raster encoding) the produced bytes actually carry."""

    sniffed = sniff(output)
    if target in _BINARY_FORMATS and sniffed in _BINARY_FORMATS:
        return sniffed, detect_image_format(output) if sniffed is FormatTag.IMAGE else None
    return target, None


def suggest_file_name(request: ConversionRequest, output: bytes, target: FormatTag) -> tuple[str, str]:
    """Return ``(file name, mime type)`` for *output*.

    The base comes from the title, else the uploaded filename, else a default;
    the extension always follows the bytes that were produced.
    """

    if request.title:
        base = sanitize_filename(request.title, default=DEFAULT_BASENAME)
    elif request.original_filename:
        base = sanitize_filename(PurePath(request.original_filename).stem, default=DEFAULT_BASENAME)
    else:
        base = DEFAULT_BASENAME
    fmt, image_format = output_format(output, target)
    return base + extension_for(fmt, image_format), mime_type_for(fmt, image_format)


class ConversionPipeline:
    """Detect, route, execute and name a single conversion per :meth:`run`."""

    def __init__(self, settings: PipelineSettings | None = None, registry: BackendRegistry | None = None) -> None:
        self.settings = settings or PipelineSettings.from_env()
        if registry is None:
            load_builtin_backends()
            registry = default_registry
        self.registry = registry
        self.router = ConversionRouter(registry)
        self.cascade = CascadeExecutor(registry, self.settings)
        self.fallback = FallbackRendererBackend()

    def convert(
        self,
        data: bytes,
        target: str | FormatTag,
        *,
        declared_mime_type: str | None = None,
        filename: str | None = None,
        title: str | None = None,
        image_format: str | None = None,
        page_number: int = 1,
        scratch: ScratchSpace | None = None,
    ) -> ConversionResult:
        request = ConversionRequest.build(
            data,
            target,
            declared_mime_type=declared_mime_type,
            filename=filename,
            title=title,
            image_format=image_format,
            page_number=page_number,
        )
        return self.run(request, scratch=scratch)

    def resolve_source(self, request: ConversionRequest) -> FormatTag | str:
        if request.source_format is not FormatTag.UNKNOWN:
            return request.source_format
        return detect(request.source_bytes, request.declared_mime_type, request.original_filename)

    def run(self, request: ConversionRequest, scratch: ScratchSpace | None = None) -> ConversionResult:
        """Convert *request*; *scratch* (closed afterwards) overrides the per-run space."""

        started = perf_counter()
        source = self.resolve_source(request)
        request = replace(request, source_format=source)
        target = request.target_format

        if not is_canonical(source) or not is_canonical(target):
            error = UnsupportedFormatPairError(_label(source), _label(target))
            return self._finish(
                request,
                ConversionResult.failure(error.kind, error.message, user_message=error.user_message),
                started,
            )

        source_tag = normalise_tag(source)
        target_tag = normalise_tag(target)
        reencode = (
            source_tag is FormatTag.IMAGE
            and target_tag is FormatTag.IMAGE
            and request.options.image_format is not None
            and detect_image_format(request.source_bytes) != request.options.image_format
        )
        try:
            path = self.router.route(source_tag, target_tag, reencode=reencode)
        except UnsupportedFormatPairError as error:
            return self._finish(
                request,
                ConversionResult.failure(error.kind, error.message, user_message=error.user_message),
                started,
            )

        if path.is_passthrough:
            name, mime_type = suggest_file_name(request, request.source_bytes, target_tag)
            return self._finish(
                request,
                ConversionResult.ok(request.source_bytes, name, mime_type=mime_type, path=path),
                started,
            )

        try:
            with scratch or ScratchSpace(self.settings.scratch_root) as space:
                result = self._execute(request, path, space)
        except ResourceFaultError as error:
            LOGGER.error("Resource fault during %s: %s", path.describe(), error)
            result = ConversionResult.failure(
                ErrorKind.RESOURCE_FAULT, error.message, user_message=error.user_message, path=path
            )
        return self._finish(request, result, started)

    def _execute(self, request: ConversionRequest, path: ConversionPath, space: ScratchSpace) -> ConversionResult:
        options = BackendOptions.for_request(request, self.settings, space)
        result = self.cascade.execute_path(path, request.source_bytes, options)

        tried = {attempt.backend for attempt in result.attempts}
        if not result.success and path.target is FormatTag.IMAGE and self.fallback.name not in tried:
            LOGGER.info("No structured backend produced an image for %s; rendering fallback page", path.describe())
            result = self.cascade.run_single(
                self.fallback,
                (path.source, FormatTag.IMAGE),
                request.source_bytes,
                options,
                previous=result.attempts,
            ).with_updates(path=path)

        if not result.success or result.output_bytes is None:
            return result
        name, mime_type = suggest_file_name(request, result.output_bytes, path.target)
        return result.with_updates(suggested_file_name=name, mime_type=mime_type)

    def _finish(self, request: ConversionRequest, result: ConversionResult, started: float) -> ConversionResult:
        elapsed = perf_counter() - started
        route = result.path.describe() if result.path else f"{_label(request.source_format)} -> {_label(request.target_format)}"
        if result.success:
            LOGGER.info(
                "Converted %s in %.2fs (%d attempts%s) -> %s",
                route,
                elapsed,
                len(result.attempts),
                ", degraded" if result.degraded else "",
                result.suggested_file_name,
            )
        else:
            LOGGER.warning(
                "Conversion %s failed after %.2fs (%s, %d attempts): %s",
                route,
                elapsed,
                result.error_kind.value if result.error_kind else "unknown",
                len(result.attempts),
                result.detail,
            )
        return result


__all__ = ["ConversionPipeline", "suggest_file_name", "output_format", "DEFAULT_BASENAME"]
