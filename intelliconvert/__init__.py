"""Content conversion pipeline for chat automation clients."""

from __future__ import annotations

from .core.config import PipelineSettings
from .core.exceptions import (
    BackendError,
    BackendExhaustedError,
    ErrorKind,
    IntelliConvertError,
    ResourceFaultError,
    UnsupportedFormatPairError,
)
from .core.formats import FormatTag, detect
from .core.scratch import ScratchFile, ScratchSpace
from .tools import load_builtin_backends
from .tools.common.interfaces import (
    AttemptStatus,
    BackendAttempt,
    BackendOptions,
    BackendOutcome,
    ConversionOptions,
    ConversionRequest,
    ConversionResult,
    ConverterBackend,
)
from .tools.common.pipeline import BackendRegistry, register_backend, registry
from .tools.converter import ConversionPipeline
from .tools.router import ConversionPath, ConversionRouter, PathKind

__version__ = "0.1.0"

load_builtin_backends()


def convert_content(
    data: bytes,
    target: str | FormatTag,
    *,
    declared_mime_type: str | None = None,
    filename: str | None = None,
    title: str | None = None,
    image_format: str | None = None,
    page_number: int = 1,
    settings: PipelineSettings | None = None,
) -> ConversionResult:
    """Convert *data* to *target* with a pipeline built from the environment."""

    pipeline = ConversionPipeline(settings=settings)
    return pipeline.convert(
        data,
        target,
        declared_mime_type=declared_mime_type,
        filename=filename,
        title=title,
        image_format=image_format,
        page_number=page_number,
    )


__all__ = [
    "AttemptStatus",
    "BackendAttempt",
    "BackendError",
    "BackendExhaustedError",
    "BackendOptions",
    "BackendOutcome",
    "BackendRegistry",
    "ConversionOptions",
    "ConversionPath",
    "ConversionPipeline",
    "ConversionRequest",
    "ConversionResult",
    "ConversionRouter",
    "ConverterBackend",
    "ErrorKind",
    "FormatTag",
    "IntelliConvertError",
    "PathKind",
    "PipelineSettings",
    "ResourceFaultError",
    "ScratchFile",
    "ScratchSpace",
    "UnsupportedFormatPairError",
    "convert_content",
    "detect",
    "register_backend",
    "registry",
    "__version__",
]
