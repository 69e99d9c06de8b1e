"""Core interfaces and value objects shared by IntelliConvert tools."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from ...core.config import PipelineSettings
from ...core.exceptions import ErrorKind
from ...core.formats import (
    DEFAULT_IMAGE_FORMAT,
    IMAGE_FORMATS,
    FormatTag,
    image_format_hint,
    normalise_tag,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ...core.scratch import ScratchSpace
    from ..router import ConversionPath


def _coerce_format(value: str | FormatTag | None) -> FormatTag | str:
    """Return the canonical tag for *value* or its raw lowercase spelling."""

    if value is None:
        return FormatTag.UNKNOWN
    tag = normalise_tag(value)
    if tag is FormatTag.UNKNOWN:
        raw = str(value.value if isinstance(value, FormatTag) else value).strip().lower()
        return FormatTag.UNKNOWN if raw in {"", "unknown"} else raw
    return tag


@dataclass(frozen=True)
class ConversionOptions:
    """Per-request knobs that influence how backends render their output."""

    image_format: str | None = None
    page_number: int = 1

    def __post_init__(self) -> None:
        if self.image_format is not None and self.image_format not in IMAGE_FORMATS:
            raise ValueError(f"Unsupported image format: {self.image_format!r}")
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")


@dataclass(frozen=True)
class ConversionRequest:
    """One conversion job: input bytes plus what the caller wants back."""

    source_bytes: bytes
    target_format: FormatTag | str
    source_format: FormatTag | str = FormatTag.UNKNOWN
    title: str | None = None
    original_filename: str | None = None
    declared_mime_type: str | None = None
    options: ConversionOptions = field(default_factory=ConversionOptions)

    @classmethod
    def build(
        cls,
        data: bytes,
        target: str | FormatTag,
        *,
        source_format: str | FormatTag | None = None,
        declared_mime_type: str | None = None,
        filename: str | None = None,
        title: str | None = None,
        image_format: str | None = None,
        page_number: int = 1,
    ) -> "ConversionRequest":
        """Normalise user spellings (``"PDF"``, ``"txt"``, ``"jpg"``) into a request."""

        hinted = image_format_hint(target if isinstance(target, str) else None)
        chosen_image_format = image_format_hint(image_format) or image_format or hinted
        return cls(
            source_bytes=bytes(data),
            target_format=_coerce_format(target),
            source_format=_coerce_format(source_format),
            title=title.strip() if title and title.strip() else None,
            original_filename=filename or None,
            declared_mime_type=declared_mime_type or None,
            options=ConversionOptions(image_format=chosen_image_format, page_number=page_number),
        )

    @property
    def requested_image_format(self) -> str:
        return self.options.image_format or DEFAULT_IMAGE_FORMAT


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass(frozen=True)
class BackendAttempt:
    """Diagnostic record of one backend invocation."""

    backend: str
    segment: tuple[str, str]
    elapsed: float
    status: AttemptStatus
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is AttemptStatus.SUCCESS


@dataclass(frozen=True)
class BackendOutcome:
    """What a backend reports back for a single attempt."""

    success: bool
    output_bytes: bytes | None = None
    failure_reason: str | None = None
    rejected: bool = False
    degraded: bool = False

    @classmethod
    def produced(cls, data: bytes, *, degraded: bool = False) -> "BackendOutcome":
        return cls(success=True, output_bytes=bytes(data), degraded=degraded)

    @classmethod
    def failed(cls, reason: str) -> "BackendOutcome":
        return cls(success=False, failure_reason=reason)

    @classmethod
    def reject(cls, reason: str) -> "BackendOutcome":
        """The backend declined without trying (missing key, tool or pair)."""

        return cls(success=False, failure_reason=reason, rejected=True)


@dataclass(frozen=True)
class BackendOptions:
    """Execution context handed to every backend attempt."""

    settings: PipelineSettings = field(default_factory=PipelineSettings)
    scratch: "ScratchSpace | None" = None
    title: str | None = None
    original_filename: str | None = None
    image_format: str = DEFAULT_IMAGE_FORMAT
    page_number: int = 1
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_request(
        cls,
        request: ConversionRequest,
        settings: PipelineSettings,
        scratch: "ScratchSpace | None" = None,
    ) -> "BackendOptions":
        return cls(
            settings=settings,
            scratch=scratch,
            title=request.title,
            original_filename=request.original_filename,
            image_format=request.requested_image_format,
            page_number=request.options.page_number,
        )

    def with_updates(self, **changes: Any) -> "BackendOptions":
        return replace(self, **changes)


class ConverterBackend:
    """Base class for all pluggable converter backends."""

    name: str = "backend"
    remote: bool = False

    def timeout(self, settings: PipelineSettings) -> float:
        return settings.remote_timeout if self.remote else settings.local_timeout

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:  # pragma: no cover - to be implemented by subclasses
        raise NotImplementedError

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<{type(self).__name__} {self.name}>"


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a pipeline run: fully successful or fully failed."""

    success: bool
    output_bytes: bytes | None = None
    suggested_file_name: str | None = None
    mime_type: str | None = None
    error_kind: ErrorKind | None = None
    detail: str | None = None
    user_message: str | None = None
    degraded: bool = False
    attempts: tuple[BackendAttempt, ...] = ()
    path: "ConversionPath | None" = None

    def __post_init__(self) -> None:
        if self.success:
            if self.output_bytes is None or not self.suggested_file_name:
                raise ValueError("A successful result requires output bytes and a file name")
            if self.error_kind is not None:
                raise ValueError("A successful result cannot carry an error kind")
        else:
            if self.output_bytes is not None or self.suggested_file_name is not None:
                raise ValueError("A failed result cannot carry output")
            if self.error_kind is None:
                raise ValueError("A failed result requires an error kind")

    @classmethod
    def ok(
        cls,
        output_bytes: bytes,
        suggested_file_name: str,
        *,
        mime_type: str | None = None,
        degraded: bool = False,
        attempts: tuple[BackendAttempt, ...] = (),
        path: "ConversionPath | None" = None,
    ) -> "ConversionResult":
        return cls(
            success=True,
            output_bytes=bytes(output_bytes),
            suggested_file_name=suggested_file_name,
            mime_type=mime_type,
            degraded=degraded,
            attempts=tuple(attempts),
            path=path,
        )

    @classmethod
    def failure(
        cls,
        error_kind: ErrorKind,
        detail: str,
        *,
        user_message: str | None = None,
        attempts: tuple[BackendAttempt, ...] = (),
        path: "ConversionPath | None" = None,
    ) -> "ConversionResult":
        return cls(
            success=False,
            error_kind=error_kind,
            detail=detail,
            user_message=user_message or "Conversion failed, please try again later.",
            attempts=tuple(attempts),
            path=path,
        )

    def with_updates(self, **changes: Any) -> "ConversionResult":
        return replace(self, **changes)


__all__ = [
    "AttemptStatus",
    "BackendAttempt",
    "BackendOptions",
    "BackendOutcome",
    "ConversionOptions",
    "ConversionRequest",
    "ConversionResult",
    "ConverterBackend",
]
