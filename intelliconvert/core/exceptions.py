"""Custom exception types and the error taxonomy for IntelliConvert."""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class ErrorKind(str, Enum):
    """Failure categories surfaced on :class:`ConversionResult`."""

    UNSUPPORTED_FORMAT_PAIR = "unsupported_format_pair"
    BACKEND_EXHAUSTED = "backend_exhausted"
    RESOURCE_FAULT = "resource_fault"


class IntelliConvertError(Exception):
    """Base exception for all IntelliConvert errors."""

    kind: ErrorKind | None = None

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown conversion error occurred."

    @property
    def user_message(self) -> str:
        return "Conversion failed, please try again later."


class UnsupportedFormatPairError(IntelliConvertError):
    """Raised when no direct or two-hop path exists for a format pair."""

    kind = ErrorKind.UNSUPPORTED_FORMAT_PAIR

    def __init__(self, source: str, target: str, message: str = "") -> None:
        self.source = source
        self.target = target
        super().__init__(message)

    @property
    def default_message(self) -> str:
        return f"No conversion path from '{self.source}' to '{self.target}'."

    @property
    def user_message(self) -> str:
        return f"Conversion from {self.source.upper()} to {self.target.upper()} is not supported."


class BackendExhaustedError(IntelliConvertError):
    """Raised when every backend of a cascade failed or timed out."""

    kind = ErrorKind.BACKEND_EXHAUSTED

    def __init__(self, segment: tuple[str, str], reasons: Sequence[str] = (), message: str = "") -> None:
        self.segment = segment
        self.reasons = list(reasons)
        super().__init__(message)

    @property
    def default_message(self) -> str:
        source, target = self.segment
        return f"All converters failed for {source} -> {target}."


class ResourceFaultError(IntelliConvertError):
    """Raised when scratch storage cannot be allocated or released."""

    kind = ErrorKind.RESOURCE_FAULT

    @property
    def default_message(self) -> str:
        return "Scratch storage could not be allocated."


class BackendError(IntelliConvertError):
    """Raised inside a converter backend when a service reports a failed job."""

    @property
    def default_message(self) -> str:
        return "Converter backend failed."


__all__ = [
    "ErrorKind",
    "IntelliConvertError",
    "UnsupportedFormatPairError",
    "BackendExhaustedError",
    "ResourceFaultError",
    "BackendError",
]
