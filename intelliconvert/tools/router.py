"""Conversion router: turns a (source, target) pair into a conversion path."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..core.exceptions import UnsupportedFormatPairError
from ..core.formats import CANONICAL_FORMATS, FormatTag, normalise_tag
from .common.pipeline import BackendRegistry

# Intermediates tried, in order, when a pair has no direct table entry.
INTERMEDIATE_PREFERENCE: tuple[FormatTag, ...] = (
    FormatTag.PDF,
    FormatTag.DOCX,
    FormatTag.TEXT,
    FormatTag.HTML,
    FormatTag.DOC,
    FormatTag.IMAGE,
)


class PathKind(str, Enum):
    PASSTHROUGH = "passthrough"
    DIRECT = "direct"
    TWO_HOP = "two_hop"


@dataclass(frozen=True)
class ConversionPath:
    """The chain of formats a conversion walks through."""

    kind: PathKind
    formats: tuple[FormatTag, ...]

    @classmethod
    def passthrough(cls, fmt: FormatTag) -> "ConversionPath":
        return cls(PathKind.PASSTHROUGH, (fmt,))

    @classmethod
    def direct(cls, source: FormatTag, target: FormatTag) -> "ConversionPath":
        return cls(PathKind.DIRECT, (source, target))

    @classmethod
    def two_hop(cls, source: FormatTag, intermediate: FormatTag, target: FormatTag) -> "ConversionPath":
        return cls(PathKind.TWO_HOP, (source, intermediate, target))

    @property
    def source(self) -> FormatTag:
        return self.formats[0]

    @property
    def target(self) -> FormatTag:
        return self.formats[-1]

    @property
    def intermediate(self) -> FormatTag | None:
        return self.formats[1] if self.kind is PathKind.TWO_HOP else None

    @property
    def segments(self) -> list[tuple[FormatTag, FormatTag]]:
        return list(zip(self.formats, self.formats[1:]))

    @property
    def is_passthrough(self) -> bool:
        return self.kind is PathKind.PASSTHROUGH

    def describe(self) -> str:
        return " -> ".join(fmt.value for fmt in self.formats)


def _label(value: str | FormatTag | None) -> str:
    if isinstance(value, FormatTag):
        return value.value
    return str(value or "unknown")


class ConversionRouter:
    """Consults the capability table; never invokes a backend."""

    def __init__(self, registry: BackendRegistry) -> None:
        self.registry = registry

    def route(self, source: str | FormatTag, target: str | FormatTag, *, reencode: bool = False) -> ConversionPath:
        source_tag = normalise_tag(source)
        target_tag = normalise_tag(target)
        if source_tag not in CANONICAL_FORMATS or target_tag not in CANONICAL_FORMATS:
            raise UnsupportedFormatPairError(_label(source), _label(target))

        if source_tag is target_tag:
            if reencode and self.registry.has_pair(source_tag, target_tag):
                return ConversionPath.direct(source_tag, target_tag)
            return ConversionPath.passthrough(source_tag)

        if self.registry.has_pair(source_tag, target_tag):
            return ConversionPath.direct(source_tag, target_tag)

        if not self.registry.is_blocked(source_tag, target_tag):
            for intermediate in INTERMEDIATE_PREFERENCE:
                if intermediate in (source_tag, target_tag):
                    continue
                if self.registry.has_pair(source_tag, intermediate) and self.registry.has_pair(intermediate, target_tag):
                    return ConversionPath.two_hop(source_tag, intermediate, target_tag)

        raise UnsupportedFormatPairError(source_tag.value, target_tag.value)

    def try_route(
        self, source: str | FormatTag, target: str | FormatTag, *, reencode: bool = False
    ) -> ConversionPath | None:
        try:
            return self.route(source, target, reencode=reencode)
        except UnsupportedFormatPairError:
            return None

    def supported_targets(self, source: str | FormatTag) -> list[FormatTag]:
        """Every target reachable from *source*, excluding the pass-through."""

        source_tag = normalise_tag(source)
        return [
            target
            for target in sorted(CANONICAL_FORMATS, key=lambda tag: tag.value)
            if target is not source_tag and self.try_route(source_tag, target) is not None
        ]


__all__ = ["ConversionPath", "ConversionRouter", "INTERMEDIATE_PREFERENCE", "PathKind"]
