"""Fallback renderer: a readable page image synthesised from extracted text."""

from __future__ import annotations

from dataclasses import dataclass

from ...core.config import PipelineSettings
from ...core.formats import DEFAULT_IMAGE_FORMAT, FormatTag
from ...core.utils import get_logger
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_FALLBACK, register_backend
from .extraction import PLACEHOLDER, ExtractedContent, extract_preview
from .layout import TRUNCATION_MARKER, PageLayout, layout_page
from .raster import rasterise

LOGGER = get_logger("intelliconvert.fallback")


@dataclass(frozen=True)
class RenderedPage:
    image_bytes: bytes
    degraded: bool
    truncated: bool


class FallbackRenderer:
    """Turns any input into a single best-effort page image."""

    def __init__(self, settings: PipelineSettings | None = None) -> None:
        self.settings = settings or PipelineSettings()

    def render(
        self,
        data: bytes,
        source_format: FormatTag,
        *,
        image_format: str = DEFAULT_IMAGE_FORMAT,
        page_number: int = 1,
    ) -> RenderedPage:
        settings = self.settings
        content = extract_preview(data, source_format, settings.text_budget)
        layout = layout_page(
            content.paragraphs,
            width=settings.wrap_width,
            page_size=settings.page_size,
            line_height=settings.line_height,
            source_label=source_format.value,
            page_number=page_number,
            attribution=settings.attribution,
            already_truncated=content.truncated,
        )
        image_bytes = rasterise(
            layout,
            page_size=settings.page_size,
            line_height=settings.line_height,
            image_format=image_format,
        )
        LOGGER.info(
            "Rendered fallback page for %s (%d lines%s%s)",
            source_format.value,
            len(layout.body),
            ", truncated" if layout.truncated else "",
            ", placeholder" if content.degraded else "",
        )
        return RenderedPage(image_bytes=image_bytes, degraded=content.degraded, truncated=layout.truncated)


@register_backend("fallback-renderer", pairs=[("pdf", "image")], priority=PRIORITY_FALLBACK)
class FallbackRendererBackend(ConverterBackend):
    """Last resort of the ``pdf -> image`` cascade."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        page = FallbackRenderer(options.settings).render(
            data, source_format, image_format=options.image_format, page_number=options.page_number
        )
        return BackendOutcome.produced(page.image_bytes, degraded=page.degraded)


__all__ = [
    "ExtractedContent",
    "FallbackRenderer",
    "FallbackRendererBackend",
    "PageLayout",
    "PLACEHOLDER",
    "RenderedPage",
    "TRUNCATION_MARKER",
    "extract_preview",
    "layout_page",
    "rasterise",
]
