"""Raster backends built on Pillow."""

from __future__ import annotations

import io

from PIL import Image

from ...core.formats import DEFAULT_IMAGE_FORMAT, FormatTag, detect_image_format
from ...core.utils import get_logger
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_BUILTIN, PRIORITY_LIBRARY, register_backend

LOGGER = get_logger("intelliconvert.backends.image")

_PILLOW_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}


def encode_image(image: Image.Image, image_format: str = DEFAULT_IMAGE_FORMAT, quality: int = 90) -> bytes:
    """Encode *image* as png, jpeg or webp, flattening alpha where required."""

    pillow_format = _PILLOW_FORMATS.get(image_format)
    if pillow_format is None:
        raise ValueError(f"Unsupported image format: {image_format}")
    if pillow_format == "JPEG" and image.mode not in ("RGB", "L"):
        background = Image.new("RGB", image.size, "white")
        rgba = image.convert("RGBA")
        background.paste(rgba, mask=rgba.getchannel("A"))
        image = background
    elif image.mode not in ("RGB", "RGBA", "L", "LA"):
        image = image.convert("RGBA")

    buffer = io.BytesIO()
    save_kwargs = {"quality": quality} if pillow_format in ("JPEG", "WEBP") else {"optimize": True}
    image.save(buffer, format=pillow_format, **save_kwargs)
    return buffer.getvalue()


def reencode(data: bytes, image_format: str = DEFAULT_IMAGE_FORMAT) -> bytes:
    """Return *data* in *image_format*, untouched when it already is."""

    if detect_image_format(data) == image_format:
        return data
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        return encode_image(image, image_format)


def image_to_pdf(data: bytes, resolution: float = 150.0) -> bytes:
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        if getattr(image, "n_frames", 1) > 1:
            image.seek(0)
        rgb = image.convert("RGB")
    buffer = io.BytesIO()
    rgb.save(buffer, format="PDF", resolution=resolution)
    return buffer.getvalue()


@register_backend("pillow-reencode", pairs=[("image", "image")], priority=PRIORITY_LIBRARY)
class PillowReencodeBackend(ConverterBackend):
    """Re-encode a raster image into the requested encoding."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        LOGGER.debug("Re-encoding %s image as %s", detect_image_format(data), options.image_format)
        return BackendOutcome.produced(reencode(data, options.image_format))


@register_backend("pillow-pdf", pairs=[("image", "pdf")], priority=PRIORITY_BUILTIN)
class PillowPdfBackend(ConverterBackend):
    """Let Pillow write the picture as a one-page PDF."""

    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        return BackendOutcome.produced(image_to_pdf(data))


__all__ = ["encode_image", "reencode", "image_to_pdf", "PillowReencodeBackend", "PillowPdfBackend"]
