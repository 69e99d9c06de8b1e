"""Rasterise a :class:`PageLayout` with Pillow."""

from __future__ import annotations

from PIL import Image, ImageDraw, ImageFont

from ..backends.image import encode_image
from .layout import CONTENT_PADDING, FOOTER_HEIGHT, HEADER_HEIGHT, PageLayout

_MARGIN_X = 40
_BACKGROUND = "white"
_BAND = (240, 243, 247)
_RULE = (0, 122, 204)
_TEXT = (33, 33, 33)
_MUTED = (110, 110, 110)


def _draw_line(draw: ImageDraw.ImageDraw, xy: tuple[int, int], text: str, font, fill) -> None:
    try:
        draw.text(xy, text, font=font, fill=fill)
    except UnicodeEncodeError:
        # Bitmap fonts only cover latin-1.
        draw.text(xy, text.encode("latin-1", "replace").decode("latin-1"), font=font, fill=fill)


def rasterise(
    layout: PageLayout,
    *,
    page_size: tuple[int, int],
    line_height: int,
    image_format: str = "png",
) -> bytes:
    width, height = page_size
    image = Image.new("RGB", (width, height), _BACKGROUND)
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()

    draw.rectangle([(0, 0), (width, HEADER_HEIGHT)], fill=_BAND)
    draw.line([(0, HEADER_HEIGHT), (width, HEADER_HEIGHT)], fill=_RULE, width=2)
    y = 25
    for line in layout.header:
        _draw_line(draw, (_MARGIN_X, y), line, font, _TEXT)
        y += line_height + 4

    y = HEADER_HEIGHT + CONTENT_PADDING
    for line in layout.body:
        if line:
            _draw_line(draw, (_MARGIN_X, y), line, font, _TEXT)
        y += line_height

    footer_top = height - FOOTER_HEIGHT
    draw.rectangle([(0, footer_top), (width, height)], fill=_BAND)
    draw.line([(0, footer_top), (width, footer_top)], fill=_RULE, width=1)
    y = footer_top + 15
    for line in layout.footer:
        _draw_line(draw, (_MARGIN_X, y), line, font, _MUTED)
        y += line_height

    return encode_image(image, image_format)


__all__ = ["rasterise"]
