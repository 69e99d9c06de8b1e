"""Canonical format tags and the format detector.

Detection follows a fixed priority: an unambiguous declared media type wins,
then the filename extension, then a bounded sniff of the leading bytes. The
detector always answers with exactly one :class:`FormatTag`.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePath

SNIFF_LIMIT = 4096


class FormatTag(str, Enum):
    TEXT = "text"
    PDF = "pdf"
    DOC = "doc"
    DOCX = "docx"
    IMAGE = "image"
    HTML = "html"
    UNKNOWN = "unknown"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.value


CANONICAL_FORMATS: frozenset[FormatTag] = frozenset(tag for tag in FormatTag if tag is not FormatTag.UNKNOWN)

IMAGE_FORMATS = ("png", "jpeg", "webp")
DEFAULT_IMAGE_FORMAT = "png"

_MIME_TYPES: dict[str, FormatTag] = {
    "application/pdf": FormatTag.PDF,
    "application/x-pdf": FormatTag.PDF,
    "application/msword": FormatTag.DOC,
    "application/vnd.ms-word": FormatTag.DOC,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FormatTag.DOCX,
    "text/html": FormatTag.HTML,
    "application/xhtml+xml": FormatTag.HTML,
    "text/plain": FormatTag.TEXT,
    "text/markdown": FormatTag.TEXT,
    "text/csv": FormatTag.TEXT,
}

_EXTENSIONS: dict[str, FormatTag] = {
    ".pdf": FormatTag.PDF,
    ".doc": FormatTag.DOC,
    ".docx": FormatTag.DOCX,
    ".html": FormatTag.HTML,
    ".htm": FormatTag.HTML,
    ".xhtml": FormatTag.HTML,
    ".txt": FormatTag.TEXT,
    ".text": FormatTag.TEXT,
    ".md": FormatTag.TEXT,
    ".csv": FormatTag.TEXT,
    ".log": FormatTag.TEXT,
    ".png": FormatTag.IMAGE,
    ".jpg": FormatTag.IMAGE,
    ".jpeg": FormatTag.IMAGE,
    ".gif": FormatTag.IMAGE,
    ".bmp": FormatTag.IMAGE,
    ".webp": FormatTag.IMAGE,
    ".tif": FormatTag.IMAGE,
    ".tiff": FormatTag.IMAGE,
}

# User and command spellings accepted for target formats.
_ALIASES: dict[str, tuple[FormatTag, str | None]] = {
    "text": (FormatTag.TEXT, None),
    "txt": (FormatTag.TEXT, None),
    "plain": (FormatTag.TEXT, None),
    "pdf": (FormatTag.PDF, None),
    "doc": (FormatTag.DOC, None),
    "word": (FormatTag.DOCX, None),
    "docx": (FormatTag.DOCX, None),
    "html": (FormatTag.HTML, None),
    "htm": (FormatTag.HTML, None),
    "image": (FormatTag.IMAGE, None),
    "img": (FormatTag.IMAGE, "png"),
    "png": (FormatTag.IMAGE, "png"),
    "jpg": (FormatTag.IMAGE, "jpeg"),
    "jpeg": (FormatTag.IMAGE, "jpeg"),
    "webp": (FormatTag.IMAGE, "webp"),
}

_FILE_EXTENSIONS: dict[FormatTag, str] = {
    FormatTag.TEXT: ".txt",
    FormatTag.PDF: ".pdf",
    FormatTag.DOC: ".doc",
    FormatTag.DOCX: ".docx",
    FormatTag.HTML: ".html",
    FormatTag.IMAGE: ".png",
    FormatTag.UNKNOWN: ".bin",
}

_OUTPUT_MIME_TYPES: dict[FormatTag, str] = {
    FormatTag.TEXT: "text/plain",
    FormatTag.PDF: "application/pdf",
    FormatTag.DOC: "application/msword",
    FormatTag.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    FormatTag.HTML: "text/html",
    FormatTag.UNKNOWN: "application/octet-stream",
}

_IMAGE_EXTENSIONS = {"png": ".png", "jpeg": ".jpg", "webp": ".webp", "gif": ".gif", "bmp": ".bmp", "tiff": ".tiff"}

_AMBIGUOUS_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream", "application/zip"}

_OLE2_SIGNATURE = bytes.fromhex("d0cf11e0a1b11ae1")


def normalise_tag(value: str | FormatTag | None) -> FormatTag:
    """Map a user or internal spelling onto a canonical tag (or ``UNKNOWN``)."""

    if isinstance(value, FormatTag):
        return value
    if not value:
        return FormatTag.UNKNOWN
    key = value.strip().lower().lstrip(".")
    entry = _ALIASES.get(key)
    return entry[0] if entry else FormatTag.UNKNOWN


def image_format_hint(value: str | None) -> str | None:
    """Return the raster encoding implied by a spelling such as ``jpg``."""

    if not value:
        return None
    entry = _ALIASES.get(value.strip().lower().lstrip("."))
    return entry[1] if entry else None


def is_canonical(value: str | FormatTag | None) -> bool:
    return normalise_tag(value) in CANONICAL_FORMATS


def format_from_mime(mime_type: str | None) -> FormatTag:
    if not mime_type:
        return FormatTag.UNKNOWN
    essence = mime_type.split(";", 1)[0].strip().lower()
    if essence in _AMBIGUOUS_MIME_TYPES:
        return FormatTag.UNKNOWN
    if essence in _MIME_TYPES:
        return _MIME_TYPES[essence]
    if essence.startswith("image/"):
        return FormatTag.IMAGE
    return FormatTag.UNKNOWN


def format_from_filename(filename: str | None) -> FormatTag:
    if not filename:
        return FormatTag.UNKNOWN
    suffix = PurePath(filename).suffix.lower()
    return _EXTENSIONS.get(suffix, FormatTag.UNKNOWN)


def detect_image_format(data: bytes) -> str | None:
    """Return the raster encoding of *data* or ``None`` when it is not an image."""

    head = bytes(data[:16])
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if head.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if head.startswith((b"GIF87a", b"GIF89a")):
        return "gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "webp"
    if head.startswith(b"BM") and head[6:10] == b"\x00\x00\x00\x00":
        return "bmp"
    if head.startswith((b"II*\x00", b"MM\x00*")):
        return "tiff"
    return None


def sniff(data: bytes) -> FormatTag:
    """Classify *data* by inspecting at most :data:`SNIFF_LIMIT` leading bytes."""

    peek = bytes(data[:SNIFF_LIMIT])
    if not peek:
        return FormatTag.UNKNOWN
    if peek.lstrip()[:5] == b"%PDF-" or peek.startswith(b"%PDF"):
        return FormatTag.PDF
    if peek.startswith(_OLE2_SIGNATURE):
        return FormatTag.DOC
    if peek.startswith(b"PK\x03\x04"):
        if b"word/" in peek or b"[Content_Types].xml" in peek:
            return FormatTag.DOCX
        return FormatTag.UNKNOWN
    if detect_image_format(peek) is not None:
        return FormatTag.IMAGE
    if b"\x00" in peek:
        return FormatTag.UNKNOWN
    try:
        text = peek.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut by the peek boundary is still text.
        if exc.start < len(peek) - 4:
            return FormatTag.UNKNOWN
        text = peek[: exc.start].decode("utf-8")
    lowered = text.lstrip("\ufeff \t\r\n").lower()
    if lowered.startswith("<!doctype html") or lowered.startswith("<html") or "<html" in lowered[:512]:
        return FormatTag.HTML
    return FormatTag.TEXT


def detect(data: bytes, declared_mime_type: str | None = None, filename: str | None = None) -> FormatTag:
    """Classify an input into exactly one canonical tag."""

    declared = format_from_mime(declared_mime_type)
    if declared is not FormatTag.UNKNOWN:
        return declared
    by_name = format_from_filename(filename)
    if by_name is not FormatTag.UNKNOWN:
        return by_name
    return sniff(data)


def extension_for(tag: str | FormatTag, image_format: str | None = None) -> str:
    resolved = normalise_tag(tag)
    if resolved is FormatTag.IMAGE:
        return _IMAGE_EXTENSIONS.get(image_format or DEFAULT_IMAGE_FORMAT, ".png")
    return _FILE_EXTENSIONS[resolved]


def mime_type_for(tag: str | FormatTag, image_format: str | None = None) -> str:
    resolved = normalise_tag(tag)
    if resolved is FormatTag.IMAGE:
        return f"image/{image_format or DEFAULT_IMAGE_FORMAT}"
    return _OUTPUT_MIME_TYPES[resolved]


def matches_signature(data: bytes, tag: str | FormatTag) -> bool:
    """Return ``True`` when *data* looks like the binary *tag* it claims to be.

    Textual formats carry no signature and always match.
    """

    resolved = normalise_tag(tag)
    if resolved is FormatTag.PDF:
        return sniff(data) is FormatTag.PDF
    if resolved is FormatTag.IMAGE:
        return detect_image_format(data) is not None
    if resolved is FormatTag.DOCX:
        return bytes(data[:4]) == b"PK\x03\x04"
    if resolved is FormatTag.DOC:
        return bytes(data[:8]) == _OLE2_SIGNATURE or bytes(data[:4]) == b"PK\x03\x04" or data[:5] == b"{\\rtf"
    return True


__all__ = [
    "FormatTag",
    "CANONICAL_FORMATS",
    "IMAGE_FORMATS",
    "DEFAULT_IMAGE_FORMAT",
    "SNIFF_LIMIT",
    "detect",
    "sniff",
    "detect_image_format",
    "normalise_tag",
    "image_format_hint",
    "is_canonical",
    "format_from_mime",
    "format_from_filename",
    "extension_for",
    "mime_type_for",
    "matches_signature",
]
