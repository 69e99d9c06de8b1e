"""Text clean-up applied before any textual conversion."""

from __future__ import annotations

import re

_PICTOGRAPHS = re.compile(
    "["
    "\U0001F1E0-\U0001F1FF"  # flags
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\U0001FA70-\U0001FAFF"
    "☀-⛿"  # misc symbols
    "✀-➿"  # dingbats
    "︎️"  # variation selectors
    "‍"  # zero width joiner
    "]+"
)
_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v ]+")
_BLANK_RUNS = re.compile(r"\n\s*\n+")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9\s\-_.]")
_DOCUMENT_SUFFIX = re.compile(r"\.(docx?|pdf|txt|html?|png|jpe?g|webp)$", re.IGNORECASE)
_TIMESTAMP_SUFFIX = re.compile(r"_\d+$")

_MARKUP_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}


def strip_pictographs(text: str) -> str:
    """Remove emoji and other decorative pictographic glyphs."""

    return _PICTOGRAPHS.sub("", text)


def normalise_whitespace(text: str) -> str:
    """Collapse horizontal whitespace and keep at most one blank line between paragraphs."""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_HORIZONTAL_SPACE.sub(" ", line).strip() for line in text.split("\n")]
    joined = "\n".join(lines)
    return _BLANK_RUNS.sub("\n\n", joined).strip()


def sanitize(text: str) -> str:
    return normalise_whitespace(strip_pictographs(text))


def split_paragraphs(text: str) -> list[str]:
    """Split *text* on blank lines, dropping empty paragraphs."""

    return [chunk.strip() for chunk in _PARAGRAPH_BREAK.split(text) if chunk.strip()]


def extract_title(text: str, max_length: int = 60) -> tuple[str | None, str]:
    """Use a short first line as the title when more content follows it.

    Returns ``(title, remaining)``; ``title`` is ``None`` when the first line
    does not qualify, in which case ``remaining`` is the untouched text.
    """

    lines = [line for line in text.split("\n") if line.strip()]
    if len(lines) < 2:
        return None, text
    first = lines[0].strip()
    if len(first) > max_length:
        return None, text
    _, _, rest = text.lstrip().partition(lines[0].lstrip())
    return first, rest.strip()


def sanitize_filename(name: str, max_length: int = 50, default: str = "converted") -> str:
    """Turn a title or uploaded filename into a safe base name (no extension)."""

    candidate = strip_pictographs(name).strip()
    candidate = _DOCUMENT_SUFFIX.sub("", candidate)
    candidate = _TIMESTAMP_SUFFIX.sub("", candidate)
    candidate = _UNSAFE_FILENAME_CHARS.sub("", candidate)
    candidate = re.sub(r"\s+", "_", candidate.strip())
    candidate = candidate.strip("._")[:max_length].rstrip("._")
    return candidate or default


def escape_markup(text: str) -> str:
    """Escape characters that are significant in HTML, XML and SVG."""

    return "".join(_MARKUP_ESCAPES.get(char, char) for char in text)


def decode_text(data: bytes) -> str:
    """Decode bytes as UTF-8 (BOM aware), falling back to latin-1."""

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1", errors="replace")


__all__ = [
    "strip_pictographs",
    "normalise_whitespace",
    "sanitize",
    "split_paragraphs",
    "extract_title",
    "sanitize_filename",
    "escape_markup",
    "decode_text",
]
