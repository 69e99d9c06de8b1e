"""HTML page builder for ``text -> html``."""

from __future__ import annotations

from datetime import datetime

from ...core.formats import FormatTag
from ...core.sanitizer import decode_text, escape_markup, extract_title, sanitize, split_paragraphs
from ..common.interfaces import BackendOptions, BackendOutcome, ConverterBackend
from ..common.pipeline import PRIORITY_BUILTIN, register_backend

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }}
h1 {{ color: #333; border-bottom: 2px solid #007acc; padding-bottom: 10px; }}
p {{ margin-bottom: 15px; text-align: justify; }}
.footer {{ margin-top: 50px; font-size: 12px; color: #666; text-align: center; }}
</style>
</head>
<body>
{heading}{body}
<div class="footer">Generated by {attribution} on {stamp}</div>
</body>
</html>
"""


def render_html_page(text: str, *, title: str | None = None, attribution: str = "IntelliConvert") -> str:
    """Wrap sanitised *text* into a standalone, escaped HTML document."""

    body = text
    if not title:
        title, body = extract_title(text)
    paragraphs = []
    for paragraph in split_paragraphs(body):
        lines = [escape_markup(line) for line in paragraph.split("\n")]
        paragraphs.append("<p>" + "<br>".join(lines) + "</p>")
    return _PAGE_TEMPLATE.format(
        title=escape_markup(title or "Converted document"),
        heading=f"<h1>{escape_markup(title)}</h1>\n" if title else "",
        body="\n".join(paragraphs),
        attribution=escape_markup(attribution),
        stamp=datetime.now().strftime("%Y-%m-%d %H:%M"),
    )


@register_backend("html-builder", pairs=[("text", "html")], priority=PRIORITY_BUILTIN)
class HtmlBuilderBackend(ConverterBackend):
    def attempt(
        self,
        data: bytes,
        source_format: FormatTag,
        target_format: FormatTag,
        options: BackendOptions,
    ) -> BackendOutcome:
        text = sanitize(decode_text(data))
        if not text:
            return BackendOutcome.failed("no text to publish")
        page = render_html_page(text, title=options.title, attribution=options.settings.attribution)
        return BackendOutcome.produced(page.encode("utf-8"))


__all__ = ["render_html_page", "HtmlBuilderBackend"]
