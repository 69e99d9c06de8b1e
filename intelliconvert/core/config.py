"""Static budgets and environment-driven settings for the conversion pipeline."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

# Remote calls are bounded in seconds, local CPU-bound work more generously.
REMOTE_TIMEOUT = 10.0
LOCAL_TIMEOUT = 45.0

# Fallback renderer budgets.
TEXT_BUDGET = 3000
WRAP_WIDTH = 80
PAGE_SIZE = (800, 1000)
LINE_HEIGHT = 18

# Outputs shorter than this are treated as failed conversions.
MIN_OUTPUT_BYTES: Mapping[str, int] = {
    "pdf": 64,
    "doc": 512,
    "docx": 512,
    "image": 64,
    "html": 16,
    "text": 1,
}

_ENV_PREFIX = "INTELLICONVERT_"


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{_ENV_PREFIX}{name} must be positive, got {raw!r}")
    return value


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(_ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class PipelineSettings:
    """Behavioural budgets shared by the router, cascade and backends."""

    remote_timeout: float = REMOTE_TIMEOUT
    local_timeout: float = LOCAL_TIMEOUT
    text_budget: int = TEXT_BUDGET
    wrap_width: int = WRAP_WIDTH
    page_size: tuple[int, int] = PAGE_SIZE
    line_height: int = LINE_HEIGHT
    min_output_bytes: Mapping[str, int] = field(default_factory=lambda: dict(MIN_OUTPUT_BYTES))
    scratch_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    external_tools: bool = True
    cloudconvert_api_key: str | None = None
    convertio_api_key: str | None = None
    html_pdf_url: str | None = None
    attribution: str = "IntelliConvert"

    def __post_init__(self) -> None:
        if self.remote_timeout <= 0 or self.local_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.wrap_width < 10:
            raise ValueError("wrap_width must be at least 10 characters")
        if self.text_budget <= 0:
            raise ValueError("text_budget must be positive")
        if self.line_height <= 0:
            raise ValueError("line_height must be positive")
        if len(self.page_size) != 2 or min(self.page_size) <= 0:
            raise ValueError("page_size must be a positive (width, height) pair")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "PipelineSettings":
        """Build settings from ``INTELLICONVERT_*`` and service key variables."""

        source = os.environ if env is None else env
        scratch_root = source.get(_ENV_PREFIX + "SCRATCH_DIR")
        return cls(
            remote_timeout=_env_float(source, "REMOTE_TIMEOUT", REMOTE_TIMEOUT),
            local_timeout=_env_float(source, "LOCAL_TIMEOUT", LOCAL_TIMEOUT),
            scratch_root=Path(scratch_root) if scratch_root else Path(tempfile.gettempdir()),
            external_tools=_env_flag(source, "EXTERNAL_TOOLS", True),
            cloudconvert_api_key=source.get("CLOUDCONVERT_API_KEY") or None,
            convertio_api_key=source.get("CONVERTIO_API_KEY") or None,
            html_pdf_url=source.get(_ENV_PREFIX + "HTML_PDF_URL") or None,
        )

    def offline(self) -> "PipelineSettings":
        """Return a copy that never reaches remote services or external processes."""

        return replace(
            self,
            external_tools=False,
            cloudconvert_api_key=None,
            convertio_api_key=None,
            html_pdf_url=None,
        )

    def minimum_output(self, target_format: str) -> int:
        return self.min_output_bytes.get(target_format, 1)


__all__ = [
    "PipelineSettings",
    "REMOTE_TIMEOUT",
    "LOCAL_TIMEOUT",
    "TEXT_BUDGET",
    "WRAP_WIDTH",
    "PAGE_SIZE",
    "LINE_HEIGHT",
    "MIN_OUTPUT_BYTES",
]
