"""Namespace for the conversion tools and pluggable converter backends."""

from __future__ import annotations

from .common.pipeline import registry


def load_builtin_backends() -> None:
    from .backends import remote  # noqa: F401  # remote services first in every cascade
    from .backends import office  # noqa: F401
    from .backends import pdf  # noqa: F401
    from .backends import image  # noqa: F401
    from .backends import docx  # noqa: F401
    from .backends import text  # noqa: F401
    from .backends import html  # noqa: F401
    from . import fallback  # noqa: F401


__all__ = ["registry", "load_builtin_backends"]
