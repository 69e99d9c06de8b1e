"""Backend registry: the capability table consulted by router and cascade."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from ...core.formats import FormatTag, normalise_tag
from .interfaces import ConverterBackend

Pair = tuple[FormatTag, FormatTag]

# Priorities order each cascade: remote services, external tools, libraries, fallbacks.
PRIORITY_REMOTE = 10
PRIORITY_EXTERNAL = 20
PRIORITY_LIBRARY = 30
PRIORITY_BUILTIN = 40
PRIORITY_FALLBACK = 90

# Compositions that never become two-hop paths because nothing survives them.
BLOCKED_PAIRS: frozenset[Pair] = frozenset(
    {
        (FormatTag.IMAGE, FormatTag.TEXT),
        (FormatTag.IMAGE, FormatTag.HTML),
    }
)


@dataclass(frozen=True)
class _Entry:
    backend: ConverterBackend
    priority: int
    order: int


class BackendRegistry:
    """Registry mapping format pairs to their ordered backend cascade."""

    def __init__(self, blocked: Iterable[Pair] = BLOCKED_PAIRS) -> None:
        self._backends: Dict[str, ConverterBackend] = {}
        self._table: Dict[Pair, list[_Entry]] = {}
        self._blocked = frozenset(blocked)
        self._order = 0

    def register(
        self,
        backend: ConverterBackend,
        pairs: Iterable[tuple[str | FormatTag, str | FormatTag]],
        priority: int = PRIORITY_LIBRARY,
    ) -> ConverterBackend:
        name = backend.name
        if name in self._backends:
            raise ValueError(f"Backend '{name}' is already registered")
        resolved = [(normalise_tag(source), normalise_tag(target)) for source, target in pairs]
        for source, target in resolved:
            if FormatTag.UNKNOWN in (source, target):
                raise ValueError(f"Backend '{name}' declares a non-canonical pair: {source}->{target}")
            if (source, target) in self._blocked:
                raise ValueError(f"Backend '{name}' declares blocked pair {source.value}->{target.value}")
        self._backends[name] = backend
        for pair in resolved:
            self._order += 1
            self._table.setdefault(pair, []).append(_Entry(backend, priority, self._order))
            self._table[pair].sort(key=lambda entry: (entry.priority, entry.order))
        return backend

    def backends_for(self, source: str | FormatTag, target: str | FormatTag) -> list[ConverterBackend]:
        """Return the cascade for a direct pair, best candidate first."""

        pair = (normalise_tag(source), normalise_tag(target))
        return [entry.backend for entry in self._table.get(pair, [])]

    def has_pair(self, source: str | FormatTag, target: str | FormatTag) -> bool:
        return bool(self._table.get((normalise_tag(source), normalise_tag(target))))

    def is_blocked(self, source: str | FormatTag, target: str | FormatTag) -> bool:
        return (normalise_tag(source), normalise_tag(target)) in self._blocked

    def pairs(self) -> list[Pair]:
        return sorted(self._table, key=lambda pair: (pair[0].value, pair[1].value))

    def names(self) -> Iterable[str]:
        return sorted(self._backends.keys())

    def get(self, name: str) -> ConverterBackend | None:
        return self._backends.get(name)


registry = BackendRegistry()


def register_backend(
    name: str,
    pairs: Iterable[tuple[str | FormatTag, str | FormatTag]],
    priority: int = PRIORITY_LIBRARY,
):
    def decorator(cls: type[ConverterBackend]) -> type[ConverterBackend]:
        cls.name = name
        registry.register(cls(), pairs, priority)
        return cls

    return decorator


__all__ = [
    "BackendRegistry",
    "BLOCKED_PAIRS",
    "Pair",
    "PRIORITY_REMOTE",
    "PRIORITY_EXTERNAL",
    "PRIORITY_LIBRARY",
    "PRIORITY_BUILTIN",
    "PRIORITY_FALLBACK",
    "registry",
    "register_backend",
]
