"""Request-scoped scratch storage.

Every pipeline run owns one :class:`ScratchSpace`. Files created through it
live in a dedicated directory that is removed when the space is closed, on
success, failure, timeout and exception paths alike.
"""

from __future__ import annotations

import logging
import secrets
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from .exceptions import ResourceFaultError
from .formats import extension_for

_LOGGER = logging.getLogger("intelliconvert.scratch")

SCRATCH_ROLES = ("source", "intermediate", "work")


@dataclass(frozen=True)
class ScratchFile:
    """A file owned by exactly one scratch space."""

    path: Path
    format: str
    role: str


class ScratchSpace:
    """Owns every temporary file of a single conversion run."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._directory: Path | None = None
        self._live: dict[Path, ScratchFile] = {}
        self._history: list[ScratchFile] = []
        self._counter = 0
        self._closed = False

    def __enter__(self) -> "ScratchSpace":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def directory(self) -> Path | None:
        return self._directory

    @property
    def history(self) -> tuple[ScratchFile, ...]:
        return tuple(self._history)

    @property
    def live_files(self) -> tuple[ScratchFile, ...]:
        return tuple(self._live.values())

    def open(self) -> Path:
        if self._closed:
            raise ResourceFaultError("Scratch space has already been closed.")
        if self._directory is not None:
            return self._directory
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        candidate = self.root / f"intelliconvert-{stamp}-{secrets.token_hex(4)}"
        try:
            candidate.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise ResourceFaultError(f"Unable to create scratch directory under {self.root}: {exc}") from exc
        self._directory = candidate
        _LOGGER.debug("Opened scratch directory %s", candidate)
        return candidate

    def acquire(self, format: str, role: str = "work") -> ScratchFile:
        """Reserve a unique, not yet existing path for a file of *format*."""

        if role not in SCRATCH_ROLES:
            raise ValueError(f"Unknown scratch role: {role!r}")
        directory = self.open()
        self._counter += 1
        path = directory / f"{self._counter:03d}-{role}{extension_for(format)}"
        scratch = ScratchFile(path=path, format=str(format), role=role)
        self._live[path] = scratch
        self._history.append(scratch)
        return scratch

    def write(self, data: bytes, format: str, role: str = "work") -> ScratchFile:
        scratch = self.acquire(format, role)
        try:
            scratch.path.write_bytes(data)
        except OSError as exc:
            self.release(scratch)
            raise ResourceFaultError(f"Unable to write scratch file {scratch.path.name}: {exc}") from exc
        return scratch

    def release(self, scratch: ScratchFile) -> None:
        """Delete *scratch* now; releasing twice is harmless."""

        self._live.pop(scratch.path, None)
        try:
            scratch.path.unlink(missing_ok=True)
        except OSError as exc:
            _LOGGER.warning("Failed to remove scratch file %s: %s", scratch.path, exc)

    @contextmanager
    def scratch(self, format: str, role: str = "work") -> Iterator[tuple[Path, Callable[[], None]]]:
        """Scoped acquisition yielding ``(path, release)``; released on exit."""

        handle = self.acquire(format, role)
        try:
            yield handle.path, lambda: self.release(handle)
        finally:
            self.release(handle)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for scratch in list(self._live.values()):
            self.release(scratch)
        if self._directory is None:
            return
        try:
            shutil.rmtree(self._directory)
        except FileNotFoundError:
            pass
        except OSError as exc:
            _LOGGER.warning("Resource fault while removing scratch directory %s: %s", self._directory, exc)
        else:
            _LOGGER.debug("Removed scratch directory %s", self._directory)


__all__ = ["ScratchFile", "ScratchSpace", "SCRATCH_ROLES"]
