"""Utilities shared by IntelliConvert components."""

from __future__ import annotations

import logging
import shutil
import subprocess
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter
from typing import Iterator, MutableMapping, Sequence


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Configure package-wide logging for command line use."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("intelliconvert").setLevel(level)


def resolve_path(path: str | Path | None) -> Path:
    if path is None:
        raise ValueError("Path must not be None")
    resolved = Path(path).expanduser().resolve()
    return resolved


@contextmanager
def time_block(logger: logging.Logger, message: str) -> Iterator[None]:
    """Context manager that logs the execution time of a code block."""
    start = perf_counter()
    logger.debug("Starting %s", message)
    try:
        yield
    finally:
        logger.debug("%s completed in %.2fs", message, perf_counter() - start)


def format_file_size(size_bytes: int) -> str:
    """Format *size_bytes* into a human-friendly string."""

    step_unit = 1024.0
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size) < step_unit:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.2f} {unit}"
        size /= step_unit
    return f"{size:.2f} TB"


def which(executables: Sequence[str]) -> str | None:
    """Return the first executable from *executables* found on ``PATH``."""

    logger = logging.getLogger("intelliconvert.utils")
    for candidate in executables:
        found = shutil.which(candidate)
        if found:
            logger.debug("Detected external tool: %s -> %s", candidate, found)
            return found
    return None


def run_subprocess(
    command: Sequence[str],
    *,
    timeout: float | None = None,
    env: MutableMapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run *command* capturing output.

    Parameters
    ----------
    command:
        Command and arguments to execute.
    timeout:
        Seconds after which the process is killed and
        :class:`subprocess.TimeoutExpired` is raised.
    env:
        Optional environment overrides.
    check:
        Whether to raise :class:`subprocess.CalledProcessError` on non-zero exit.
    """

    logger = logging.getLogger("intelliconvert.utils")
    logger.debug("Executing command: %s", " ".join(command))
    completed = subprocess.run(
        command,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=check,
        text=True,
        timeout=timeout,
    )
    logger.debug(
        "Command finished with exit code %s\nstdout: %s\nstderr: %s",
        completed.returncode,
        completed.stdout,
        completed.stderr,
    )
    return completed
