"""Utility helpers for :mod:`pdfcomposex`."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Sequence

from .context import CancellationContext
from .exceptions import ExternalToolFailedError, ExternalToolUnavailableError

_LOGGER = logging.getLogger("pdfcomposex")

_POLL_INTERVAL = 0.1


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def resolve_path(path: os.PathLike[str] | str) -> Path:
    """Resolve *path* into an absolute :class:`~pathlib.Path`."""

    return Path(path).expanduser().resolve()


def ensure_parent_dir(path: Path) -> None:
    """Create parent directory for *path* if it does not exist."""

    path.parent.mkdir(parents=True, exist_ok=True)


def which(executables: Sequence[str]) -> str | None:
    """Return the first executable from *executables* found on ``PATH``."""

    for candidate in executables:
        found = shutil.which(candidate)
        if found:
            _LOGGER.debug("Detected external tool: %s -> %s", candidate, found)
            return found
    return None


def generate_id() -> str:
    """Return a short random identifier."""

    return uuid.uuid4().hex[:8]


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "500 B", "1.5 KB", "2.0 MB")
    """
    unit = 1024
    if size_bytes < unit:
        return f"{size_bytes} B"
    div, exp = unit, 0
    n = size_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size_bytes / div:.1f} {'KMGTPE'[exp]}B"


def _hidden_window_kwargs() -> Dict[str, Any]:
    """Popen arguments that keep a console window from appearing on Windows."""

    if sys.platform != "win32":
        return {}
    startupinfo = subprocess.STARTUPINFO()  # type: ignore[attr-defined]
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW  # type: ignore[attr-defined]
    startupinfo.wShowWindow = subprocess.SW_HIDE  # type: ignore[attr-defined]
    return {
        "startupinfo": startupinfo,
        "creationflags": subprocess.CREATE_NO_WINDOW,  # type: ignore[attr-defined]
    }


def run_subprocess(
    command: Sequence[str],
    *,
    context: Optional[CancellationContext] = None,
    env: MutableMapping[str, str] | None = None,
    check: bool = True,
    label: Optional[str] = None,
) -> subprocess.CompletedProcess[str]:
    """Run *command* capturing output, bound to *context*.

    Parameters
    ----------
    command:
        Command and arguments to execute.
    context:
        Cancellation context. The process is killed when the context is
        cancelled or its deadline passes.
    env:
        Optional environment overrides.
    check:
        Whether to raise :class:`ExternalToolFailedError` on non-zero exit.
    label:
        Tool name used in error messages; defaults to the executable name.

    Raises
    ------
    ExternalToolUnavailableError
        The executable could not be started.
    ExternalToolFailedError
        The process exited non-zero; carries the captured stderr.
    OperationCancelledError, OperationTimedOutError
        The context finished before the process did.
    """

    context = context or CancellationContext.background()
    tool = label or Path(command[0]).name
    context.raise_if_done()

    _LOGGER.debug("Executing command: %s", " ".join(str(part) for part in command))
    try:
        process = subprocess.Popen(
            [str(part) for part in command],
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            **_hidden_window_kwargs(),
        )
    except OSError as exc:
        raise ExternalToolUnavailableError(f"{tool} could not be started: {exc}") from exc

    while True:
        wait = _POLL_INTERVAL
        remaining = context.remaining()
        if remaining is not None:
            wait = min(wait, remaining)
        try:
            stdout, stderr = process.communicate(timeout=wait)
            break
        except subprocess.TimeoutExpired:
            if context.done:
                process.kill()
                process.communicate()
                _LOGGER.warning("Killed %s (pid %s) before completion", tool, process.pid)
                context.raise_if_done()

    completed = subprocess.CompletedProcess(list(command), process.returncode, stdout, stderr)
    _LOGGER.debug(
        "Command finished with exit code %s\nstdout: %s\nstderr: %s",
        completed.returncode,
        completed.stdout,
        completed.stderr,
    )

    if check and completed.returncode != 0:
        detail = completed.stderr if completed.stderr else f"exit status {completed.returncode}"
        raise ExternalToolFailedError(
            f"{tool} failed: {detail}",
            returncode=completed.returncode,
            stderr=completed.stderr or "",
        )
    return completed


__all__ = [
    "get_logger",
    "resolve_path",
    "ensure_parent_dir",
    "which",
    "generate_id",
    "format_file_size",
    "run_subprocess",
]
