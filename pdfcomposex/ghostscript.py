"""Ghostscript discovery and command construction."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .context import CancellationContext
from .exceptions import ExternalToolFailedError, ExternalToolUnavailableError
from .types import CompressionPreset
from .utils import run_subprocess, which

_LOGGER = logging.getLogger("pdfcomposex.ghostscript")

GHOSTSCRIPT_EXECUTABLES: Sequence[str] = ("gs", "gswin64c", "gswin32c")

THUMBNAIL_DPI = 96
THUMBNAIL_PATTERN = "page_%03d.png"


@dataclass(frozen=True)
class PresetProfile:
    """Rasterizer settings for a :class:`CompressionPreset`."""

    setting: str
    description: str


PRESET_PROFILES: Dict[CompressionPreset, PresetProfile] = {
    CompressionPreset.SCREEN: PresetProfile("/screen", "Screen quality (72 dpi, smallest)"),
    CompressionPreset.EBOOK: PresetProfile("/ebook", "eBook quality (150 dpi)"),
    CompressionPreset.PRINTER: PresetProfile("/printer", "Printer quality (300 dpi)"),
    CompressionPreset.PREPRESS: PresetProfile("/prepress", "Prepress quality (300 dpi, color preserving)"),
    CompressionPreset.DEFAULT: PresetProfile("/default", "Default quality"),
}


def install_instructions(platform: Optional[str] = None) -> str:
    """Return platform-specific Ghostscript install instructions."""

    platform = platform or sys.platform
    if platform == "darwin":
        return "Install Ghostscript with: brew install ghostscript"
    if platform.startswith("win"):
        return "Download Ghostscript from: https://ghostscript.com/releases/gsdnld.html"
    if platform.startswith("linux"):
        return "Install Ghostscript with: sudo apt install ghostscript"
    return "Please install Ghostscript for your platform"


def find_ghostscript(explicit: Optional[str] = None) -> str:
    """Locate the Ghostscript executable.

    An explicit path wins when it exists; otherwise ``PATH`` is searched.
    """

    if explicit:
        if Path(explicit).is_file() and os.access(explicit, os.X_OK):
            return explicit
        found = which((explicit,))
        if found:
            return found
        _LOGGER.warning("Configured Ghostscript %s not found; searching PATH", explicit)

    executable = which(GHOSTSCRIPT_EXECUTABLES)
    if executable is None:
        raise ExternalToolUnavailableError(
            f"ghostscript not found. {install_instructions()}"
        )
    return executable


def check_ghostscript(
    explicit: Optional[str] = None,
    *,
    context: Optional[CancellationContext] = None,
) -> str:
    """Return the Ghostscript version string, failing when it cannot run."""

    executable = find_ghostscript(explicit)
    context = (context or CancellationContext.background()).with_timeout(10)
    try:
        completed = run_subprocess([executable, "--version"], context=context, label="ghostscript")
    except ExternalToolFailedError as exc:
        raise ExternalToolUnavailableError(
            f"ghostscript found but failed to run: {exc}"
        ) from exc
    return completed.stdout.strip()


def build_compress_command(
    executable: str,
    source: Path,
    output: Path,
    preset: CompressionPreset,
) -> List[str]:
    """Construct the Ghostscript ``pdfwrite`` command for *preset*."""

    profile = PRESET_PROFILES[preset]
    return [
        executable,
        "-q",
        "-dNOPAUSE",
        "-dBATCH",
        "-dSAFER",
        "-sDEVICE=pdfwrite",
        "-dCompatibilityLevel=1.4",
        f"-dPDFSETTINGS={profile.setting}",
        "-dEmbedAllFonts=true",
        "-dSubsetFonts=true",
        "-dCompressFonts=true",
        "-dColorImageDownsampleType=/Bicubic",
        "-dGrayImageDownsampleType=/Bicubic",
        "-dMonoImageDownsampleType=/Bicubic",
        f"-sOutputFile={output}",
        str(source),
    ]


def build_thumbnail_command(
    executable: str,
    source: Path,
    output: Path,
    width: int,
    height: int,
    *,
    page: Optional[int] = None,
) -> List[str]:
    """Construct the Ghostscript ``png16m`` command.

    *output* is a ``%03d`` filename pattern for whole-document runs. With
    *page* (1-based) only that page is rendered, to the exact *output* file.
    """

    command = [
        executable,
        "-dSAFER",
        "-dNOPAUSE",
        "-dBATCH",
        "-sDEVICE=png16m",
        f"-r{THUMBNAIL_DPI}",
        f"-g{width}x{height}",
        "-dPDFFitPage",
        "-dTextAlphaBits=4",
        "-dGraphicsAlphaBits=4",
    ]
    if page is not None:
        command.extend([f"-dFirstPage={page}", f"-dLastPage={page}"])
    command.extend([f"-sOutputFile={output}", str(source)])
    return command


__all__ = [
    "GHOSTSCRIPT_EXECUTABLES",
    "PRESET_PROFILES",
    "PresetProfile",
    "THUMBNAIL_PATTERN",
    "build_compress_command",
    "build_thumbnail_command",
    "check_ghostscript",
    "find_ghostscript",
    "install_instructions",
]
