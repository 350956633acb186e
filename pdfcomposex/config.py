"""Runtime configuration for :mod:`pdfcomposex`."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

ENV_PREFIX = "PDFCOMPOSEX_"

DEFAULT_THUMBNAIL_TIMEOUT = 60.0
DEFAULT_SINGLE_THUMBNAIL_TIMEOUT = 30.0
MAX_THUMBNAIL_PAGES = 500


def _default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / "pdfcomposex"


def _default_thumbnail_root() -> Path:
    return Path(tempfile.gettempdir()) / "pdfcomposex_thumbs"


@dataclass
class Settings:
    """
    Directory locations, rasterizer discovery and limits.

    Attributes:
        scratch_dir: Directory holding temp artifacts
        thumbnail_root: Root directory of the thumbnail cache
        ghostscript_path: Explicit rasterizer executable; ``None`` searches ``PATH``
        thumbnail_timeout: Seconds allowed for a whole-document thumbnail run
        single_thumbnail_timeout: Seconds allowed for a single-page run
        max_thumbnail_pages: Page ceiling for whole-document thumbnail runs
        default_thumbnail_size: (width, height) used when callers give none
    """
    scratch_dir: Path = field(default_factory=_default_scratch_dir)
    thumbnail_root: Path = field(default_factory=_default_thumbnail_root)
    ghostscript_path: Optional[str] = None
    thumbnail_timeout: float = DEFAULT_THUMBNAIL_TIMEOUT
    single_thumbnail_timeout: float = DEFAULT_SINGLE_THUMBNAIL_TIMEOUT
    max_thumbnail_pages: int = MAX_THUMBNAIL_PAGES
    default_thumbnail_size: Tuple[int, int] = (150, 200)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``PDFCOMPOSEX_*`` environment variables."""

        env = os.environ if environ is None else environ
        settings = cls()
        scratch = env.get(f"{ENV_PREFIX}SCRATCH_DIR")
        if scratch:
            settings.scratch_dir = Path(scratch).expanduser()
        thumbs = env.get(f"{ENV_PREFIX}THUMBNAIL_DIR")
        if thumbs:
            settings.thumbnail_root = Path(thumbs).expanduser()
        gs = env.get(f"{ENV_PREFIX}GHOSTSCRIPT")
        if gs:
            settings.ghostscript_path = gs
        timeout = env.get(f"{ENV_PREFIX}THUMBNAIL_TIMEOUT")
        if timeout:
            try:
                settings.thumbnail_timeout = float(timeout)
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_PREFIX}THUMBNAIL_TIMEOUT must be a number of seconds, got {timeout!r}"
                ) from exc
        return settings


__all__ = [
    "Settings",
    "DEFAULT_THUMBNAIL_TIMEOUT",
    "DEFAULT_SINGLE_THUMBNAIL_TIMEOUT",
    "MAX_THUMBNAIL_PAGES",
]
