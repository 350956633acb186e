"""Compression pipeline driving Ghostscript's ``pdfwrite`` device."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .context import CancellationContext
from .document import has_pdf_extension
from .events import EventSink, ProgressReporter
from .exceptions import (
    EmptyDocumentError,
    IOFailureError,
    NotADocumentError,
    PdfComposeError,
    UnreadableDocumentError,
)
from .ghostscript import PRESET_PROFILES, build_compress_command, find_ghostscript
from .scratch import ScratchStore
from .types import CompressionPreset, CompressionResult
from .utils import format_file_size, run_subprocess

_LOGGER = logging.getLogger("pdfcomposex.compress")

PresetLike = Union[CompressionPreset, str, None]


class CompressionStage(str, Enum):
    """Linear stages of a compression run."""

    START = "start"
    STAT_SOURCE = "stat-source"
    RESOLVE_PRESET = "resolve-preset"
    ALLOCATE_OUTPUT = "allocate-output"
    INVOKE_RASTERIZER = "invoke-rasterizer"
    STAT_OUTPUT = "stat-output"
    COMPUTE_SAVINGS = "compute-savings"
    DONE = "done"
    FAILED = "failed"


def resolve_preset(preset: PresetLike) -> CompressionPreset:
    """Map *preset* to a known preset, falling back to ``default``."""

    if isinstance(preset, CompressionPreset):
        return preset
    try:
        return CompressionPreset(str(preset).strip().lower())
    except ValueError:
        _LOGGER.debug("Unknown preset %r; using default", preset)
        return CompressionPreset.DEFAULT


def calculate_savings(original_size: int, compressed_size: int) -> int:
    """Percentage saved, truncated; negative when the output grew."""

    if original_size == 0:
        return 0
    return 100 - (compressed_size * 100 // original_size)


class CompressionPipeline:
    """Compresses a PDF into a temp artifact owned by the caller."""

    def __init__(self, scratch: ScratchStore, *, ghostscript_path: Optional[str] = None) -> None:
        self.scratch = scratch
        self.ghostscript_path = ghostscript_path

    def run(
        self,
        input_path: Union[str, Path],
        preset: PresetLike = CompressionPreset.DEFAULT,
        *,
        context: Optional[CancellationContext] = None,
        sink: Optional[EventSink] = None,
    ) -> CompressionResult:
        """Compress *input_path* with *preset*.

        The stages run strictly in :class:`CompressionStage` order. Any failure
        releases the allocated output before the error propagates.
        """

        context = context or CancellationContext.background()
        events = ProgressReporter(sink, "compress")
        source = Path(input_path)
        stage = CompressionStage.START

        try:
            with self.scratch.scope() as scope:
                stage = CompressionStage.STAT_SOURCE
                if not has_pdf_extension(source):
                    raise NotADocumentError(f"file is not a PDF: {source}")
                try:
                    original_size = source.stat().st_size
                except OSError as exc:
                    raise UnreadableDocumentError(f"cannot access file: {exc}") from exc
                if original_size == 0:
                    raise EmptyDocumentError(f"file is empty: {source}")
                events.progress(10, "Preparing compression...")
                events.log(f"Input file: {source.name} ({format_file_size(original_size)})")

                stage = CompressionStage.RESOLVE_PRESET
                resolved = resolve_preset(preset)
                profile = PRESET_PROFILES[resolved]
                events.log(f"Using preset: {profile.description}")

                stage = CompressionStage.ALLOCATE_OUTPUT
                output_path = scope.allocate("compressed", ".pdf")

                stage = CompressionStage.INVOKE_RASTERIZER
                executable = find_ghostscript(self.ghostscript_path)
                events.log(f"Using Ghostscript: {executable}")
                events.progress(20, "Running Ghostscript compression...")
                command = build_compress_command(executable, source, output_path, resolved)
                events.progress(50, "Compressing PDF...")
                run_subprocess(command, context=context, label="ghostscript")
                events.progress(90, "Finalizing...")

                stage = CompressionStage.STAT_OUTPUT
                try:
                    compressed_size = output_path.stat().st_size
                except OSError as exc:
                    raise IOFailureError(f"cannot read compressed file: {exc}") from exc

                stage = CompressionStage.COMPUTE_SAVINGS
                savings = calculate_savings(original_size, compressed_size)
                events.log(
                    f"Original: {format_file_size(original_size)}, "
                    f"Compressed: {format_file_size(compressed_size)}"
                )
                if savings < 0:
                    _LOGGER.warning(
                        "Compressed file %s is larger than original (%d%%)", output_path, savings
                    )
                    events.log("Warning: Compressed file is larger than original")
                else:
                    events.log(f"Saved: {savings}%")

                scope.keep(output_path)
                stage = CompressionStage.DONE
                events.progress(100, "Complete")
        except PdfComposeError:
            _LOGGER.error(
                "Compression of %s moved to %s from stage %s",
                source,
                CompressionStage.FAILED.value,
                stage.value,
            )
            raise

        _LOGGER.info("Compressed %s (%s) into %s", source, resolved.value, output_path)
        return CompressionResult(
            success=True,
            original_size=original_size,
            compressed_size=compressed_size,
            savings_percent=savings,
            output_path=str(output_path),
            preset=resolved,
        )


__all__ = [
    "CompressionPipeline",
    "CompressionStage",
    "calculate_savings",
    "resolve_preset",
]
