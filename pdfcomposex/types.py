"""
Type definitions and dataclasses for pdfcomposex.

This module defines the data structures exchanged with callers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CompressionPreset(str, Enum):
    """Named rasterizer quality profiles."""

    SCREEN = "screen"
    EBOOK = "ebook"
    PRINTER = "printer"
    PREPRESS = "prepress"
    DEFAULT = "default"


class MergeMode(str, Enum):
    """How two documents are merged."""

    APPEND = "append"
    INTERLEAVE = "interleave"


class CompositionOperation(str, Enum):
    """Operation tag carried by a :class:`CompositionRequest`."""

    COMBINE = "combine"
    MERGE_TWO = "merge_two"
    REORDER = "reorder"


@dataclass(frozen=True)
class DocumentDescriptor:
    """
    Identity and metadata of a readable PDF.

    Attributes:
        id: Opaque identifier, unique per descriptor
        path: Filesystem path of the document
        name: Display name (file name)
        page_count: Number of pages, always >= 1
        size: File size in bytes
        size_text: Human-readable file size
    """
    id: str
    path: str
    name: str
    page_count: int
    size: int
    size_text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FileInfo:
    """Basic file information, without any PDF validation."""

    path: str
    name: str
    size: int
    size_text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompositionRequest:
    """
    A composition job for :meth:`CompositionEngine.execute`.

    Attributes:
        operation: Which composition to run
        inputs: Input document paths, order-significant
        mode: Merge mode, used by ``merge_two`` only
        page_order: 1-based page numbers, used by ``reorder`` only
    """
    operation: CompositionOperation
    inputs: List[str]
    mode: MergeMode = MergeMode.APPEND
    page_order: List[int] = field(default_factory=list)


@dataclass
class CombineResult:
    """
    Result of a combine operation.

    Attributes:
        success: Whether the operation was successful
        file_count: Number of combined input documents
        page_count: Page count read back from the produced artifact
        output_size: Size of the produced artifact in bytes
        output_path: Path to the temp artifact, owned by the caller
    """
    success: bool
    file_count: int
    page_count: int
    output_size: int
    output_path: str

    def __str__(self) -> str:
        return f"CombineResult(files={self.file_count}, pages={self.page_count})"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompressionResult:
    """
    Result of a compression run.

    Attributes:
        success: Whether the operation was successful
        original_size: Size of the source in bytes
        compressed_size: Size of the output in bytes
        savings_percent: Truncated percentage saved, negative when the output grew
        output_path: Path to the temp artifact, owned by the caller
        preset: Preset that was actually applied
    """
    success: bool
    original_size: int
    compressed_size: int
    savings_percent: int
    output_path: str
    preset: CompressionPreset = CompressionPreset.DEFAULT

    def __str__(self) -> str:
        return f"CompressionResult(saved={self.savings_percent}%)"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["preset"] = self.preset.value
        return data


@dataclass(frozen=True)
class ThumbnailResult:
    """
    A rendered page thumbnail.

    Attributes:
        page_index: 0-based page index
        image_data: PNG image as a ``data:image/png;base64,...`` URL
        width: Requested width in pixels
        height: Requested height in pixels
    """
    page_index: int
    image_data: str
    width: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProgressUpdate:
    """A progress event: percent complete (0-100) and a message."""

    percent: int
    message: str


__all__ = [
    "CompressionPreset",
    "MergeMode",
    "CompositionOperation",
    "DocumentDescriptor",
    "FileInfo",
    "CompositionRequest",
    "CombineResult",
    "CompressionResult",
    "ThumbnailResult",
    "ProgressUpdate",
]
