"""
pdfcomposex - PDF composition, compression and thumbnail orchestration.

Combines, merges (append or interleave) and reorders PDF pages, compresses
documents with Ghostscript presets and serves cached page thumbnails. Every
produced document is a temp artifact that the caller saves or releases.

Quick Start:
    >>> from pdfcomposex import DocumentEngine
    >>> engine = DocumentEngine.from_settings()
    >>> result = engine.combine(["a.pdf", "b.pdf"])
    >>> engine.save(result.output_path, "combined.pdf")

For CLI usage, use the 'pdfcomposex' command after installation.
"""

from pdfcomposex.engine import DocumentEngine
from pdfcomposex.config import Settings
from pdfcomposex.context import CancellationContext
from pdfcomposex.scratch import ScratchStore
from pdfcomposex.thumbnails import CacheStore
from pdfcomposex.events import EventSink, LoggingSink, NullSink, RecordingSink

from pdfcomposex.types import (
    CombineResult,
    CompositionOperation,
    CompositionRequest,
    CompressionPreset,
    CompressionResult,
    DocumentDescriptor,
    FileInfo,
    MergeMode,
    ProgressUpdate,
    ThumbnailResult,
)

from pdfcomposex.exceptions import (
    PdfComposeError,
    DocumentError,
    NotADocumentError,
    UnreadableDocumentError,
    EncryptedDocumentError,
    EmptyDocumentError,
    CompositionError,
    InsufficientInputsError,
    EmptyPageOrderError,
    PageIndexOutOfRangeError,
    ThumbnailError,
    TooManyPagesError,
    ExternalToolError,
    ExternalToolUnavailableError,
    ExternalToolFailedError,
    OperationCancelledError,
    OperationTimedOutError,
    IOFailureError,
    ScratchPathError,
)

from pdfcomposex.utils import format_file_size

__version__ = "1.0.0"

__all__ = [
    # Entry points
    "DocumentEngine",
    "Settings",
    "CancellationContext",
    "ScratchStore",
    "CacheStore",
    # Events
    "EventSink",
    "LoggingSink",
    "NullSink",
    "RecordingSink",
    # Data types
    "CombineResult",
    "CompositionOperation",
    "CompositionRequest",
    "CompressionPreset",
    "CompressionResult",
    "DocumentDescriptor",
    "FileInfo",
    "MergeMode",
    "ProgressUpdate",
    "ThumbnailResult",
    # Exceptions
    "PdfComposeError",
    "DocumentError",
    "NotADocumentError",
    "UnreadableDocumentError",
    "EncryptedDocumentError",
    "EmptyDocumentError",
    "CompositionError",
    "InsufficientInputsError",
    "EmptyPageOrderError",
    "PageIndexOutOfRangeError",
    "ThumbnailError",
    "TooManyPagesError",
    "ExternalToolError",
    "ExternalToolUnavailableError",
    "ExternalToolFailedError",
    "OperationCancelledError",
    "OperationTimedOutError",
    "IOFailureError",
    "ScratchPathError",
    # Utility functions
    "format_file_size",
    # Version info
    "__version__",
]
