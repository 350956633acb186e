"""
Custom exceptions for pdfcomposex.

Every error raised by the library derives from :class:`PdfComposeError`, so
callers can catch a single type per failed request.
"""

from __future__ import annotations

from typing import Optional


class PdfComposeError(Exception):
    """Base exception for all pdfcomposex errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown pdfcomposex error occurred."


# ----------------------------------------------------------------------
# Document errors
# ----------------------------------------------------------------------
class DocumentError(PdfComposeError):
    """Base class for problems with an input document."""

    @property
    def default_message(self) -> str:
        return "The document cannot be processed."


class NotADocumentError(DocumentError):
    """Raised when a path does not carry the ``.pdf`` extension."""

    @property
    def default_message(self) -> str:
        return "File is not a PDF."


class UnreadableDocumentError(DocumentError):
    """Raised when a document is missing or structurally invalid."""

    @property
    def default_message(self) -> str:
        return "Invalid or corrupted PDF file."


class EncryptedDocumentError(UnreadableDocumentError):
    """Raised when a document is password-protected."""

    @property
    def default_message(self) -> str:
        return "PDF is password-protected."


class EmptyDocumentError(DocumentError):
    """Raised when a document is an empty file or has no pages."""

    @property
    def default_message(self) -> str:
        return "PDF has no pages."


# ----------------------------------------------------------------------
# Composition errors
# ----------------------------------------------------------------------
class CompositionError(PdfComposeError):
    """Raised when a composition stage fails.

    ``stage`` names the failing step (``merge``, ``interleave``, ``reorder``...)
    when the failure came from the document backend.
    """

    def __init__(self, message: str = "", *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage

    @property
    def default_message(self) -> str:
        return "Page composition failed."


class InsufficientInputsError(CompositionError):
    """Raised when a combine request carries fewer than two documents."""

    @property
    def default_message(self) -> str:
        return "Need at least 2 files to combine."


class EmptyPageOrderError(CompositionError):
    """Raised when a reorder request carries an empty page order."""

    @property
    def default_message(self) -> str:
        return "Page order cannot be empty."


# ----------------------------------------------------------------------
# Thumbnail errors
# ----------------------------------------------------------------------
class ThumbnailError(PdfComposeError):
    """Base class for thumbnail generation errors."""

    @property
    def default_message(self) -> str:
        return "Thumbnail generation failed."


class PageIndexOutOfRangeError(PdfComposeError):
    """Raised when a requested page is outside the document."""

    @property
    def default_message(self) -> str:
        return "Page index out of range."


class TooManyPagesError(ThumbnailError):
    """Raised when a document exceeds the thumbnail page ceiling."""

    @property
    def default_message(self) -> str:
        return "PDF has too many pages for thumbnail generation."


# ----------------------------------------------------------------------
# External tool errors
# ----------------------------------------------------------------------
class ExternalToolError(PdfComposeError):
    """Base class for failures of external executables."""

    @property
    def default_message(self) -> str:
        return "External tool error."


class ExternalToolUnavailableError(ExternalToolError):
    """Raised when the rasterizer cannot be located or started."""

    @property
    def default_message(self) -> str:
        return "Ghostscript not available."


class ExternalToolFailedError(ExternalToolError):
    """Raised when an external process exits with a non-zero status."""

    def __init__(
        self,
        message: str = "",
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    @property
    def default_message(self) -> str:
        return "External tool failed."


# ----------------------------------------------------------------------
# Cancellation and I/O
# ----------------------------------------------------------------------
class OperationCancelledError(PdfComposeError):
    """Raised when the caller cancels a running operation."""

    @property
    def default_message(self) -> str:
        return "Operation was cancelled."


class OperationTimedOutError(OperationCancelledError):
    """Raised when an operation exceeds its deadline."""

    @property
    def default_message(self) -> str:
        return "Operation timed out."


class IOFailureError(PdfComposeError):
    """Raised when a temporary file cannot be created, read or written."""

    @property
    def default_message(self) -> str:
        return "File operation failed."


class ScratchPathError(PdfComposeError, ValueError):
    """Raised when asked to release a path outside the scratch directory."""

    @property
    def default_message(self) -> str:
        return "Refusing to delete a path outside the scratch directory."


__all__ = [
    "PdfComposeError",
    "DocumentError",
    "NotADocumentError",
    "UnreadableDocumentError",
    "EncryptedDocumentError",
    "EmptyDocumentError",
    "CompositionError",
    "InsufficientInputsError",
    "EmptyPageOrderError",
    "ThumbnailError",
    "PageIndexOutOfRangeError",
    "TooManyPagesError",
    "ExternalToolError",
    "ExternalToolUnavailableError",
    "ExternalToolFailedError",
    "OperationCancelledError",
    "OperationTimedOutError",
    "IOFailureError",
    "ScratchPathError",
]
