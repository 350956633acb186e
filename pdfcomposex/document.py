"""Document identity and validation built around a :class:`DocumentBackend`."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .backends import DocumentBackend, PypdfBackend
from .exceptions import (
    DocumentError,
    EmptyDocumentError,
    EncryptedDocumentError,
    NotADocumentError,
    UnreadableDocumentError,
)
from .types import DocumentDescriptor, FileInfo
from .utils import format_file_size, generate_id

LOGGER = logging.getLogger("pdfcomposex.document")

PathLike = Union[str, Path]

PDF_EXTENSION = ".pdf"

# Lower-cased fragments that mark a validator error as an encryption problem.
_ENCRYPTION_MARKERS = ("encrypt", "password", "decrypt")


def get_file_info(path: PathLike) -> FileInfo:
    """Return basic information about *path* without opening it as a PDF."""

    file_path = Path(path)
    try:
        stat = file_path.stat()
    except OSError as exc:
        raise UnreadableDocumentError(f"cannot access file: {exc}") from exc
    return FileInfo(
        path=str(path),
        name=file_path.name,
        size=stat.st_size,
        size_text=format_file_size(stat.st_size),
    )


def has_pdf_extension(path: PathLike) -> bool:
    return str(path).lower().endswith(PDF_EXTENSION)


def looks_encrypted(message: str) -> bool:
    """Heuristic: does a validator error message describe an encrypted file?"""

    lowered = message.lower()
    return any(marker in lowered for marker in _ENCRYPTION_MARKERS)


class DescriptorService:
    """Builds :class:`DocumentDescriptor` values and validates documents.

    Descriptors are never cached: every call re-reads the filesystem.
    """

    def __init__(self, backend: Optional[DocumentBackend] = None) -> None:
        self.backend: DocumentBackend = backend or PypdfBackend()

    def validate(self, path: PathLike) -> None:
        """Check that *path* is a readable, well-formed PDF.

        Raises:
            NotADocumentError: The extension is not ``.pdf``.
            EncryptedDocumentError: The document is password-protected.
            EmptyDocumentError: The file is empty.
            UnreadableDocumentError: The file is missing or malformed.
        """

        if not has_pdf_extension(path):
            raise NotADocumentError(f"file is not a PDF: {path}")

        try:
            size = os.path.getsize(path)
        except OSError as exc:
            raise UnreadableDocumentError(f"cannot access file: {exc}") from exc
        if size == 0:
            raise EmptyDocumentError(f"file is empty: {path}")

        try:
            self.backend.validate(path)
        except EncryptedDocumentError:
            raise
        except DocumentError as exc:
            raise self._classify(path, exc) from exc

    def _classify(self, path: PathLike, exc: DocumentError) -> DocumentError:
        # Prefer the structural flag; fall back to the error text.
        try:
            encrypted = self.backend.is_encrypted(path)
        except DocumentError:
            encrypted = False
        # Match against the underlying reader error, not our message, which embeds the path.
        detail = str(exc.__cause__) if exc.__cause__ is not None else str(exc)
        if encrypted or looks_encrypted(detail):
            return EncryptedDocumentError(f"PDF is password-protected: {path}")
        if isinstance(exc, UnreadableDocumentError):
            return exc
        return UnreadableDocumentError(f"invalid PDF: {exc}")

    def page_count(self, path: PathLike) -> int:
        return self.backend.page_count(path)

    def describe(self, path: PathLike) -> DocumentDescriptor:
        """Return a fresh descriptor for *path*.

        Raises the same errors as :meth:`validate`, plus
        :class:`EmptyDocumentError` for documents without pages.
        """

        self.validate(path)
        file_path = Path(path)
        size = file_path.stat().st_size
        page_count = self.page_count(path)
        if page_count <= 0:
            raise EmptyDocumentError(f"PDF has no pages: {path}")

        descriptor = DocumentDescriptor(
            id=generate_id(),
            path=str(path),
            name=file_path.name,
            page_count=page_count,
            size=size,
            size_text=format_file_size(size),
        )
        LOGGER.debug("Described %s: %d page(s), %d bytes", path, page_count, size)
        return descriptor


__all__ = [
    "DescriptorService",
    "get_file_info",
    "has_pdf_extension",
    "looks_encrypted",
    "PDF_EXTENSION",
]
