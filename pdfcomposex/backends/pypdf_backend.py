"""pypdf backend implementation for pdfcomposex."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from ..exceptions import (
    EncryptedDocumentError,
    IOFailureError,
    PageIndexOutOfRangeError,
    UnreadableDocumentError,
)
from .base import DocumentBackend, PathLike

LOGGER = logging.getLogger("pdfcomposex.backends.pypdf")


def _document_info(reader: PdfReader) -> Optional[Dict[str, str]]:
    try:
        metadata = reader.metadata
    except Exception as exc:  # pragma: no cover - metadata parsing varies
        LOGGER.warning("Failed to read document metadata: %s", exc)
        return None
    if not metadata:
        return None
    cleaned = {
        key: str(value)
        for key, value in metadata.items()
        if isinstance(key, str) and value is not None
    }
    return cleaned or None


class PypdfBackend(DocumentBackend):
    """Backend implementation that uses `pypdf` under the hood."""

    def open(self, path: PathLike) -> PdfReader:
        pdf_path = Path(path)
        if not pdf_path.is_file():
            raise UnreadableDocumentError(f"cannot access file: {pdf_path}")

        try:
            reader = PdfReader(str(pdf_path))
        except PdfReadError as exc:
            raise UnreadableDocumentError(f"invalid PDF: {pdf_path}. Error: {exc}") from exc
        except OSError as exc:
            raise UnreadableDocumentError(f"cannot access file: {pdf_path}. Error: {exc}") from exc
        except Exception as exc:
            raise UnreadableDocumentError(f"invalid PDF: {pdf_path}. Error: {exc}") from exc

        if reader.is_encrypted:
            # Documents with an empty user password open without prompting.
            try:
                decrypted = reader.decrypt("")
            except Exception as exc:
                raise EncryptedDocumentError(f"PDF is password-protected: {pdf_path}") from exc
            if decrypted == 0:
                raise EncryptedDocumentError(f"PDF is password-protected: {pdf_path}")
        return reader

    def page_count(self, path: PathLike) -> int:
        reader = self.open(path)
        try:
            return len(reader.pages)
        except Exception as exc:
            raise UnreadableDocumentError(f"invalid PDF: {path}. Error: {exc}") from exc

    def is_encrypted(self, path: PathLike) -> bool:
        pdf_path = Path(path)
        try:
            return bool(PdfReader(str(pdf_path)).is_encrypted)
        except Exception as exc:
            raise UnreadableDocumentError(f"invalid PDF: {pdf_path}. Error: {exc}") from exc

    def validate(self, path: PathLike) -> None:
        reader = self.open(path)
        try:
            for page in reader.pages:
                _ = page.mediabox
        except Exception as exc:
            raise UnreadableDocumentError(f"invalid PDF: {path}. Error: {exc}") from exc

    def merge_files(self, inputs: Sequence[PathLike], output: PathLike) -> None:
        writer = PdfWriter()
        first_metadata: Optional[Dict[str, str]] = None

        for index, pdf_path in enumerate(inputs):
            reader = self.open(pdf_path)
            LOGGER.debug("Appending %d page(s) from %s", len(reader.pages), pdf_path)
            for page in reader.pages:
                writer.add_page(page)
            if index == 0:
                first_metadata = _document_info(reader)

        if first_metadata:
            writer.add_metadata(first_metadata)
        self._write(writer, output)

    def select_pages(self, source: PathLike, output: PathLike, selection: Sequence[int]) -> None:
        reader = self.open(source)
        total = len(reader.pages)
        writer = PdfWriter()

        for page_number in selection:
            if page_number < 1 or page_number > total:
                raise PageIndexOutOfRangeError(
                    f"page {page_number} out of range (1-{total})"
                )
            # pypdf copies the page dictionary, so repeated pages are legal.
            writer.add_page(reader.pages[page_number - 1])

        metadata = _document_info(reader)
        if metadata:
            writer.add_metadata(metadata)
        self._write(writer, output)

    @staticmethod
    def _write(writer: PdfWriter, destination: PathLike) -> None:
        path = Path(destination)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as handle:
                writer.write(handle)
        except OSError as exc:
            LOGGER.error("Failed to write PDF to %s: %s", path, exc)
            raise IOFailureError(f"Failed to write PDF to {path}: {exc}") from exc


__all__ = ["PypdfBackend"]
