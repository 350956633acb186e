"""Backend protocol for physical document manipulation."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence, Union

PathLike = Union[str, Path]


class DocumentBackend(Protocol):
    """Operations the composition engine delegates to a PDF library.

    Page numbers in selections are 1-based physical page numbers. Failures
    are reported as :class:`~pdfcomposex.exceptions.PdfComposeError`
    subclasses.
    """

    def merge_files(self, inputs: Sequence[PathLike], output: PathLike) -> None:
        """Concatenate *inputs* in order into *output*."""

    def page_count(self, path: PathLike) -> int:
        """Return the number of pages in *path*."""

    def select_pages(self, source: PathLike, output: PathLike, selection: Sequence[int]) -> None:
        """Write the pages of *source* listed in *selection*, in order, to *output*."""

    def validate(self, path: PathLike) -> None:
        """Raise when *path* is not a well-formed document."""

    def is_encrypted(self, path: PathLike) -> bool:
        """Return ``True`` when *path* is password-protected."""
