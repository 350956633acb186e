"""Document manipulation backends for pdfcomposex."""

from .base import DocumentBackend
from .pypdf_backend import PypdfBackend

__all__ = [
    "DocumentBackend",
    "PypdfBackend",
]
