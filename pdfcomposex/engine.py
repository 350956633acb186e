"""High level entry point used by the CLI and the HTTP backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .compose import CompositionEngine, DocumentLike
from .compress import CompressionPipeline, PresetLike
from .config import Settings
from .context import CancellationContext
from .document import PDF_EXTENSION, DescriptorService, get_file_info, has_pdf_extension
from .events import EventSink
from .ghostscript import check_ghostscript, install_instructions
from .scratch import ScratchStore
from .thumbnails import CacheStore, ThumbnailCache
from .types import (
    CombineResult,
    CompositionRequest,
    CompressionPreset,
    CompressionResult,
    DocumentDescriptor,
    FileInfo,
    MergeMode,
    ThumbnailResult,
)

LOGGER = logging.getLogger("pdfcomposex.engine")

PathLike = Union[str, Path]


class DocumentEngine:
    """Wires the scratch store, descriptor service, pipelines and caches.

    Every operation that produces a document returns the path of a temp
    artifact. The caller either persists it with :meth:`save` or discards it
    with :meth:`release`.
    """

    def __init__(
        self,
        scratch: ScratchStore,
        cache_store: CacheStore,
        *,
        descriptors: Optional[DescriptorService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.scratch = scratch
        self.descriptors = descriptors or DescriptorService()
        self.composer = CompositionEngine(scratch, self.descriptors)
        self.compressor = CompressionPipeline(
            scratch, ghostscript_path=self.settings.ghostscript_path
        )
        self.thumbnails = ThumbnailCache(
            cache_store,
            self.descriptors,
            ghostscript_path=self.settings.ghostscript_path,
            timeout=self.settings.thumbnail_timeout,
            single_timeout=self.settings.single_thumbnail_timeout,
            max_pages=self.settings.max_thumbnail_pages,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DocumentEngine":
        settings = settings or Settings.from_env()
        return cls(
            ScratchStore(settings.scratch_dir),
            CacheStore(settings.thumbnail_root),
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def describe(self, path: PathLike) -> DocumentDescriptor:
        return self.descriptors.describe(path)

    def validate(self, path: PathLike) -> None:
        self.descriptors.validate(path)

    def file_info(self, path: PathLike) -> FileInfo:
        return get_file_info(path)

    # ------------------------------------------------------------------
    # Producing artifacts
    # ------------------------------------------------------------------
    def compress(
        self,
        path: PathLike,
        preset: PresetLike = CompressionPreset.DEFAULT,
        *,
        context: Optional[CancellationContext] = None,
        sink: Optional[EventSink] = None,
    ) -> CompressionResult:
        return self.compressor.run(path, preset, context=context, sink=sink)

    def combine(
        self,
        documents: Sequence[DocumentLike],
        *,
        sink: Optional[EventSink] = None,
    ) -> CombineResult:
        return self.composer.combine(documents, sink=sink)

    def merge_two(
        self,
        path_a: PathLike,
        path_b: PathLike,
        mode: Union[MergeMode, str] = MergeMode.APPEND,
        *,
        sink: Optional[EventSink] = None,
    ) -> DocumentDescriptor:
        return self.composer.merge_two(path_a, path_b, mode, sink=sink)

    def reorder(
        self,
        path: PathLike,
        page_order: Sequence[int],
        *,
        sink: Optional[EventSink] = None,
    ) -> DocumentDescriptor:
        return self.composer.reorder(path, page_order, sink=sink)

    def execute(
        self,
        request: CompositionRequest,
        *,
        sink: Optional[EventSink] = None,
    ) -> Union[CombineResult, DocumentDescriptor]:
        return self.composer.execute(request, sink=sink)

    # ------------------------------------------------------------------
    # Thumbnails
    # ------------------------------------------------------------------
    def _size(self, width: Optional[int], height: Optional[int]) -> tuple:
        default_width, default_height = self.settings.default_thumbnail_size
        return (
            default_width if width is None else width,
            default_height if height is None else height,
        )

    def thumbnails_all(
        self,
        path: PathLike,
        width: Optional[int] = None,
        height: Optional[int] = None,
        *,
        context: Optional[CancellationContext] = None,
        sink: Optional[EventSink] = None,
    ) -> List[ThumbnailResult]:
        width, height = self._size(width, height)
        return self.thumbnails.generate_all(path, width, height, context=context, sink=sink)

    def thumbnail_one(
        self,
        path: PathLike,
        page_index: int,
        width: Optional[int] = None,
        height: Optional[int] = None,
        *,
        context: Optional[CancellationContext] = None,
    ) -> ThumbnailResult:
        width, height = self._size(width, height)
        return self.thumbnails.generate_one(path, page_index, width, height, context=context)

    def evict_thumbnail_cache(self, path: PathLike) -> bool:
        return self.thumbnails.evict(path)

    def evict_all_thumbnail_caches(self) -> None:
        self.thumbnails.evict_all()

    # ------------------------------------------------------------------
    # Artifact hand-off
    # ------------------------------------------------------------------
    def save(self, artifact: PathLike, destination: PathLike) -> Path:
        """Copy *artifact* to *destination* and release it from scratch.

        ``.pdf`` is appended to *destination* when missing.
        """

        target = Path(destination)
        if not has_pdf_extension(target):
            target = target.with_name(target.name + PDF_EXTENSION)
        return self.scratch.persist(artifact, target)

    def release(self, *paths: Optional[PathLike]) -> List[Path]:
        return self.scratch.release(*paths)

    # ------------------------------------------------------------------
    # Rasterizer
    # ------------------------------------------------------------------
    def ghostscript_version(self) -> str:
        return check_ghostscript(self.settings.ghostscript_path)

    @staticmethod
    def install_instructions() -> str:
        return install_instructions()


__all__ = ["DocumentEngine"]
