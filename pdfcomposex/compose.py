"""Page composition: combine, two-file merge and page reordering.

Physical merging and page collection are delegated to a
:class:`~pdfcomposex.backends.DocumentBackend`; this module computes the page
selections and manages the temp artifacts of each run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, TypeVar, Union

from .document import DescriptorService
from .events import EventSink, ProgressReporter
from .exceptions import (
    CompositionError,
    EmptyPageOrderError,
    InsufficientInputsError,
    IOFailureError,
)
from .scratch import ScratchStore
from .types import (
    CombineResult,
    CompositionOperation,
    CompositionRequest,
    DocumentDescriptor,
    MergeMode,
)
from .utils import format_file_size

LOGGER = logging.getLogger("pdfcomposex.compose")

PathLike = Union[str, Path]
DocumentLike = Union[DocumentDescriptor, str, Path]
T = TypeVar("T")


def interleave_selection(count_a: int, count_b: int) -> List[int]:
    """Page selection interleaving two documents merged back to back.

    In the merged file pages ``1..count_a`` come from the first document and
    ``count_a+1..count_a+count_b`` from the second. Pages are paired one to one;
    the longer document's remaining pages follow in their original order.

    >>> interleave_selection(3, 3)
    [1, 4, 2, 5, 3, 6]
    >>> interleave_selection(3, 1)
    [1, 4, 2, 3]
    """

    selection: List[int] = []
    for index in range(1, max(count_a, count_b) + 1):
        if index <= count_a:
            selection.append(index)
        if index <= count_b:
            selection.append(count_a + index)
    return selection


def resolve_merge_mode(mode: Union[MergeMode, str]) -> MergeMode:
    if isinstance(mode, MergeMode):
        return mode
    try:
        return MergeMode(str(mode).strip().lower())
    except ValueError:
        LOGGER.warning("Unknown merge mode %r; appending", mode)
        return MergeMode.APPEND


class CompositionEngine:
    """Builds new documents from the pages of existing ones."""

    def __init__(
        self,
        scratch: ScratchStore,
        descriptors: Optional[DescriptorService] = None,
    ) -> None:
        self.scratch = scratch
        self.descriptors = descriptors or DescriptorService()

    @property
    def backend(self):
        return self.descriptors.backend

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _call(stage: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return func(*args)
        except CompositionError:
            raise
        except Exception as exc:
            LOGGER.error("Composition stage %s failed: %s", stage, exc)
            raise CompositionError(f"{stage} failed: {exc}", stage=stage) from exc

    def _descriptor(self, document: DocumentLike) -> DocumentDescriptor:
        if isinstance(document, DocumentDescriptor):
            return document
        return self.descriptors.describe(document)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def combine(
        self,
        documents: Sequence[DocumentLike],
        *,
        sink: Optional[EventSink] = None,
    ) -> CombineResult:
        """Concatenate *documents* in list order into one temp artifact."""

        if len(documents) < 2:
            raise InsufficientInputsError(
                f"need at least 2 files to combine, got {len(documents)}"
            )

        events = ProgressReporter(sink, "combine")
        events.progress(10, f"Preparing to combine {len(documents)} files...")

        descriptors = [self._descriptor(document) for document in documents]
        expected_pages = 0
        for descriptor in descriptors:
            events.log(f"Adding: {descriptor.name} ({descriptor.page_count} pages)")
            expected_pages += descriptor.page_count

        with self.scratch.scope() as scope:
            output_path = scope.allocate("combined")
            events.progress(30, "Merging PDF files...")
            self._call(
                "merge",
                self.backend.merge_files,
                [descriptor.path for descriptor in descriptors],
                output_path,
            )
            events.progress(80, "Finalizing...")

            try:
                output_size = output_path.stat().st_size
            except OSError as exc:
                raise IOFailureError(f"cannot read output file: {exc}") from exc
            page_count = self._call("page-count", self.backend.page_count, output_path)
            scope.keep(output_path)

        if page_count != expected_pages:
            LOGGER.warning(
                "Combined page count %d differs from expected %d", page_count, expected_pages
            )
        events.log(f"Combined {len(descriptors)} files into {page_count} pages")
        events.log(f"Output size: {format_file_size(output_size)}")
        events.progress(100, "Complete")
        LOGGER.info("Combined %d PDFs into %s", len(descriptors), output_path)

        return CombineResult(
            success=True,
            file_count=len(descriptors),
            page_count=page_count,
            output_size=output_size,
            output_path=str(output_path),
        )

    def merge_two(
        self,
        path_a: PathLike,
        path_b: PathLike,
        mode: Union[MergeMode, str] = MergeMode.APPEND,
        *,
        sink: Optional[EventSink] = None,
    ) -> DocumentDescriptor:
        """Merge two documents by appending or interleaving their pages."""

        merge_mode = resolve_merge_mode(mode)
        events = ProgressReporter(sink, "combine")
        events.log(f"Merging two files with mode: {merge_mode.value}")

        if merge_mode is MergeMode.APPEND:
            return self._append_two(path_a, path_b, events)
        return self._interleave_two(path_a, path_b, events)

    def _append_two(
        self,
        path_a: PathLike,
        path_b: PathLike,
        events: ProgressReporter,
    ) -> DocumentDescriptor:
        events.log("Appending files...")
        with self.scratch.scope() as scope:
            output_path = scope.allocate("merged")
            self._call("merge", self.backend.merge_files, [path_a, path_b], output_path)
            descriptor = self._call("describe", self.descriptors.describe, output_path)
            scope.keep(output_path)
        return descriptor

    def _interleave_two(
        self,
        path_a: PathLike,
        path_b: PathLike,
        events: ProgressReporter,
    ) -> DocumentDescriptor:
        # Counts come from the files themselves, not from caller metadata.
        count_a = self.descriptors.page_count(path_a)
        count_b = self.descriptors.page_count(path_b)
        events.log(f"Interleaving {count_a} + {count_b} pages")

        with self.scratch.scope() as scope:
            output_path = scope.allocate("merged")
            merged_path = scope.allocate("merged_temp")
            self._call("merge", self.backend.merge_files, [path_a, path_b], merged_path)

            selection = interleave_selection(count_a, count_b)
            self._call("interleave", self.backend.select_pages, merged_path, output_path, selection)
            scope.release(merged_path)

            descriptor = self._call("describe", self.descriptors.describe, output_path)
            scope.keep(output_path)

        LOGGER.info("Interleaved %s and %s into %s", path_a, path_b, output_path)
        return descriptor

    def reorder(
        self,
        path: PathLike,
        page_order: Sequence[int],
        *,
        sink: Optional[EventSink] = None,
    ) -> DocumentDescriptor:
        """Collect pages of *path* in *page_order* (1-based) into a new document.

        Pages may repeat and need not all appear; the result has exactly
        ``len(page_order)`` pages.
        """

        if not page_order:
            raise EmptyPageOrderError()

        selection = [int(page) for page in page_order]
        events = ProgressReporter(sink, "combine")
        events.log(f"Reordering {len(selection)} pages")

        with self.scratch.scope() as scope:
            output_path = scope.allocate("reordered")
            self._call("reorder", self.backend.select_pages, path, output_path, selection)
            descriptor = self._call("describe", self.descriptors.describe, output_path)
            scope.keep(output_path)
        return descriptor

    def execute(
        self,
        request: CompositionRequest,
        *,
        sink: Optional[EventSink] = None,
    ) -> Union[CombineResult, DocumentDescriptor]:
        """Run the operation described by *request*."""

        operation = CompositionOperation(request.operation)
        if operation is CompositionOperation.COMBINE:
            return self.combine(request.inputs, sink=sink)
        if operation is CompositionOperation.MERGE_TWO:
            if len(request.inputs) != 2:
                raise InsufficientInputsError(
                    f"merge_two takes exactly 2 files, got {len(request.inputs)}"
                )
            return self.merge_two(request.inputs[0], request.inputs[1], request.mode, sink=sink)
        if len(request.inputs) != 1:
            raise CompositionError(
                f"reorder takes exactly 1 file, got {len(request.inputs)}", stage="reorder"
            )
        return self.reorder(request.inputs[0], request.page_order, sink=sink)


__all__ = [
    "CompositionEngine",
    "interleave_selection",
    "resolve_merge_mode",
]
