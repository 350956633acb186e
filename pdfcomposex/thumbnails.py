"""Content-addressed thumbnail cache backed by Ghostscript's ``png16m`` device.

Each document gets a cache directory named after
``sha256("<path>:<mtime_ns>")[:16]`` under the cache root, holding one
``page_NNN.png`` per page (1-based, zero-padded). A modification time change
yields a new key, orphaning the old directory until it is evicted.

A directory is a valid whole-document entry only when every page image is
present; anything less is treated as a miss and regenerated.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .config import (
    DEFAULT_SINGLE_THUMBNAIL_TIMEOUT,
    DEFAULT_THUMBNAIL_TIMEOUT,
    MAX_THUMBNAIL_PAGES,
)
from .context import CancellationContext
from .document import DescriptorService
from .events import EventSink, ProgressReporter
from .exceptions import (
    IOFailureError,
    OperationTimedOutError,
    PageIndexOutOfRangeError,
    ThumbnailError,
    TooManyPagesError,
)
from .ghostscript import THUMBNAIL_PATTERN, build_thumbnail_command, find_ghostscript
from .types import ThumbnailResult
from .utils import resolve_path, run_subprocess

LOGGER = logging.getLogger("pdfcomposex.thumbnails")

PathLike = Union[str, Path]

DATA_URL_PREFIX = "data:image/png;base64,"
KEY_LENGTH = 16


def cache_key(document_path: str, mtime_ns: int) -> str:
    """Return the 16-hex-character cache key for a (path, mtime) pair."""

    digest = hashlib.sha256(f"{document_path}:{mtime_ns}".encode("utf-8")).hexdigest()
    return digest[:KEY_LENGTH]


def page_filename(page_index: int) -> str:
    """On-disk name for the 0-based *page_index*."""

    return f"page_{page_index + 1:03d}.png"


def _encode(data: bytes) -> str:
    return DATA_URL_PREFIX + base64.b64encode(data).decode("ascii")


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class CacheStore:
    """Thumbnail cache directory layout plus per-key locks.

    Holding :meth:`locked` for a key makes concurrent identical requests run
    one after another, so the second one sees the first one's images. A
    key's lock is dropped once no thread holds or waits for it.
    """

    def __init__(self, root: PathLike) -> None:
        self.root = resolve_path(root)
        self._locks: Dict[str, _KeyLock] = {}
        self._locks_guard = threading.Lock()

    def __repr__(self) -> str:
        return f"CacheStore(root={str(self.root)!r})"

    def key_for(self, document_path: PathLike) -> str:
        resolved = resolve_path(document_path)
        try:
            mtime_ns = resolved.stat().st_mtime_ns
        except OSError:
            mtime_ns = 0
        return cache_key(str(resolved), mtime_ns)

    def directory(self, key: str) -> Path:
        return self.root / key

    def directory_for(self, document_path: PathLike) -> Path:
        return self.directory(self.key_for(document_path))

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    @property
    def active_keys(self) -> List[str]:
        with self._locks_guard:
            return list(self._locks)

    def remove(self, key: str) -> bool:
        """Delete the directory for *key*; return whether it existed."""

        directory = self.directory(key)
        with self.locked(key):
            if not directory.exists():
                return False
            try:
                shutil.rmtree(directory)
            except OSError as exc:
                raise IOFailureError(f"cannot remove thumbnail cache {directory}: {exc}") from exc
        return True

    def clear(self) -> None:
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
        except OSError as exc:
            raise IOFailureError(f"cannot remove thumbnail cache {self.root}: {exc}") from exc


class ThumbnailCache:
    """Generates and serves per-page PNG thumbnails."""

    def __init__(
        self,
        store: CacheStore,
        descriptors: Optional[DescriptorService] = None,
        *,
        ghostscript_path: Optional[str] = None,
        timeout: float = DEFAULT_THUMBNAIL_TIMEOUT,
        single_timeout: float = DEFAULT_SINGLE_THUMBNAIL_TIMEOUT,
        max_pages: int = MAX_THUMBNAIL_PAGES,
    ) -> None:
        self.store = store
        self.descriptors = descriptors or DescriptorService()
        self.ghostscript_path = ghostscript_path
        self.timeout = timeout
        self.single_timeout = single_timeout
        self.max_pages = max_pages

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    @staticmethod
    def _load_cached(directory: Path, page_count: int, width: int, height: int) -> Optional[List[ThumbnailResult]]:
        if not directory.is_dir():
            return None
        results: List[ThumbnailResult] = []
        for index in range(page_count):
            try:
                data = (directory / page_filename(index)).read_bytes()
            except OSError:
                return None
            results.append(ThumbnailResult(index, _encode(data), width, height))
        return results

    @staticmethod
    def _read(path: Path, page_index: int, width: int, height: int) -> ThumbnailResult:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise IOFailureError(
                f"cannot read thumbnail for page {page_index + 1}: {exc}"
            ) from exc
        return ThumbnailResult(page_index, _encode(data), width, height)

    @staticmethod
    def _check_size(width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ThumbnailError(f"thumbnail size must be positive, got {width}x{height}")

    def _render(self, command: List[str], context: CancellationContext) -> None:
        try:
            run_subprocess(command, context=context, label="ghostscript")
        except OperationTimedOutError as exc:
            raise OperationTimedOutError("thumbnail generation timed out") from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def generate_all(
        self,
        path: PathLike,
        width: int,
        height: int,
        *,
        context: Optional[CancellationContext] = None,
        sink: Optional[EventSink] = None,
    ) -> List[ThumbnailResult]:
        """Return thumbnails for every page, rendering them on a cache miss.

        A miss renders the whole document with a single Ghostscript run. If
        that run fails the cache directory is removed entirely.
        """

        self._check_size(width, height)
        events = ProgressReporter(sink, "thumbnail")
        page_count = self.descriptors.describe(path).page_count
        if page_count > self.max_pages:
            raise TooManyPagesError(
                f"PDF has too many pages ({page_count}), max is {self.max_pages}"
            )

        key = self.store.key_for(path)
        directory = self.store.directory(key)
        with self.store.locked(key):
            cached = self._load_cached(directory, page_count, width, height)
            if cached is not None:
                LOGGER.debug("Thumbnail cache hit for %s (%s)", path, key)
                events.log("Loaded from cache")
                return cached

            executable = find_ghostscript(self.ghostscript_path)
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise IOFailureError(f"cannot create cache directory: {exc}") from exc

            events.progress(0, "Generating thumbnails...")
            run_context = (context or CancellationContext.background()).with_timeout(self.timeout)
            command = build_thumbnail_command(
                executable,
                resolve_path(path),
                directory / THUMBNAIL_PATTERN,
                width,
                height,
            )
            try:
                self._render(command, run_context)
                events.progress(80, "Loading thumbnails...")
                results = [
                    self._read(directory / page_filename(index), index, width, height)
                    for index in range(page_count)
                ]
            except BaseException:
                LOGGER.error("Thumbnail generation failed for %s; removing %s", path, directory)
                shutil.rmtree(directory, ignore_errors=True)
                raise

        events.progress(100, "Done")
        LOGGER.info("Generated %d thumbnail(s) for %s", page_count, path)
        return results

    def generate_one(
        self,
        path: PathLike,
        page_index: int,
        width: int,
        height: int,
        *,
        context: Optional[CancellationContext] = None,
    ) -> ThumbnailResult:
        """Return the thumbnail of one 0-based page, rendering only that page."""

        self._check_size(width, height)
        page_count = self.descriptors.describe(path).page_count
        if page_index < 0 or page_index >= page_count:
            raise PageIndexOutOfRangeError(
                f"page index {page_index} out of range (0-{page_count - 1})"
            )

        key = self.store.key_for(path)
        directory = self.store.directory(key)
        target = directory / page_filename(page_index)
        with self.store.locked(key):
            if target.is_file():
                return self._read(target, page_index, width, height)

            executable = find_ghostscript(self.ghostscript_path)
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise IOFailureError(f"cannot create cache directory: {exc}") from exc

            run_context = (context or CancellationContext.background()).with_timeout(
                self.single_timeout
            )
            command = build_thumbnail_command(
                executable,
                resolve_path(path),
                target,
                width,
                height,
                page=page_index + 1,
            )
            try:
                self._render(command, run_context)
            except BaseException:
                target.unlink(missing_ok=True)
                raise
            return self._read(target, page_index, width, height)

    def evict(self, path: PathLike) -> bool:
        """Remove the cache directory for the current version of *path*."""

        removed = self.store.remove(self.store.key_for(path))
        if removed:
            LOGGER.info("Evicted thumbnail cache for %s", path)
        return removed

    def evict_all(self) -> None:
        """Remove the whole thumbnail cache root."""

        self.store.clear()
        LOGGER.info("Cleared thumbnail cache %s", self.store.root)


__all__ = [
    "CacheStore",
    "ThumbnailCache",
    "cache_key",
    "page_filename",
    "DATA_URL_PREFIX",
]
