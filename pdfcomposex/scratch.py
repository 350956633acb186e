"""Temp artifact management.

Every intermediate and result file produced by a pipeline lives inside a
:class:`ScratchStore` directory. Pipelines allocate through an
:class:`ArtifactScope`, which releases everything it allocated when the
pipeline fails, and everything except the handed-off result when it succeeds.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from types import TracebackType
from typing import List, Optional, Type, Union

from .exceptions import IOFailureError, ScratchPathError
from .utils import ensure_parent_dir, resolve_path

LOGGER = logging.getLogger("pdfcomposex.scratch")

PathLike = Union[str, Path]


class ScratchStore:
    """A directory of uniquely named, ephemeral files."""

    def __init__(self, root: PathLike) -> None:
        self.root = resolve_path(root)

    def __repr__(self) -> str:
        return f"ScratchStore(root={str(self.root)!r})"

    def ensure(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailureError(f"Cannot create scratch directory {self.root}: {exc}") from exc
        return self.root

    def allocate(self, prefix: str, extension: str = ".pdf") -> Path:
        """Return a fresh path named ``{prefix}_{token}{extension}``.

        The file itself is not created. The token is random, so concurrent
        callers never receive the same path.
        """

        if extension and not extension.startswith("."):
            extension = f".{extension}"
        directory = self.ensure()
        path = directory / f"{prefix}_{uuid.uuid4().hex}{extension}"
        LOGGER.debug("Allocated temp artifact %s", path)
        return path

    def contains(self, path: PathLike) -> bool:
        """Return ``True`` when *path* lies inside the scratch directory."""

        resolved = resolve_path(path)
        return self.root in resolved.parents

    def release(self, *paths: Optional[PathLike], strict: bool = False) -> List[Path]:
        """Delete *paths* that live inside the scratch directory.

        Paths outside the directory are never touched: they are skipped with a
        warning, or rejected with :class:`ScratchPathError` when *strict* is set.
        Returns the paths that were removed.
        """

        released: List[Path] = []
        for path in paths:
            if path is None:
                continue
            resolved = resolve_path(path)
            if not self.contains(resolved):
                if strict:
                    raise ScratchPathError(
                        f"Refusing to delete {resolved}: not inside {self.root}"
                    )
                LOGGER.warning("Skipping release of %s: not inside %s", resolved, self.root)
                continue
            try:
                if resolved.exists():
                    resolved.unlink()
                    released.append(resolved)
            except OSError as exc:
                LOGGER.warning("Failed to remove temp artifact %s: %s", resolved, exc)
        return released

    def persist(self, artifact: PathLike, destination: PathLike, *, release: bool = True) -> Path:
        """Copy *artifact* to *destination*, then release it from scratch.

        Only files inside the scratch directory can be persisted; anything
        else raises :class:`ScratchPathError` without being read.
        """

        source = resolve_path(artifact)
        if not self.contains(source):
            raise ScratchPathError(f"Refusing to save {source}: not inside {self.root}")
        target = resolve_path(destination)
        try:
            ensure_parent_dir(target)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise IOFailureError(f"Failed to save file: {exc}") from exc
        if release:
            self.release(source)
        LOGGER.info("Saved %s to %s", source.name, target)
        return target

    def scope(self) -> "ArtifactScope":
        return ArtifactScope(self)


class ArtifactScope:
    """Tracks the artifacts of one pipeline run.

    Use as a context manager. On an exception every tracked artifact is
    released before the exception propagates; on normal exit every artifact
    not passed to :meth:`keep` is released.
    """

    def __init__(self, store: ScratchStore) -> None:
        self.store = store
        self._paths: List[Path] = []
        self._kept: List[Path] = []

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def allocate(self, prefix: str, extension: str = ".pdf") -> Path:
        path = self.store.allocate(prefix, extension)
        self._paths.append(path)
        return path

    def keep(self, path: Path) -> Path:
        """Hand *path* off to the caller; it survives a successful exit."""

        self._kept.append(path)
        return path

    def release(self, path: Path) -> None:
        """Release one tracked intermediate early."""

        self.store.release(path)
        if path in self._paths:
            self._paths.remove(path)

    def __enter__(self) -> "ArtifactScope":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is not None:
            if self._paths:
                LOGGER.debug("Releasing %d temp artifact(s) after failure", len(self._paths))
            self.store.release(*self._paths)
        else:
            self.store.release(*(path for path in self._paths if path not in self._kept))
        self._paths.clear()


__all__ = ["ScratchStore", "ArtifactScope"]
