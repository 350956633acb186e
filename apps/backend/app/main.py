"""FastAPI application exposing the pdfcomposex engine over local file paths."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from pdfcomposex import __version__
from pdfcomposex.engine import DocumentEngine
from pdfcomposex.exceptions import (
    CompositionError,
    DocumentError,
    ExternalToolFailedError,
    ExternalToolUnavailableError,
    OperationTimedOutError,
    PageIndexOutOfRangeError,
    PdfComposeError,
    ScratchPathError,
    ThumbnailError,
)
from pdfcomposex.types import CompressionPreset, MergeMode

app = FastAPI(title="pdfcomposex API", version=__version__)


@lru_cache(maxsize=1)
def get_engine() -> DocumentEngine:
    """Return the process-wide engine built from ``PDFCOMPOSEX_*`` settings."""

    return DocumentEngine.from_settings()


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------
class PathRequest(BaseModel):
    """A single local document path."""

    path: str


class CompressRequest(PathRequest):
    preset: str = CompressionPreset.DEFAULT.value


class CombineRequest(BaseModel):
    paths: List[str] = Field(..., description="Documents to combine, in order.")


class MergeTwoRequest(BaseModel):
    first: str
    second: str
    mode: str = MergeMode.APPEND.value


class ReorderRequest(PathRequest):
    page_order: List[int] = Field(..., alias="pageOrder", description="1-based page numbers.")

    model_config = ConfigDict(populate_by_name=True)


class ThumbnailsRequest(PathRequest):
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)


class PageThumbnailRequest(ThumbnailsRequest):
    page_index: int = Field(..., alias="pageIndex", description="0-based page index.")

    model_config = ConfigDict(populate_by_name=True)


class EvictRequest(BaseModel):
    path: Optional[str] = None
    all: bool = False


class SaveRequest(BaseModel):
    artifact: str
    destination: str


class ReleaseRequest(BaseModel):
    paths: List[str]


class DocumentModel(BaseModel):
    id: str
    path: str
    name: str
    page_count: int
    size: int
    size_text: str


class CombineModel(BaseModel):
    success: bool
    file_count: int
    page_count: int
    output_size: int
    output_path: str


class CompressionModel(BaseModel):
    success: bool
    original_size: int
    compressed_size: int
    savings_percent: int
    output_path: str
    preset: str


class ThumbnailModel(BaseModel):
    page_index: int
    image_data: str
    width: int
    height: int


# ----------------------------------------------------------------------
# Error mapping
# ----------------------------------------------------------------------
def _status_for(exc: PdfComposeError) -> int:
    if isinstance(exc, OperationTimedOutError):
        return 504
    if isinstance(exc, ExternalToolUnavailableError):
        return 503
    if isinstance(exc, ExternalToolFailedError):
        return 502
    if isinstance(
        exc,
        (DocumentError, CompositionError, ThumbnailError, PageIndexOutOfRangeError, ScratchPathError),
    ):
        return 400
    return 500


async def _call(func, *args, **kwargs):
    """Run a blocking engine call off the event loop, mapping errors to HTTP."""

    try:
        return await run_in_threadpool(func, *args, **kwargs)
    except PdfComposeError as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------
@app.get("/health")
async def health() -> dict[str, str]:
    """Lightweight health endpoint for uptime checks."""
    return {"status": "ok"}


@app.get("/ghostscript")
async def ghostscript(engine: DocumentEngine = Depends(get_engine)) -> dict[str, str]:
    """Report the Ghostscript version, or 503 with install instructions."""

    version = await _call(engine.ghostscript_version)
    return {"version": version}


@app.post("/documents/describe", response_model=DocumentModel)
async def describe_document(
    payload: PathRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> DocumentModel:
    descriptor = await _call(engine.describe, payload.path)
    return DocumentModel(**descriptor.to_dict())


@app.post("/documents/validate")
async def validate_document(
    payload: PathRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> dict[str, object]:
    await _call(engine.validate, payload.path)
    return {"valid": True, "path": payload.path}


@app.post("/compress", response_model=CompressionModel)
async def compress_document(
    payload: CompressRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> CompressionModel:
    """Compress a document into a temp artifact owned by the client."""

    result = await _call(engine.compress, payload.path, payload.preset)
    return CompressionModel(**result.to_dict())


@app.post("/combine", response_model=CombineModel)
async def combine_documents(
    payload: CombineRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> CombineModel:
    result = await _call(engine.combine, payload.paths)
    return CombineModel(**result.to_dict())


@app.post("/merge-two", response_model=DocumentModel)
async def merge_two_documents(
    payload: MergeTwoRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> DocumentModel:
    descriptor = await _call(engine.merge_two, payload.first, payload.second, payload.mode)
    return DocumentModel(**descriptor.to_dict())


@app.post("/reorder", response_model=DocumentModel)
async def reorder_document(
    payload: ReorderRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> DocumentModel:
    descriptor = await _call(engine.reorder, payload.path, payload.page_order)
    return DocumentModel(**descriptor.to_dict())


@app.post("/thumbnails", response_model=List[ThumbnailModel])
async def document_thumbnails(
    payload: ThumbnailsRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> List[ThumbnailModel]:
    results = await _call(engine.thumbnails_all, payload.path, payload.width, payload.height)
    return [ThumbnailModel(**result.to_dict()) for result in results]


@app.post("/thumbnails/page", response_model=ThumbnailModel)
async def page_thumbnail(
    payload: PageThumbnailRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> ThumbnailModel:
    result = await _call(
        engine.thumbnail_one, payload.path, payload.page_index, payload.width, payload.height
    )
    return ThumbnailModel(**result.to_dict())


@app.delete("/thumbnails")
async def evict_thumbnails(
    payload: EvictRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> dict[str, object]:
    """Evict one document's cached thumbnails, or the whole cache with ``all``."""

    if payload.all:
        await _call(engine.evict_all_thumbnail_caches)
        return {"evicted": True, "all": True}
    if not payload.path:
        raise HTTPException(status_code=400, detail="Either 'path' or 'all' must be given.")
    removed = await _call(engine.evict_thumbnail_cache, payload.path)
    return {"evicted": removed, "all": False}


@app.post("/save")
async def save_artifact(
    payload: SaveRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> dict[str, str]:
    """Copy a temp artifact to its destination and release it."""

    saved = await _call(engine.save, payload.artifact, payload.destination)
    return {"path": str(saved)}


@app.post("/release")
async def release_artifacts(
    payload: ReleaseRequest,
    engine: DocumentEngine = Depends(get_engine),
) -> dict[str, List[str]]:
    released = await _call(engine.release, *payload.paths)
    return {"released": [str(path) for path in released]}
