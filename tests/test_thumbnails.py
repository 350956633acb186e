from __future__ import annotations

import base64
import os
import threading
import time
from pathlib import Path

import pytest
from pypdf import PdfWriter

from pdfcomposex.events import RecordingSink
from pdfcomposex.exceptions import (
    EmptyDocumentError,
    ExternalToolFailedError,
    OperationTimedOutError,
    PageIndexOutOfRangeError,
    ThumbnailError,
    TooManyPagesError,
)
from pdfcomposex.thumbnails import (
    DATA_URL_PREFIX,
    CacheStore,
    ThumbnailCache,
    cache_key,
    page_filename,
)

from conftest import PNG_SIGNATURE


@pytest.fixture()
def cache(cache_store: CacheStore) -> ThumbnailCache:
    return ThumbnailCache(cache_store)


def decode(image_data: str) -> bytes:
    assert image_data.startswith(DATA_URL_PREFIX)
    return base64.b64decode(image_data[len(DATA_URL_PREFIX):])


def test_cache_key_is_sixteen_hex_chars() -> None:
    key = cache_key("/docs/a.pdf", 1234567890)

    assert len(key) == 16
    int(key, 16)
    assert key == cache_key("/docs/a.pdf", 1234567890)
    assert key != cache_key("/docs/a.pdf", 1234567891)
    assert key != cache_key("/docs/b.pdf", 1234567890)


def test_page_filename_is_one_based_and_padded() -> None:
    assert page_filename(0) == "page_001.png"
    assert page_filename(41) == "page_042.png"


def test_generate_all_renders_every_page(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    sink = RecordingSink()

    results = cache.generate_all(sample_pdf, 150, 200, sink=sink)

    assert [result.page_index for result in results] == [0, 1, 2]
    assert all((result.width, result.height) == (150, 200) for result in results)
    assert decode(results[1].image_data) == PNG_SIGNATURE + b"page-2"

    assert len(fake_gs.thumbnail_calls) == 1
    command = fake_gs.thumbnail_calls[0]
    assert "-g150x200" in command
    assert "-r96" in command
    assert not any(arg.startswith("-dFirstPage") for arg in command)
    assert command[-2].endswith("page_%03d.png")

    directory = cache_store.directory_for(sample_pdf)
    assert sorted(path.name for path in directory.iterdir()) == [
        "page_001.png",
        "page_002.png",
        "page_003.png",
    ]
    assert sink.percents("thumbnail:progress")[-1] == 100


def test_second_call_is_a_cache_hit(cache: ThumbnailCache, sample_pdf: Path, fake_gs) -> None:
    first = cache.generate_all(sample_pdf, 150, 200)
    sink = RecordingSink()

    second = cache.generate_all(sample_pdf, 150, 200, sink=sink)

    assert second == first
    assert len(fake_gs.thumbnail_calls) == 1
    assert sink.lines("thumbnail:log") == ["Loaded from cache"]


def test_touch_forces_regeneration(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    cache.generate_all(sample_pdf, 150, 200)
    old_directory = cache_store.directory_for(sample_pdf)

    stat = sample_pdf.stat()
    os.utime(sample_pdf, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
    cache.generate_all(sample_pdf, 150, 200)

    assert len(fake_gs.thumbnail_calls) == 2
    assert cache_store.directory_for(sample_pdf) != old_directory


def test_partial_directory_is_a_miss(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    cache.generate_one(sample_pdf, 1, 150, 200)

    results = cache.generate_all(sample_pdf, 150, 200)

    assert len(results) == 3
    assert len(fake_gs.thumbnail_calls) == 2


def test_evict_removes_directory_and_forces_regeneration(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    cache.generate_all(sample_pdf, 150, 200)
    directory = cache_store.directory_for(sample_pdf)

    assert cache.evict(sample_pdf) is True
    assert not directory.exists()
    assert cache.evict(sample_pdf) is False

    cache.generate_all(sample_pdf, 150, 200)
    assert len(fake_gs.thumbnail_calls) == 2


def test_evict_all_removes_root(
    cache: ThumbnailCache, cache_store: CacheStore, pdf_factory, fake_gs
) -> None:
    cache.generate_all(pdf_factory("a.pdf"), 150, 200)
    cache.generate_all(pdf_factory("b.pdf"), 150, 200)

    cache.evict_all()

    assert not cache_store.root.exists()
    cache.evict_all()


def test_empty_document_is_rejected(cache: ThumbnailCache, empty_pdf: Path, fake_gs) -> None:
    with pytest.raises(EmptyDocumentError):
        cache.generate_all(empty_pdf, 150, 200)
    assert fake_gs.calls == []


def test_too_many_pages_is_rejected(cache: ThumbnailCache, tmp_path: Path, fake_gs) -> None:
    path = tmp_path / "huge.pdf"
    writer = PdfWriter()
    for _ in range(501):
        writer.add_blank_page(width=10, height=10)
    with path.open("wb") as handle:
        writer.write(handle)

    with pytest.raises(TooManyPagesError):
        cache.generate_all(path, 150, 200)
    assert fake_gs.calls == []


def test_page_ceiling_is_configurable(cache_store: CacheStore, sample_pdf: Path, fake_gs) -> None:
    cache = ThumbnailCache(cache_store, max_pages=2)

    with pytest.raises(TooManyPagesError):
        cache.generate_all(sample_pdf, 150, 200)


def test_non_positive_size_is_rejected(cache: ThumbnailCache, sample_pdf: Path, fake_gs) -> None:
    with pytest.raises(ThumbnailError):
        cache.generate_all(sample_pdf, 0, 200)


def test_rasterizer_failure_removes_directory(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    def write_first_page(command: list[str]) -> None:
        pattern = next(arg.split("=", 1)[1] for arg in command if arg.startswith("-sOutputFile="))
        Path(pattern % 1).write_bytes(PNG_SIGNATURE)

    fake_gs.on_call = write_first_page
    fake_gs.error = ExternalToolFailedError(
        "ghostscript failed: bad page", returncode=1, stderr="bad page"
    )

    with pytest.raises(ExternalToolFailedError, match="bad page"):
        cache.generate_all(sample_pdf, 150, 200)

    assert not cache_store.directory_for(sample_pdf).exists()


def test_timeout_is_reported_distinctly(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    fake_gs.error = OperationTimedOutError()

    with pytest.raises(OperationTimedOutError, match="thumbnail generation timed out"):
        cache.generate_all(sample_pdf, 150, 200)

    assert not cache_store.directory_for(sample_pdf).exists()


def test_generate_one_renders_single_page(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    result = cache.generate_one(sample_pdf, 2, 120, 160)

    assert result.page_index == 2
    assert (result.width, result.height) == (120, 160)
    assert decode(result.image_data) == PNG_SIGNATURE + b"page-3"

    command = fake_gs.thumbnail_calls[0]
    assert "-dFirstPage=3" in command
    assert "-dLastPage=3" in command
    assert command[-2].endswith("page_003.png")

    assert cache.generate_one(sample_pdf, 2, 120, 160) == result
    assert len(fake_gs.thumbnail_calls) == 1


def test_generate_one_uses_whole_document_cache(
    cache: ThumbnailCache, sample_pdf: Path, fake_gs
) -> None:
    cache.generate_all(sample_pdf, 150, 200)

    result = cache.generate_one(sample_pdf, 0, 150, 200)

    assert decode(result.image_data) == PNG_SIGNATURE + b"page-1"
    assert len(fake_gs.thumbnail_calls) == 1


@pytest.mark.parametrize("page_index", [-1, 3, 10])
def test_generate_one_rejects_out_of_range(
    cache: ThumbnailCache, sample_pdf: Path, fake_gs, page_index: int
) -> None:
    with pytest.raises(PageIndexOutOfRangeError):
        cache.generate_one(sample_pdf, page_index, 150, 200)
    assert fake_gs.calls == []


def test_generate_one_failure_leaves_no_file(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    fake_gs.error = ExternalToolFailedError("ghostscript failed", returncode=1, stderr="")

    with pytest.raises(ExternalToolFailedError):
        cache.generate_one(sample_pdf, 0, 150, 200)

    assert not (cache_store.directory_for(sample_pdf) / "page_001.png").exists()


def test_concurrent_identical_requests_render_once(
    cache: ThumbnailCache, sample_pdf: Path, fake_gs
) -> None:
    fake_gs.on_call = lambda command: time.sleep(0.2)
    results: list = []
    errors: list = []

    def worker() -> None:
        try:
            results.append(cache.generate_all(sample_pdf, 150, 200))
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(results) == 4
    assert all(result == results[0] for result in results)
    assert len(fake_gs.thumbnail_calls) == 1


def test_cache_store_lock_blocks_same_key_only(cache_store: CacheStore) -> None:
    entered = threading.Event()

    def wait_for(key: str) -> None:
        with cache_store.locked(key):
            entered.set()

    with cache_store.locked("a"):
        other = threading.Thread(target=wait_for, args=("b",))
        other.start()
        assert entered.wait(5)
        other.join()

        entered.clear()
        same = threading.Thread(target=wait_for, args=("a",))
        same.start()
        assert not entered.wait(0.2)

    same.join(5)
    assert entered.is_set()


def test_cache_store_drops_idle_locks(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    cache.generate_all(sample_pdf, 150, 200)
    cache.generate_one(sample_pdf, 1, 150, 200)
    cache.evict(sample_pdf)

    assert cache_store.active_keys == []


def test_eviction_waits_for_running_generation(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    rendering = threading.Event()

    def slow_render(command: list[str]) -> None:
        rendering.set()
        time.sleep(0.2)

    fake_gs.on_call = slow_render
    results: list = []
    worker = threading.Thread(
        target=lambda: results.append(cache.generate_all(sample_pdf, 150, 200))
    )
    worker.start()
    assert rendering.wait(5)

    assert cache.evict(sample_pdf) is True
    worker.join(5)

    assert len(results) == 1
    assert not cache_store.directory_for(sample_pdf).exists()
    assert cache_store.active_keys == []


def test_unexpected_error_removes_partial_directory(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    def write_first_page(command: list[str]) -> None:
        pattern = next(arg.split("=", 1)[1] for arg in command if arg.startswith("-sOutputFile="))
        Path(pattern % 1).write_bytes(PNG_SIGNATURE)

    fake_gs.on_call = write_first_page
    fake_gs.error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    with pytest.raises(UnicodeDecodeError):
        cache.generate_all(sample_pdf, 150, 200)

    assert not cache_store.directory_for(sample_pdf).exists()


def test_generate_one_unexpected_error_leaves_no_file(
    cache: ThumbnailCache, cache_store: CacheStore, sample_pdf: Path, fake_gs
) -> None:
    def write_page(command: list[str]) -> None:
        target = next(arg.split("=", 1)[1] for arg in command if arg.startswith("-sOutputFile="))
        Path(target).write_bytes(PNG_SIGNATURE)

    fake_gs.on_call = write_page
    fake_gs.error = KeyboardInterrupt()

    with pytest.raises(KeyboardInterrupt):
        cache.generate_one(sample_pdf, 0, 150, 200)

    assert not (cache_store.directory_for(sample_pdf) / "page_001.png").exists()
