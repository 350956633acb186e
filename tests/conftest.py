from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence
import subprocess
import sys

import pytest
from pypdf import PdfReader, PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdfcomposex import compress, thumbnails  # noqa: E402
from pdfcomposex.config import Settings  # noqa: E402
from pdfcomposex.engine import DocumentEngine  # noqa: E402
from pdfcomposex.scratch import ScratchStore  # noqa: E402
from pdfcomposex.thumbnails import CacheStore  # noqa: E402

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

PdfFactory = Callable[..., Path]


def page_widths(path: Path) -> list[int]:
    """Widths of every page, used to identify pages after reordering."""

    return [int(float(page.mediabox.width)) for page in PdfReader(str(path)).pages]


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> PdfFactory:
    def _create(filename: str, widths: Sequence[int] = (100,), title: str | None = None) -> Path:
        path = tmp_path / filename
        writer = PdfWriter()
        for width in widths:
            writer.add_blank_page(width=width, height=200)
        if title is not None:
            writer.add_metadata({"/Title": title})
        with path.open("wb") as handle:
            writer.write(handle)
        return path

    return _create


@pytest.fixture()
def sample_pdf(pdf_factory: PdfFactory) -> Path:
    return pdf_factory("sample.pdf", widths=(101, 102, 103))


@pytest.fixture()
def empty_pdf(pdf_factory: PdfFactory) -> Path:
    return pdf_factory("empty.pdf", widths=())


@pytest.fixture()
def corrupt_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "corrupt.pdf"
    path.write_bytes(b"this is not a pdf document at all")
    return path


@pytest.fixture()
def locked_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "locked.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=100, height=200)
    writer.encrypt("secret")
    with path.open("wb") as handle:
        writer.write(handle)
    return path


@pytest.fixture()
def scratch(tmp_path: Path) -> ScratchStore:
    return ScratchStore(tmp_path / "scratch")


@pytest.fixture()
def cache_store(tmp_path: Path) -> CacheStore:
    return CacheStore(tmp_path / "thumbs")


@pytest.fixture()
def engine(scratch: ScratchStore, cache_store: CacheStore) -> DocumentEngine:
    return DocumentEngine(scratch, cache_store, settings=Settings())


class FakeGhostscript:
    """Stands in for the rasterizer: records commands and writes the outputs."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.compressed_size: int | None = None
        self.error: Exception | None = None
        self.on_call: Callable[[list[str]], None] | None = None

    @property
    def thumbnail_calls(self) -> list[list[str]]:
        return [call for call in self.calls if "-sDEVICE=png16m" in call]

    def __call__(self, command, *, context=None, env=None, check=True, label=None):
        command = [str(part) for part in command]
        self.calls.append(command)
        if self.on_call is not None:
            self.on_call(command)
        if self.error is not None:
            raise self.error

        output = next(arg.split("=", 1)[1] for arg in command if arg.startswith("-sOutputFile="))
        source = Path(command[-1])
        if "-sDEVICE=pdfwrite" in command:
            size = self.compressed_size
            data = source.read_bytes() if size is None else b"%PDF-1.4\n".ljust(size, b"0")
            Path(output).write_bytes(data)
        else:
            first = next(
                (int(arg.split("=", 1)[1]) for arg in command if arg.startswith("-dFirstPage=")),
                None,
            )
            if first is not None:
                Path(output).write_bytes(PNG_SIGNATURE + f"page-{first}".encode())
            else:
                total = len(PdfReader(str(source)).pages)
                for number in range(1, total + 1):
                    Path(output % number).write_bytes(PNG_SIGNATURE + f"page-{number}".encode())
        return subprocess.CompletedProcess(command, 0, "", "")


@pytest.fixture()
def fake_gs(monkeypatch: pytest.MonkeyPatch) -> FakeGhostscript:
    fake = FakeGhostscript()
    monkeypatch.setattr(compress, "run_subprocess", fake)
    monkeypatch.setattr(thumbnails, "run_subprocess", fake)
    monkeypatch.setattr(compress, "find_ghostscript", lambda explicit=None: "gs")
    monkeypatch.setattr(thumbnails, "find_ghostscript", lambda explicit=None: "gs")
    return fake
