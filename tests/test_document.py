from __future__ import annotations

from pathlib import Path

import pytest

from pdfcomposex.document import DescriptorService, get_file_info, looks_encrypted
from pdfcomposex.exceptions import (
    EmptyDocumentError,
    EncryptedDocumentError,
    NotADocumentError,
    UnreadableDocumentError,
)


@pytest.fixture()
def service() -> DescriptorService:
    return DescriptorService()


def test_describe_reports_pages_and_size(service: DescriptorService, sample_pdf: Path) -> None:
    descriptor = service.describe(sample_pdf)

    assert descriptor.page_count == 3
    assert descriptor.name == "sample.pdf"
    assert descriptor.path == str(sample_pdf)
    assert descriptor.size == sample_pdf.stat().st_size
    assert descriptor.size_text.endswith("B")
    assert len(descriptor.id) == 8


def test_describe_issues_fresh_ids(service: DescriptorService, sample_pdf: Path) -> None:
    assert service.describe(sample_pdf).id != service.describe(sample_pdf).id


def test_describe_reflects_file_changes(
    service: DescriptorService, pdf_factory, sample_pdf: Path
) -> None:
    assert service.describe(sample_pdf).page_count == 3
    pdf_factory("sample.pdf", widths=(100,))
    assert service.describe(sample_pdf).page_count == 1


def test_wrong_extension_is_not_a_document(service: DescriptorService, tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    with pytest.raises(NotADocumentError):
        service.describe(path)


def test_missing_file_is_unreadable(service: DescriptorService, tmp_path: Path) -> None:
    with pytest.raises(UnreadableDocumentError, match="cannot access file"):
        service.validate(tmp_path / "missing.pdf")


def test_zero_byte_file_is_empty(service: DescriptorService, tmp_path: Path) -> None:
    path = tmp_path / "zero.pdf"
    path.write_bytes(b"")

    with pytest.raises(EmptyDocumentError):
        service.validate(path)


def test_corrupt_file_is_unreadable(service: DescriptorService, corrupt_pdf: Path) -> None:
    with pytest.raises(UnreadableDocumentError) as excinfo:
        service.validate(corrupt_pdf)
    assert not isinstance(excinfo.value, EncryptedDocumentError)


def test_password_protected_file_is_encrypted(service: DescriptorService, locked_pdf: Path) -> None:
    with pytest.raises(EncryptedDocumentError):
        service.describe(locked_pdf)


def test_document_without_pages_is_empty(service: DescriptorService, empty_pdf: Path) -> None:
    service.validate(empty_pdf)
    with pytest.raises(EmptyDocumentError):
        service.describe(empty_pdf)


def test_validator_message_heuristic_marks_encryption(tmp_path: Path) -> None:
    class StubBackend:
        def validate(self, path):
            raise UnreadableDocumentError("file requires a password to open")

        def is_encrypted(self, path):
            return False

    path = tmp_path / "odd.pdf"
    path.write_bytes(b"%PDF-1.4")

    with pytest.raises(EncryptedDocumentError):
        DescriptorService(backend=StubBackend()).validate(path)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("File has not been decrypted", True),
        ("Encrypted stream", True),
        ("wrong PASSWORD", True),
        ("EOF marker not found", False),
    ],
)
def test_looks_encrypted(message: str, expected: bool) -> None:
    assert looks_encrypted(message) is expected


def test_get_file_info_does_not_validate(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"x" * 2048)

    info = get_file_info(path)

    assert info.name == "data.bin"
    assert info.size == 2048
    assert info.size_text == "2.0 KB"


def test_get_file_info_missing_file(tmp_path: Path) -> None:
    with pytest.raises(UnreadableDocumentError):
        get_file_info(tmp_path / "missing.pdf")
