"""Download/preview gateway: access, path safety, integrity and headers."""

import pytest

from conftest import PDF_BYTES, TEXT_BYTES, make_user, pdf_upload, text_upload
from facility_docs.config import settings
from facility_docs.errors import (
    CORRUPTED_FILE,
    INVALID_FILE_TYPE,
    INVALID_PATH,
    PREVIEW_NOT_SUPPORTED,
    DocumentValidationError,
    IntegrityViolationError,
    PermissionDeniedError,
)
from facility_docs.services import documents, downloads, storage


async def _stored_pdf(db, facility, editor):
    [record] = await documents.upload_files(db, facility.id, None, [pdf_upload("Report.pdf")], editor)
    return record


class TestSanitizeFilename:
    def test_plain_name_unchanged(self):
        assert downloads.sanitize_filename("report.pdf") == "report.pdf"

    def test_unsafe_characters_replaced(self):
        assert downloads.sanitize_filename('a<b>:c"d|e?f*.pdf') == "a_b__c_d_e_f_.pdf"

    def test_control_characters_removed(self):
        assert downloads.sanitize_filename("re\x00po\x1frt.pdf") == "report.pdf"

    def test_long_name_keeps_extension(self):
        name = downloads.sanitize_filename("x" * 300 + ".pdf")
        assert name.endswith(".pdf")
        assert len(name.encode("utf-8")) == 255

    def test_multibyte_truncation_stays_valid(self):
        name = downloads.sanitize_filename("報" * 200 + ".pdf")
        assert name.endswith(".pdf")
        assert len(name.encode("utf-8")) <= 255
        name.encode("utf-8").decode("utf-8")

    def test_reserved_device_name(self):
        assert downloads.sanitize_filename("CON.txt") == "file_CON.txt"

    def test_empty_falls_back(self):
        assert downloads.sanitize_filename("\x00\x01").startswith("download_")


class TestContentDisposition:
    def test_ascii(self):
        assert downloads.content_disposition("a.pdf") == 'attachment; filename="a.pdf"'

    def test_inline(self):
        assert downloads.content_disposition("a.pdf", inline=True).startswith("inline;")

    def test_non_ascii_uses_rfc5987(self):
        header = downloads.content_disposition("点検.pdf")
        assert "filename*=UTF-8''%E7%82%B9%E6%A4%9C.pdf" in header


class TestPathValidation:
    @pytest.mark.parametrize(
        "key",
        [
            "",
            "documents/../secrets.txt",
            "/etc/passwd",
            "\\windows\\system32",
            "C:/documents/a.pdf",
            "documents/main/a|b.pdf",
            "documents/main/a\x00.pdf",
            "uploads/a.pdf",
        ],
    )
    def test_rejects(self, key):
        with pytest.raises(IntegrityViolationError) as exc:
            downloads.validate_relative_path(key)
        assert exc.value.code == INVALID_PATH

    def test_accepts_storage_key(self):
        downloads.validate_relative_path("documents/main/facility_1/abc.pdf")

    def test_symlink_escape_is_rejected(self, storage_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        link_dir = storage_dir / "documents"
        link_dir.mkdir(parents=True)
        (link_dir / "escape").symlink_to(outside, target_is_directory=True)

        with pytest.raises(IntegrityViolationError):
            downloads.resolve_path("documents/escape/file.pdf")


class TestPrepareDownload:
    async def test_headers_and_body(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)

        prepared = downloads.prepare_download(record, editor, "127.0.0.1")

        assert prepared.media_type == "application/pdf"
        assert prepared.headers["Content-Length"] == str(len(PDF_BYTES))
        assert prepared.headers["Content-Disposition"] == 'attachment; filename="Report.pdf"'
        assert prepared.headers["X-Content-Type-Options"] == "nosniff"
        assert prepared.headers["X-Frame-Options"] == "DENY"
        assert prepared.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
        assert b"".join(prepared.iter_chunks()) == PDF_BYTES

    async def test_viewer_without_assignment_is_denied(self, db, facility, editor, outsider):
        record = await _stored_pdf(db, facility, editor)
        with pytest.raises(PermissionDeniedError):
            downloads.prepare_download(record, outsider)

    async def test_assigned_viewer_allowed(self, db, facility, editor, viewer):
        record = await _stored_pdf(db, facility, editor)
        assert downloads.prepare_download(record, viewer).size == len(PDF_BYTES)

    async def test_size_mismatch(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        storage.object_path(record.file_path).write_bytes(PDF_BYTES + b"tampered")

        with pytest.raises(IntegrityViolationError) as exc:
            downloads.prepare_download(record, editor)
        assert exc.value.code == CORRUPTED_FILE

    async def test_content_mismatch(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        forged = TEXT_BYTES.ljust(len(PDF_BYTES), b" ")
        storage.object_path(record.file_path).write_bytes(forged)

        with pytest.raises(IntegrityViolationError) as exc:
            downloads.prepare_download(record, editor)
        assert exc.value.code == CORRUPTED_FILE

    async def test_missing_object(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        storage.object_path(record.file_path).unlink()

        with pytest.raises(IntegrityViolationError):
            downloads.prepare_download(record, editor)

    async def test_tampered_path(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        record.file_path = "../../etc/passwd"

        with pytest.raises(IntegrityViolationError) as exc:
            downloads.prepare_download(record, editor)
        assert exc.value.code == INVALID_PATH

    async def test_disallowed_recorded_type(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        record.mime_type = "text/html"

        with pytest.raises(IntegrityViolationError) as exc:
            downloads.prepare_download(record, editor)
        assert exc.value.code == INVALID_FILE_TYPE

    async def test_over_download_ceiling(self, db, facility, editor, monkeypatch):
        record = await _stored_pdf(db, facility, editor)
        monkeypatch.setattr(settings, "download_max_bytes", 10)

        with pytest.raises(IntegrityViolationError):
            downloads.prepare_download(record, editor)

    async def test_preview_inline(self, db, facility, editor):
        record = await _stored_pdf(db, facility, editor)
        prepared = downloads.prepare_download(record, editor, inline=True)
        assert prepared.headers["Content-Disposition"].startswith("inline;")

    async def test_preview_not_supported_for_word(self, db, facility, editor):
        [record] = await documents.upload_files(db, facility.id, None, [text_upload()], editor)
        record.mime_type = "application/msword"

        with pytest.raises(DocumentValidationError) as exc:
            downloads.prepare_download(record, editor, inline=True)
        assert exc.value.code == PREVIEW_NOT_SUPPORTED

    async def test_approver_can_download_any_facility(self, db, facility, editor):
        approver = await make_user(db, "approver@example.com", "approver")
        record = await _stored_pdf(db, facility, editor)
        assert downloads.prepare_download(record, approver).media_type == "application/pdf"
