"""Structured rejections raised by the document services.

Every failure carries a stable ``code`` and a ``context`` dict that is safe to
log. The HTTP layer maps the exception class to a status code.
"""

from typing import Any

INVALID_NAME = "INVALID_NAME"
INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
TOO_MANY_FILES = "TOO_MANY_FILES"
NO_FILES = "NO_FILES"
FACILITY_NOT_FOUND = "FACILITY_NOT_FOUND"
FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
FILE_NOT_FOUND = "FILE_NOT_FOUND"
PERMISSION_DENIED = "PERMISSION_DENIED"
FOLDER_NOT_EMPTY = "FOLDER_NOT_EMPTY"
CYCLIC_MOVE = "CYCLIC_MOVE"
CROSS_FACILITY_MOVE = "CROSS_FACILITY_MOVE"
INVALID_PATH = "INVALID_PATH"
CORRUPTED_FILE = "CORRUPTED_FILE"
PREVIEW_NOT_SUPPORTED = "PREVIEW_NOT_SUPPORTED"
STORAGE_ERROR = "STORAGE_ERROR"


class DocumentError(Exception):
    code: str = "DOCUMENT_ERROR"

    def __init__(self, message: str, code: str | None = None, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or {}


class DocumentValidationError(DocumentError):
    code = INVALID_NAME

    def __init__(
        self,
        message: str,
        code: str | None = None,
        field: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, context)
        self.field = field


class NotFoundError(DocumentError):
    """Absent, or owned by another facility/category. The two are not distinguished."""

    code = FOLDER_NOT_FOUND

    @classmethod
    def folder(cls, folder_id: int | None, **context: Any) -> "NotFoundError":
        return cls("Folder not found", FOLDER_NOT_FOUND, {"folder_id": folder_id, **context})

    @classmethod
    def file(cls, file_id: int | None, **context: Any) -> "NotFoundError":
        return cls("File not found", FILE_NOT_FOUND, {"file_id": file_id, **context})

    @classmethod
    def facility(cls, facility_id: int, **context: Any) -> "NotFoundError":
        return cls("Facility not found", FACILITY_NOT_FOUND, {"facility_id": facility_id, **context})


class PermissionDeniedError(DocumentError):
    code = PERMISSION_DENIED


class BusinessRuleError(DocumentError):
    code = FOLDER_NOT_EMPTY


class IntegrityViolationError(DocumentError):
    """Path traversal, size or MIME mismatch found while serving a file."""

    code = CORRUPTED_FILE


class StorageError(DocumentError):
    code = STORAGE_ERROR
