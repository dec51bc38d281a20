"""Secure download and preview of stored document files.

``prepare_download`` runs every check before a response is started, so a
rejected request never emits file bytes.
"""

import logging
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from facility_docs.config import settings
from facility_docs.errors import (
    CORRUPTED_FILE,
    INVALID_FILE_TYPE,
    INVALID_PATH,
    PREVIEW_NOT_SUPPORTED,
    DocumentError,
    DocumentValidationError,
    IntegrityViolationError,
)
from facility_docs.models import DocumentFile, User
from facility_docs.services import mime, policy, storage

logger = logging.getLogger(__name__)

FILENAME_MAX_BYTES = 255

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_UNSAFE_PATH_CHARS = re.compile(r'[\x00-\x1f\x7f<>:"|?*]')
_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")
_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"} | {f"COM{i}" for i in range(1, 10)} | {f"LPT{i}" for i in range(1, 10)}
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass
class PreparedDownload:
    path: Path
    media_type: str
    filename: str
    size: int
    headers: dict[str, str] = field(default_factory=dict)

    def iter_chunks(self) -> Iterator[bytes]:
        return storage.iter_chunks(self.path, storage.CHUNK_SIZE)


def sanitize_filename(name: str | None) -> str:
    cleaned = _CONTROL_CHARS.sub("", name or "")
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", cleaned).strip()
    stem = cleaned.rpartition(".")[0] or cleaned
    if stem.upper() in _RESERVED_NAMES:
        cleaned = f"file_{cleaned}"
    cleaned = _truncate(cleaned)
    if not cleaned.strip(" ."):
        return f"download_{int(time.time())}"
    return cleaned


def _truncate(name: str) -> str:
    encoded = name.encode("utf-8")
    if len(encoded) <= FILENAME_MAX_BYTES:
        return name
    stem, dot, ext = name.rpartition(".")
    suffix = f".{ext}" if dot and stem else ""
    if not suffix:
        stem = name
    budget = FILENAME_MAX_BYTES - len(suffix.encode("utf-8"))
    if budget <= 0:
        return encoded[:FILENAME_MAX_BYTES].decode("utf-8", errors="ignore")
    return stem.encode("utf-8")[:budget].decode("utf-8", errors="ignore") + suffix


def content_disposition(filename: str, inline: bool = False) -> str:
    kind = "inline" if inline else "attachment"
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", errors="ignore").decode() or "download"
        return f"{kind}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
    return f'{kind}; filename="{filename}"'


def validate_relative_path(key: str | None) -> None:
    if not key:
        raise IntegrityViolationError("File path is empty", INVALID_PATH)
    normalized = key.replace("\\", "/")
    if (
        ".." in key
        or key.startswith(("/", "\\"))
        or _DRIVE_LETTER.match(key)
        or _UNSAFE_PATH_CHARS.search(key)
    ):
        raise IntegrityViolationError("File path is not allowed", INVALID_PATH, {"key": key})
    if not normalized.startswith(f"{storage.STORAGE_PREFIX}/"):
        raise IntegrityViolationError("File path is outside the document store", INVALID_PATH, {"key": key})


def resolve_path(key: str) -> Path:
    validate_relative_path(key)
    root = storage.storage_root()
    path = (root / key).resolve()
    if not path.is_relative_to(root):
        raise IntegrityViolationError("File path escapes the document store", INVALID_PATH, {"key": key})
    return path


def verify_integrity(file: DocumentFile, path: Path) -> None:
    if not path.is_file():
        raise IntegrityViolationError("Stored file is missing", CORRUPTED_FILE, {"key": file.file_path})
    actual = path.stat().st_size
    if actual != file.file_size:
        raise IntegrityViolationError(
            "Stored file size does not match its record",
            CORRUPTED_FILE,
            {"recorded": file.file_size, "actual": actual},
        )
    detected = mime.sniff(storage.read_head(path, mime.SNIFF_BYTES))
    if not mime.is_compatible(file.mime_type, detected):
        raise IntegrityViolationError(
            "Stored file content does not match its type",
            CORRUPTED_FILE,
            {"mime_type": file.mime_type, "detected": detected},
        )


def _check(file: DocumentFile, inline: bool) -> Path:
    if file.mime_type not in mime.GENERAL_MIME_TYPES:
        raise IntegrityViolationError(
            "File type cannot be downloaded", INVALID_FILE_TYPE, {"mime_type": file.mime_type}
        )
    if inline and file.mime_type not in mime.PREVIEWABLE_MIME_TYPES:
        raise DocumentValidationError(
            "This file type cannot be previewed", PREVIEW_NOT_SUPPORTED, context={"mime_type": file.mime_type}
        )
    if file.file_size > settings.download_max_bytes:
        raise IntegrityViolationError(
            "File exceeds the maximum download size",
            CORRUPTED_FILE,
            {"size": file.file_size, "max_bytes": settings.download_max_bytes},
        )
    path = resolve_path(file.file_path)
    verify_integrity(file, path)
    return path


def log_refusal(error: DocumentError, context: dict) -> None:
    logger.warning("Document download refused", extra={**context, "code": error.code, "reason": error.message})


def prepare_download(
    file: DocumentFile, actor: User, client_ip: str | None = None, inline: bool = False
) -> PreparedDownload:
    context = {
        "file_id": file.id,
        "facility_id": file.facility_id,
        "user_id": actor.id,
        "ip_address": client_ip,
        "inline": inline,
    }
    try:
        policy.ensure_can_view(actor, file.facility_id)
        path = _check(file, inline)
    except DocumentError as e:
        log_refusal(e, context)
        raise

    filename = sanitize_filename(file.original_name)
    headers = {
        "Content-Length": str(file.file_size),
        "Content-Disposition": content_disposition(filename, inline),
        **SECURITY_HEADERS,
    }
    logger.info("Document file served", extra=context)
    return PreparedDownload(
        path=path, media_type=file.mime_type, filename=filename, size=file.file_size, headers=headers
    )
