"""Physical document objects stored in {storage_root}/documents/{category}/facility_{id}/"""

import logging
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from facility_docs.config import settings
from facility_docs.errors import FILE_TOO_LARGE, DocumentValidationError, StorageError
from facility_docs.services.mime import extension_of

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "documents"
CHUNK_SIZE = 8192
MAIN_SEGMENT = "main"


def storage_root() -> Path:
    root = Path(settings.storage_root).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def generate_stored_name(original_name: str) -> str:
    ext = extension_of(original_name)
    return f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex


def build_key(facility_id: int, category: str | None, stored_name: str) -> str:
    segment = category or MAIN_SEGMENT
    return f"{STORAGE_PREFIX}/{segment}/facility_{facility_id}/{stored_name}"


def object_path(key: str) -> Path:
    return storage_root() / key


def save_stream(key: str, head: bytes, stream: BinaryIO, max_bytes: int) -> int:
    """Write ``head`` followed by the rest of ``stream``; stop past ``max_bytes``.

    A partially written object is removed before raising.
    """
    path = object_path(key)
    written = 0
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as out:
            chunk = head or stream.read(CHUNK_SIZE)
            while chunk:
                written += len(chunk)
                if written > max_bytes:
                    break
                out.write(chunk)
                chunk = stream.read(CHUNK_SIZE)
    except OSError as e:
        path.unlink(missing_ok=True)
        logger.error("Storage write failed", extra={"key": key, "error": str(e)})
        raise StorageError("Failed to store file", context={"key": key}) from e
    if written > max_bytes:
        path.unlink(missing_ok=True)
        raise DocumentValidationError(
            "File exceeds the maximum upload size",
            FILE_TOO_LARGE,
            field="files",
            context={"max_bytes": max_bytes},
        )
    return written


def stage_delete(key: str) -> Path | None:
    """Move an object aside until the deleting transaction commits.

    Returns the staged path, or ``None`` when the object is already gone.
    """
    path = object_path(key)
    if not path.exists():
        logger.warning("Stored object already missing", extra={"key": key})
        return None
    staged = path.with_name(f".{path.name}.deleting")
    try:
        path.replace(staged)
    except OSError as e:
        logger.error("Storage delete failed", extra={"key": key, "error": str(e)})
        raise StorageError("Failed to delete stored file", context={"key": key}) from e
    return staged


def restore(staged: Path | None, key: str) -> None:
    if staged is None:
        return
    try:
        staged.replace(object_path(key))
    except OSError:
        logger.exception("Failed to restore stored object", extra={"key": key})


def purge(staged: Path | None) -> None:
    if staged is None:
        return
    try:
        staged.unlink(missing_ok=True)
    except OSError:
        logger.exception("Failed to purge deleted object", extra={"path": str(staged)})


def discard(keys: list[str]) -> None:
    """Best-effort removal of objects written by an aborted operation."""
    for key in keys:
        try:
            object_path(key).unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to discard stored object", extra={"key": key})


def read_head(path: Path, size: int = CHUNK_SIZE) -> bytes:
    with path.open("rb") as f:
        return f.read(size)


def iter_chunks(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with path.open("rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk
