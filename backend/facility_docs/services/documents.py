"""Folder and file operations on a facility's document tree.

Every operation is scoped by ``facility_id`` and ``category`` (``None`` is the
main tree). Rejections are raised as ``DocumentError`` subclasses and leave
the database unchanged; each mutation commits once, so a folder rename or
move and its descendant path rewrite land together.
"""

import logging
import math
import posixpath
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, BinaryIO

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.categories import UploadPolicy, upload_policy_for
from facility_docs.config import settings
from facility_docs.errors import (
    CROSS_FACILITY_MOVE,
    CYCLIC_MOVE,
    FILE_TOO_LARGE,
    FOLDER_NOT_EMPTY,
    INVALID_FILE_TYPE,
    INVALID_NAME,
    NO_FILES,
    TOO_MANY_FILES,
    BusinessRuleError,
    DocumentError,
    DocumentValidationError,
    NotFoundError,
    StorageError,
)
from facility_docs.models import DocumentFile, DocumentFolder, User
from facility_docs.schemas.file import FileResponse
from facility_docs.schemas.folder import FolderProperties, FolderResponse, FolderTreeNode
from facility_docs.schemas.listing import (
    Breadcrumb,
    FileTypeCount,
    FolderContents,
    FolderStats,
    FolderWindow,
    ListingOptions,
    Pagination,
    SearchResults,
    SubtreeStats,
    WindowItem,
    WindowOptions,
)
from facility_docs.services import file_store, folder_store, mime, storage
from facility_docs.services.paths import collect_descendant_ids, compute_path, is_descendant, rewrite_descendant_paths

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255
ROOT_LABEL = "Root"
RECENT_FILES_LIMIT = 5

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass
class UploadSource:
    filename: str
    stream: BinaryIO
    content_type: str | None = None
    size: int | None = None


def validate_name(name: str | None, field: str = "name") -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise DocumentValidationError("Name must not be empty", INVALID_NAME, field=field)
    if len(cleaned) > NAME_MAX_LENGTH:
        raise DocumentValidationError(
            f"Name must be at most {NAME_MAX_LENGTH} characters", INVALID_NAME, field=field
        )
    if _CONTROL_CHARS.search(cleaned):
        raise DocumentValidationError("Name contains control characters", INVALID_NAME, field=field)
    if "/" in cleaned or "\\" in cleaned or cleaned in (".", ".."):
        raise DocumentValidationError("Name must not contain path separators", INVALID_NAME, field=field)
    return cleaned


def file_response(f: DocumentFile) -> FileResponse:
    return FileResponse(
        id=f.id,
        facility_id=f.facility_id,
        folder_id=f.folder_id,
        category=f.category,
        name=f.original_name,
        size=f.file_size,
        formatted_size=file_store.format_file_size(f.file_size),
        extension=f.file_extension,
        mime_type=f.mime_type,
        uploaded_by=f.uploaded_by,
        can_preview=f.mime_type in mime.PREVIEWABLE_MIME_TYPES,
        created_at=f.created_at,
        updated_at=f.updated_at,
    )


def ensure_in_scope(folder: DocumentFolder | None, facility_id: int, category: str | None) -> None:
    if folder is not None and (folder.facility_id != facility_id or folder.category != category):
        raise NotFoundError.folder(folder.id, facility_id=facility_id)


async def _commit(db: AsyncSession, operation: str, context: dict[str, Any]) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Document operation failed", extra={"operation": operation, **context})
        raise StorageError("Failed to save changes", context={"operation": operation, **context}) from e


async def _parent_path(db: AsyncSession, folder: DocumentFolder) -> str | None:
    if folder.parent_id is None:
        return None
    parent = await db.get(DocumentFolder, folder.parent_id)
    return parent.path if parent is not None else None


# === Listing ===

def paginate(page: int, per_page: int, total: int) -> Pagination:
    last_page = max(1, math.ceil(total / per_page))
    return Pagination(
        current_page=page, last_page=last_page, per_page=per_page, total=total, has_more_pages=page < last_page
    )


async def get_breadcrumbs(db: AsyncSession, folder: DocumentFolder | None) -> list[Breadcrumb]:
    if folder is None:
        return [Breadcrumb(id=None, name=ROOT_LABEL, is_current=True)]
    chain: list[Breadcrumb] = []
    seen: set[int] = set()
    current: DocumentFolder | None = folder
    while current is not None and current.id not in seen:
        seen.add(current.id)
        chain.append(
            Breadcrumb(id=current.id, name=current.name, path=current.path, is_current=current.id == folder.id)
        )
        current = await db.get(DocumentFolder, current.parent_id) if current.parent_id is not None else None
    chain.reverse()
    return [Breadcrumb(id=None, name=ROOT_LABEL), *chain]


async def get_folder_stats(
    db: AsyncSession, facility_id: int, folder: DocumentFolder | None, category: str | None = None
) -> FolderStats:
    folder_id = folder.id if folder else None
    file_count, total_size = await file_store.folder_file_stats(db, facility_id, category, folder_id)
    folder_count = await folder_store.count_child_folders(db, facility_id, category, folder_id)
    return FolderStats(
        file_count=file_count,
        folder_count=folder_count,
        total_size=total_size,
        formatted_size=file_store.format_file_size(total_size),
    )


async def get_folder_contents(
    db: AsyncSession,
    facility_id: int,
    folder: DocumentFolder | None,
    options: ListingOptions | None = None,
    category: str | None = None,
) -> FolderContents:
    """Child folders (all) and files (paginated) of ``folder``, or of the root."""
    ensure_in_scope(folder, facility_id, category)
    options = options or ListingOptions()
    folder_id = folder.id if folder else None

    folders = await folder_store.list_child_folders(
        db, facility_id, category, folder_id, options.sort_by, options.sort_direction, options.search
    )
    stmt = file_store.files_query(facility_id, category, folder_id, options.filter_type, options.search)
    files, total = await file_store.page_files(
        db, stmt, options.sort_by, options.sort_direction, options.page, options.per_page
    )
    return FolderContents(
        folders=[FolderResponse.model_validate(f) for f in folders],
        files=[file_response(f) for f in files],
        current_folder=FolderResponse.model_validate(folder) if folder else None,
        breadcrumbs=await get_breadcrumbs(db, folder),
        pagination=paginate(options.page, options.per_page, total),
        options=options,
        stats=await get_folder_stats(db, facility_id, folder, category) if options.load_stats else None,
        category=category,
    )


def _window_sort_key(sort_by: str):
    if sort_by == "date":
        return lambda item: (item.created_at, item.name)
    if sort_by == "modified":
        return lambda item: (item.updated_at, item.name)
    if sort_by == "size":
        return lambda item: (item.size or 0, item.name)
    if sort_by == "type":
        return lambda item: (item.extension or "", item.name)
    return lambda item: item.name


async def get_folder_window(
    db: AsyncSession,
    facility_id: int,
    folder: DocumentFolder | None,
    options: WindowOptions | None = None,
    category: str | None = None,
) -> FolderWindow:
    """Folders and files merged into one sorted list, sliced by offset/limit."""
    ensure_in_scope(folder, facility_id, category)
    options = options or WindowOptions()
    folder_id = folder.id if folder else None
    items: list[WindowItem] = []

    if options.item_type in ("all", "folders"):
        folders = await folder_store.list_child_folders(db, facility_id, category, folder_id, search=options.search)
        items.extend(
            WindowItem(id=f.id, name=f.name, item_type="folder", created_at=f.created_at, updated_at=f.updated_at)
            for f in folders
        )
    if options.item_type in ("all", "files"):
        stmt = file_store.files_query(facility_id, category, folder_id, options.filter_type, options.search)
        files = await file_store.list_files(db, stmt)
        items.extend(
            WindowItem(
                id=f.id,
                name=f.original_name,
                item_type="file",
                size=f.file_size,
                extension=f.file_extension,
                created_at=f.created_at,
                updated_at=f.updated_at,
            )
            for f in files
        )

    items.sort(key=_window_sort_key(options.sort_by), reverse=options.sort_direction == "desc")
    total = len(items)
    return FolderWindow(
        items=items[options.offset : options.offset + options.limit],
        total_count=total,
        has_more=options.offset + options.limit < total,
        offset=options.offset,
        limit=options.limit,
    )


async def get_folder_tree(db: AsyncSession, facility_id: int, category: str | None = None) -> list[FolderTreeNode]:
    folders = await folder_store.list_folders(db, facility_id, category)
    nodes = {
        f.id: FolderTreeNode(id=f.id, name=f.name, path=f.path, parent_id=f.parent_id, children=[])
        for f in folders
    }
    roots: list[FolderTreeNode] = []
    for f in folders:
        node = nodes[f.id]
        parent = nodes.get(f.parent_id) if f.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


async def get_available_file_types(
    db: AsyncSession, facility_id: int, category: str | None = None
) -> list[FileTypeCount]:
    counts = await file_store.extension_counts(db, facility_id, category)
    return [
        FileTypeCount(extension=ext, count=n, label=f"{(ext or 'other').upper()} files ({n})")
        for ext, n in counts
    ]


async def subtree_ids(db: AsyncSession, root: DocumentFolder) -> set[int]:
    ids = await collect_descendant_ids(db, root)
    ids.add(root.id)
    return ids


async def get_folder_properties(db: AsyncSession, folder: DocumentFolder) -> FolderProperties:
    direct_count, direct_size = await file_store.folder_file_stats(
        db, folder.facility_id, folder.category, folder.id
    )
    direct_folders = await folder_store.count_child_folders(db, folder.facility_id, folder.category, folder.id)
    total_count, total_size = await file_store.stats_for_folders(db, await subtree_ids(db, folder))
    return FolderProperties(
        folder=FolderResponse.model_validate(folder),
        direct_file_count=direct_count,
        direct_folder_count=direct_folders,
        direct_total_size=direct_size,
        total_file_count=total_count,
        total_size=total_size,
        formatted_size=file_store.format_file_size(direct_size),
        formatted_total_size=file_store.format_file_size(total_size),
        can_delete=direct_count == 0 and direct_folders == 0,
    )


async def get_subtree_stats(
    db: AsyncSession, root: DocumentFolder, recent_limit: int = RECENT_FILES_LIMIT
) -> SubtreeStats:
    """File totals and the newest uploads anywhere under ``root``."""
    folder_ids = await subtree_ids(db, root)
    file_count, total_size = await file_store.stats_for_folders(db, folder_ids)
    recent = await file_store.recent_files(db, root.facility_id, folder_ids, recent_limit)
    return SubtreeStats(
        file_count=file_count,
        folder_count=len(folder_ids) - 1,
        total_size=total_size,
        formatted_size=file_store.format_file_size(total_size),
        recent_files=[file_response(f) for f in recent],
    )


def search_page_size(per_page: int | None) -> int:
    return min(per_page or settings.default_per_page, settings.max_per_page)


async def search_subtree(
    db: AsyncSession, root: DocumentFolder, query: str, page: int = 1, per_page: int | None = None
) -> SearchResults:
    """Files and folders under ``root`` whose name contains ``query``.

    Files are paginated; folders are capped at one page.
    """
    per_page = search_page_size(per_page)
    folder_ids = await subtree_ids(db, root)
    stmt = file_store.files_in_folders(root.facility_id, folder_ids, query)
    files, total = await file_store.page_files(db, stmt, "name", "asc", page, per_page)
    folders = await folder_store.search_folders(db, root.facility_id, folder_ids, query, per_page)
    return SearchResults(
        files=[file_response(f) for f in files],
        folders=[FolderResponse.model_validate(f) for f in folders],
        pagination=paginate(page, per_page, total),
        total_count=total + len(folders),
        query=query,
        category=root.category,
    )


# === Folders ===

async def create_folder(
    db: AsyncSession,
    facility_id: int,
    parent: DocumentFolder | None,
    name: str,
    actor: User,
    category: str | None = None,
) -> DocumentFolder:
    name = validate_name(name)
    ensure_in_scope(parent, facility_id, category)
    folder = DocumentFolder(
        facility_id=facility_id,
        category=category,
        parent_id=parent.id if parent else None,
        name=name,
        path=compute_path(name, parent.path if parent else None),
        created_by=actor.id,
    )
    db.add(folder)
    await _commit(db, "create_folder", {"facility_id": facility_id, "user_id": actor.id})
    await db.refresh(folder)
    logger.info(
        "Document folder created",
        extra={"facility_id": facility_id, "folder_id": folder.id, "path": folder.path, "user_id": actor.id},
    )
    return folder


async def rename_folder(db: AsyncSession, folder: DocumentFolder, new_name: str, actor: User) -> DocumentFolder:
    new_name = validate_name(new_name)
    old_path = folder.path
    folder.name = new_name
    folder.path = compute_path(new_name, await _parent_path(db, folder))
    await rewrite_descendant_paths(db, folder)
    await _commit(db, "rename_folder", {"folder_id": folder.id, "user_id": actor.id})
    await db.refresh(folder)
    logger.info(
        "Document folder renamed",
        extra={"folder_id": folder.id, "old_path": old_path, "new_path": folder.path, "user_id": actor.id},
    )
    return folder


async def move_folder(
    db: AsyncSession, folder: DocumentFolder, target: DocumentFolder | None, actor: User
) -> DocumentFolder:
    context = {"folder_id": folder.id, "target_folder_id": target.id if target else None, "user_id": actor.id}
    if target is not None:
        if target.facility_id != folder.facility_id or target.category != folder.category:
            raise BusinessRuleError(
                "Folders can only be moved within the same facility and category", CROSS_FACILITY_MOVE, context
            )
        if target.id == folder.id or await is_descendant(db, folder, target):
            logger.warning("Cyclic folder move rejected", extra=context)
            raise BusinessRuleError("A folder cannot be moved into itself or its subfolders", CYCLIC_MOVE, context)

    old_path = folder.path
    folder.parent_id = target.id if target else None
    folder.path = compute_path(folder.name, target.path if target else None)
    await rewrite_descendant_paths(db, folder)
    await _commit(db, "move_folder", context)
    await db.refresh(folder)
    logger.info("Document folder moved", extra={**context, "old_path": old_path, "new_path": folder.path})
    return folder


async def delete_folder(db: AsyncSession, folder: DocumentFolder, actor: User) -> bool:
    """Delete an empty folder. Only direct children block deletion."""
    context = {"folder_id": folder.id, "facility_id": folder.facility_id, "user_id": actor.id}
    if await folder_store.has_contents(db, folder):
        logger.warning("Non-empty folder delete rejected", extra=context)
        raise BusinessRuleError(
            f"Folder '{folder.name}' is not empty and cannot be deleted", FOLDER_NOT_EMPTY, context
        )
    await db.delete(folder)
    await _commit(db, "delete_folder", context)
    logger.info("Document folder deleted", extra=context)
    return True


# === Files ===

def _validate_upload(source: UploadSource, policy: UploadPolicy) -> tuple[str, str]:
    name = validate_name(posixpath.basename((source.filename or "").replace("\\", "/")), field="files")
    content_type = mime.normalize(source.content_type, name)
    if content_type not in policy.allowed_mime_types:
        raise DocumentValidationError(
            f"File type of '{name}' is not allowed",
            INVALID_FILE_TYPE,
            field="files",
            context={"file_name": name, "mime_type": content_type, "allowed": sorted(policy.allowed_mime_types)},
        )
    if source.size is not None and source.size > policy.max_bytes:
        raise DocumentValidationError(
            f"File '{name}' exceeds the maximum upload size",
            FILE_TOO_LARGE,
            field="files",
            context={"file_name": name, "size": source.size, "max_bytes": policy.max_bytes},
        )
    return name, content_type


async def upload_files(
    db: AsyncSession,
    facility_id: int,
    folder: DocumentFolder | None,
    uploads: Sequence[UploadSource],
    actor: User,
    category: str | None = None,
    policy: UploadPolicy | None = None,
) -> list[DocumentFile]:
    """Store every upload or none of them."""
    ensure_in_scope(folder, facility_id, category)
    if not uploads:
        raise DocumentValidationError("No files were uploaded", NO_FILES, field="files")
    if len(uploads) > settings.max_files_per_upload:
        raise DocumentValidationError(
            f"At most {settings.max_files_per_upload} files can be uploaded at once", TOO_MANY_FILES, field="files"
        )
    policy = policy or upload_policy_for(category)
    prepared = [(source, *_validate_upload(source, policy)) for source in uploads]

    context = {"facility_id": facility_id, "folder_id": folder.id if folder else None, "user_id": actor.id}
    written: list[str] = []
    records: list[DocumentFile] = []
    try:
        for source, name, content_type in prepared:
            head = source.stream.read(mime.SNIFF_BYTES)
            detected = mime.sniff(head)
            if not mime.is_compatible(content_type, detected):
                raise DocumentValidationError(
                    f"Content of '{name}' does not match its file type",
                    INVALID_FILE_TYPE,
                    field="files",
                    context={"file_name": name, "mime_type": content_type, "detected": detected},
                )
            stored_name = storage.generate_stored_name(name)
            key = storage.build_key(facility_id, category, stored_name)
            size = storage.save_stream(key, head, source.stream, policy.max_bytes)
            written.append(key)
            record = DocumentFile(
                facility_id=facility_id,
                folder_id=folder.id if folder else None,
                category=category,
                original_name=name,
                stored_name=stored_name,
                file_path=key,
                file_size=size,
                mime_type=content_type,
                file_extension=mime.extension_of(name),
                uploaded_by=actor.id,
            )
            db.add(record)
            records.append(record)
        await db.commit()
    except DocumentError as e:
        await db.rollback()
        storage.discard(written)
        logger.warning("Document upload rejected", extra={**context, "code": e.code})
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        storage.discard(written)
        logger.exception("Document upload failed", extra=context)
        raise StorageError("Failed to save uploaded files", context=context) from e

    for record in records:
        await db.refresh(record)
    logger.info("Document files uploaded", extra={**context, "file_ids": [r.id for r in records]})
    return records


async def rename_file(db: AsyncSession, file: DocumentFile, new_name: str, actor: User) -> DocumentFile:
    new_name = validate_name(new_name)
    old_name = file.original_name
    file.original_name = new_name
    await _commit(db, "rename_file", {"file_id": file.id, "user_id": actor.id})
    await db.refresh(file)
    logger.info(
        "Document file renamed",
        extra={"file_id": file.id, "old_name": old_name, "new_name": new_name, "user_id": actor.id},
    )
    return file


async def move_file(db: AsyncSession, file: DocumentFile, target: DocumentFolder | None, actor: User) -> DocumentFile:
    context = {"file_id": file.id, "target_folder_id": target.id if target else None, "user_id": actor.id}
    if target is not None and (target.facility_id != file.facility_id or target.category != file.category):
        raise BusinessRuleError(
            "Files can only be moved within the same facility and category", CROSS_FACILITY_MOVE, context
        )
    old_folder_id = file.folder_id
    file.folder_id = target.id if target else None
    await _commit(db, "move_file", context)
    await db.refresh(file)
    logger.info("Document file moved", extra={**context, "old_folder_id": old_folder_id})
    return file


async def delete_file(db: AsyncSession, file: DocumentFile, actor: User) -> bool:
    """Remove the record and its stored object together.

    The object is moved aside first, so a storage failure keeps the record and
    a failed commit puts the object back.
    """
    context = {"file_id": file.id, "facility_id": file.facility_id, "user_id": actor.id}
    key = file.file_path
    staged = storage.stage_delete(key)
    await db.delete(file)
    try:
        await _commit(db, "delete_file", context)
    except StorageError:
        storage.restore(staged, key)
        raise
    storage.purge(staged)
    logger.info("Document file deleted", extra=context)
    return True
