"""Facility-scoped queries over document files."""

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.models import DocumentFile
from facility_docs.services.folder_store import in_folder, scoped

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_file_size(size: int | None) -> str:
    if not size or size <= 0:
        return "0 B"
    factor = 0
    value = float(size)
    while value >= 1024 and factor < len(SIZE_UNITS) - 1:
        value /= 1024
        factor += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {SIZE_UNITS[factor]}"


def file_order(sort_by: str, direction: str) -> list:
    desc = direction == "desc"
    name = DocumentFile.original_name.desc() if desc else DocumentFile.original_name.asc()
    if sort_by == "date":
        key = DocumentFile.created_at.desc() if desc else DocumentFile.created_at.asc()
    elif sort_by == "modified":
        key = DocumentFile.updated_at.desc() if desc else DocumentFile.updated_at.asc()
    elif sort_by == "size":
        key = DocumentFile.file_size.desc() if desc else DocumentFile.file_size.asc()
    elif sort_by == "type":
        key = DocumentFile.file_extension.desc() if desc else DocumentFile.file_extension.asc()
    else:
        return [name, DocumentFile.id]
    return [key, DocumentFile.original_name.asc(), DocumentFile.id]


def files_query(
    facility_id: int,
    category: str | None,
    folder_id: int | None,
    filter_type: str | None = None,
    search: str | None = None,
) -> Select:
    stmt = scoped(select(DocumentFile), DocumentFile, facility_id, category)
    stmt = in_folder(stmt, DocumentFile.folder_id, folder_id)
    if filter_type and filter_type != "all":
        stmt = stmt.where(DocumentFile.file_extension == filter_type.lower())
    if search:
        stmt = stmt.where(DocumentFile.original_name.contains(search, autoescape=True))
    return stmt


def files_in_folders(facility_id: int, folder_ids: set[int], search: str | None = None) -> Select:
    stmt = select(DocumentFile).where(
        DocumentFile.facility_id == facility_id, DocumentFile.folder_id.in_(sorted(folder_ids))
    )
    if search:
        stmt = stmt.where(DocumentFile.original_name.icontains(search, autoescape=True))
    return stmt


async def get_file(
    db: AsyncSession, facility_id: int, file_id: int, category: str | None = None
) -> DocumentFile | None:
    stmt = scoped(select(DocumentFile), DocumentFile, facility_id, category)
    result = await db.execute(stmt.where(DocumentFile.id == file_id))
    return result.scalar_one_or_none()


async def page_files(
    db: AsyncSession,
    stmt: Select,
    sort_by: str,
    direction: str,
    page: int,
    per_page: int,
) -> tuple[list[DocumentFile], int]:
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(*file_order(sort_by, direction)).offset((page - 1) * per_page).limit(per_page)
    )
    return list(result.scalars().all()), total


async def list_files(db: AsyncSession, stmt: Select, sort_by: str = "name", direction: str = "asc") -> list[DocumentFile]:
    result = await db.execute(stmt.order_by(*file_order(sort_by, direction)))
    return list(result.scalars().all())


async def folder_file_stats(
    db: AsyncSession, facility_id: int, category: str | None, folder_id: int | None
) -> tuple[int, int]:
    stmt = scoped(
        select(func.count(DocumentFile.id), func.coalesce(func.sum(DocumentFile.file_size), 0)),
        DocumentFile,
        facility_id,
        category,
    )
    stmt = in_folder(stmt, DocumentFile.folder_id, folder_id)
    count, size = (await db.execute(stmt)).one()
    return int(count), int(size)


async def stats_for_folders(db: AsyncSession, folder_ids: set[int]) -> tuple[int, int]:
    if not folder_ids:
        return 0, 0
    count, size = (
        await db.execute(
            select(func.count(DocumentFile.id), func.coalesce(func.sum(DocumentFile.file_size), 0)).where(
                DocumentFile.folder_id.in_(list(folder_ids))
            )
        )
    ).one()
    return int(count), int(size)


async def extension_counts(db: AsyncSession, facility_id: int, category: str | None) -> list[tuple[str, int]]:
    count = func.count(DocumentFile.id)
    stmt = scoped(select(DocumentFile.file_extension, count), DocumentFile, facility_id, category)
    result = await db.execute(
        stmt.group_by(DocumentFile.file_extension).order_by(count.desc(), DocumentFile.file_extension)
    )
    return [(ext, int(n)) for ext, n in result.all()]


async def recent_files(db: AsyncSession, facility_id: int, folder_ids: set[int], limit: int) -> list[DocumentFile]:
    stmt = files_in_folders(facility_id, folder_ids).order_by(DocumentFile.created_at.desc(), DocumentFile.id.desc())
    result = await db.execute(stmt.limit(limit))
    return list(result.scalars().all())
