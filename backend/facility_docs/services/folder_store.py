"""Facility-scoped queries over document folders."""

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.models import DocumentFile, DocumentFolder


def scoped(stmt: Select, model, facility_id: int, category: str | None) -> Select:
    stmt = stmt.where(model.facility_id == facility_id)
    if category is None:
        return stmt.where(model.category.is_(None))
    return stmt.where(model.category == category)


def in_folder(stmt: Select, column, folder_id: int | None) -> Select:
    if folder_id is None:
        return stmt.where(column.is_(None))
    return stmt.where(column == folder_id)


def folder_order(sort_by: str, direction: str) -> list:
    name = DocumentFolder.name.desc() if direction == "desc" else DocumentFolder.name.asc()
    if sort_by == "date":
        created = DocumentFolder.created_at.desc() if direction == "desc" else DocumentFolder.created_at.asc()
        return [created, DocumentFolder.name.asc(), DocumentFolder.id]
    if sort_by == "modified":
        updated = DocumentFolder.updated_at.desc() if direction == "desc" else DocumentFolder.updated_at.asc()
        return [updated, DocumentFolder.name.asc(), DocumentFolder.id]
    if sort_by == "name":
        return [name, DocumentFolder.id]
    # Folders have no size or type; keep them alphabetical.
    return [DocumentFolder.name.asc(), DocumentFolder.id]


async def get_folder(
    db: AsyncSession, facility_id: int, folder_id: int, category: str | None = None
) -> DocumentFolder | None:
    stmt = scoped(select(DocumentFolder), DocumentFolder, facility_id, category)
    result = await db.execute(stmt.where(DocumentFolder.id == folder_id))
    return result.scalar_one_or_none()


async def list_child_folders(
    db: AsyncSession,
    facility_id: int,
    category: str | None,
    parent_id: int | None,
    sort_by: str = "name",
    direction: str = "asc",
    search: str | None = None,
) -> list[DocumentFolder]:
    stmt = scoped(select(DocumentFolder), DocumentFolder, facility_id, category)
    stmt = in_folder(stmt, DocumentFolder.parent_id, parent_id)
    if search:
        stmt = stmt.where(DocumentFolder.name.contains(search, autoescape=True))
    result = await db.execute(stmt.order_by(*folder_order(sort_by, direction)))
    return list(result.scalars().all())


async def list_folders(db: AsyncSession, facility_id: int, category: str | None) -> list[DocumentFolder]:
    stmt = scoped(select(DocumentFolder), DocumentFolder, facility_id, category)
    result = await db.execute(stmt.order_by(DocumentFolder.path, DocumentFolder.id))
    return list(result.scalars().all())


async def count_child_folders(
    db: AsyncSession, facility_id: int, category: str | None, parent_id: int | None
) -> int:
    stmt = scoped(select(func.count(DocumentFolder.id)), DocumentFolder, facility_id, category)
    stmt = in_folder(stmt, DocumentFolder.parent_id, parent_id)
    return (await db.execute(stmt)).scalar_one()


async def has_contents(db: AsyncSession, folder: DocumentFolder) -> bool:
    """Direct child folders or files only; deeper levels are not inspected."""
    child = await db.execute(select(DocumentFolder.id).where(DocumentFolder.parent_id == folder.id).limit(1))
    if child.first() is not None:
        return True
    file = await db.execute(select(DocumentFile.id).where(DocumentFile.folder_id == folder.id).limit(1))
    return file.first() is not None


async def find_root_folder(
    db: AsyncSession, facility_id: int, category: str | None, name: str
) -> DocumentFolder | None:
    stmt = scoped(select(DocumentFolder), DocumentFolder, facility_id, category)
    stmt = stmt.where(DocumentFolder.parent_id.is_(None), DocumentFolder.name == name)
    result = await db.execute(stmt.order_by(DocumentFolder.id).limit(1))
    return result.scalar_one_or_none()


async def find_child_folder(db: AsyncSession, parent: DocumentFolder, name: str) -> DocumentFolder | None:
    result = await db.execute(
        select(DocumentFolder)
        .where(DocumentFolder.parent_id == parent.id, DocumentFolder.name == name)
        .order_by(DocumentFolder.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def search_folders(
    db: AsyncSession, facility_id: int, folder_ids: set[int], search: str, limit: int
) -> list[DocumentFolder]:
    stmt = select(DocumentFolder).where(
        DocumentFolder.facility_id == facility_id,
        DocumentFolder.id.in_(sorted(folder_ids)),
        DocumentFolder.name.icontains(search, autoescape=True),
    )
    result = await db.execute(stmt.order_by(DocumentFolder.name, DocumentFolder.id).limit(limit))
    return list(result.scalars().all())
