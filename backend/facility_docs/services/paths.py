"""Materialized folder paths: computation and descendant cascade."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.models import DocumentFolder

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


def compute_path(name: str, parent_path: str | None) -> str:
    if parent_path is None:
        return name
    return f"{parent_path}{PATH_SEPARATOR}{name}"


async def collect_descendant_ids(db: AsyncSession, folder: DocumentFolder) -> set[int]:
    result: set[int] = set()
    frontier = [folder.id]
    while frontier:
        r = await db.execute(
            select(DocumentFolder.id).where(
                DocumentFolder.facility_id == folder.facility_id,
                DocumentFolder.parent_id.in_(frontier),
            )
        )
        next_ids = list(r.scalars().all())
        frontier = [i for i in next_ids if i not in result]
        result.update(next_ids)
    return result


async def is_descendant(db: AsyncSession, folder: DocumentFolder, candidate: DocumentFolder) -> bool:
    """True if ``candidate`` sits anywhere below ``folder``."""
    seen: set[int] = set()
    parent_id = candidate.parent_id
    while parent_id is not None and parent_id not in seen:
        if parent_id == folder.id:
            return True
        seen.add(parent_id)
        r = await db.execute(select(DocumentFolder.parent_id).where(DocumentFolder.id == parent_id))
        parent_id = r.scalar_one_or_none()
    return False


async def rewrite_descendant_paths(db: AsyncSession, folder: DocumentFolder) -> int:
    """Re-derive the path of every descendant of ``folder`` from its parent.

    For a consistent tree this is the same as replacing the old path prefix
    with the new one. Rows are assigned column values directly; nothing else
    cascades. Returns the number of rewritten folders. Does not commit.
    """
    rewritten = 0
    visited = {folder.id}
    parent_paths: dict[int, str] = {folder.id: folder.path}
    while parent_paths:
        r = await db.execute(
            select(DocumentFolder)
            .where(
                DocumentFolder.facility_id == folder.facility_id,
                DocumentFolder.parent_id.in_(list(parent_paths)),
            )
            .order_by(DocumentFolder.id)
        )
        children = list(r.scalars().all())
        next_paths: dict[int, str] = {}
        for child in children:
            if child.id in visited:
                continue
            visited.add(child.id)
            new_path = compute_path(child.name, parent_paths[child.parent_id])
            if child.path != new_path:
                child.path = new_path
                rewritten += 1
            next_paths[child.id] = new_path
        parent_paths = next_paths
    if rewritten:
        logger.info(
            "Descendant paths rewritten",
            extra={"folder_id": folder.id, "facility_id": folder.facility_id, "count": rewritten},
        )
    return rewritten
