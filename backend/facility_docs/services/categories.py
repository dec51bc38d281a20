"""Facility document trees behind one interface.

``MainDocuments`` serves the uncategorised tree, where a missing folder id
means the top level. ``CategoryDocuments`` pins a category; each category owns
a canonical root folder (see ``CATEGORY_RULES``) and calls that do not name a
folder fall back to it.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.categories import CATEGORY_RULES, Area, Category, CategoryRule, UploadPolicy, rule_for, upload_policy_for
from facility_docs.errors import NotFoundError
from facility_docs.models import DocumentFile, DocumentFolder, User
from facility_docs.schemas.folder import FolderProperties, FolderTreeNode
from facility_docs.schemas.category import CategoryInfo
from facility_docs.schemas.listing import (
    FileTypeCount,
    FolderContents,
    FolderWindow,
    ListingOptions,
    SearchResults,
    SubtreeStats,
    WindowOptions,
)
from facility_docs.services import documents, file_store, folder_store
from facility_docs.services.documents import UploadSource

logger = logging.getLogger(__name__)


class MainDocuments:
    value: str | None = None

    @property
    def upload_policy(self) -> UploadPolicy:
        return upload_policy_for(self.value)

    # === Lookups ===

    async def get_folder(self, db: AsyncSession, facility_id: int, folder_id: int) -> DocumentFolder:
        folder = await folder_store.get_folder(db, facility_id, folder_id, self.value)
        if folder is None:
            raise NotFoundError.folder(folder_id, facility_id=facility_id, category=self.value)
        return folder

    async def get_file(self, db: AsyncSession, facility_id: int, file_id: int) -> DocumentFile:
        file = await file_store.get_file(db, facility_id, file_id, self.value)
        if file is None:
            raise NotFoundError.file(file_id, facility_id=facility_id, category=self.value)
        return file

    async def _default_folder(self, db: AsyncSession, facility_id: int, actor: User | None) -> DocumentFolder | None:
        return None

    async def _resolve_folder(
        self, db: AsyncSession, facility_id: int, folder_id: int | None, actor: User | None = None
    ) -> DocumentFolder | None:
        """The named folder, or the tree default. Reads pass no ``actor`` and never create folders."""
        if folder_id is not None:
            return await self.get_folder(db, facility_id, folder_id)
        return await self._default_folder(db, facility_id, actor)

    # === Listing ===

    async def get_contents(
        self,
        db: AsyncSession,
        facility_id: int,
        folder_id: int | None = None,
        options: ListingOptions | None = None,
    ) -> FolderContents:
        folder = await self._resolve_folder(db, facility_id, folder_id)
        return await documents.get_folder_contents(db, facility_id, folder, options, self.value)

    async def get_window(
        self,
        db: AsyncSession,
        facility_id: int,
        folder_id: int | None = None,
        options: WindowOptions | None = None,
    ) -> FolderWindow:
        folder = await self._resolve_folder(db, facility_id, folder_id)
        return await documents.get_folder_window(db, facility_id, folder, options, self.value)

    async def get_tree(self, db: AsyncSession, facility_id: int) -> list[FolderTreeNode]:
        return await documents.get_folder_tree(db, facility_id, self.value)

    async def get_file_types(self, db: AsyncSession, facility_id: int) -> list[FileTypeCount]:
        return await documents.get_available_file_types(db, facility_id, self.value)

    async def get_folder_properties(self, db: AsyncSession, facility_id: int, folder_id: int) -> FolderProperties:
        folder = await self.get_folder(db, facility_id, folder_id)
        return await documents.get_folder_properties(db, folder)

    # === Folders ===

    async def create_folder(
        self, db: AsyncSession, facility_id: int, name: str, actor: User, parent_id: int | None = None
    ) -> DocumentFolder:
        parent = await self._resolve_folder(db, facility_id, parent_id, actor)
        return await documents.create_folder(db, facility_id, parent, name, actor, self.value)

    async def rename_folder(
        self, db: AsyncSession, facility_id: int, folder_id: int, name: str, actor: User
    ) -> DocumentFolder:
        folder = await self.get_folder(db, facility_id, folder_id)
        return await documents.rename_folder(db, folder, name, actor)

    async def move_folder(
        self, db: AsyncSession, facility_id: int, folder_id: int, target_folder_id: int | None, actor: User
    ) -> DocumentFolder:
        folder = await self.get_folder(db, facility_id, folder_id)
        target = await self._resolve_folder(db, facility_id, target_folder_id, actor)
        return await documents.move_folder(db, folder, target, actor)

    async def delete_folder(self, db: AsyncSession, facility_id: int, folder_id: int, actor: User) -> bool:
        folder = await self.get_folder(db, facility_id, folder_id)
        return await documents.delete_folder(db, folder, actor)

    # === Files ===

    async def upload_files(
        self,
        db: AsyncSession,
        facility_id: int,
        uploads: Sequence[UploadSource],
        actor: User,
        folder_id: int | None = None,
    ) -> list[DocumentFile]:
        folder = await self._resolve_folder(db, facility_id, folder_id, actor)
        return await documents.upload_files(db, facility_id, folder, uploads, actor, self.value, self.upload_policy)

    async def rename_file(self, db: AsyncSession, facility_id: int, file_id: int, name: str, actor: User) -> DocumentFile:
        file = await self.get_file(db, facility_id, file_id)
        return await documents.rename_file(db, file, name, actor)

    async def move_file(
        self, db: AsyncSession, facility_id: int, file_id: int, target_folder_id: int | None, actor: User
    ) -> DocumentFile:
        file = await self.get_file(db, facility_id, file_id)
        target = await self._resolve_folder(db, facility_id, target_folder_id, actor)
        return await documents.move_file(db, file, target, actor)

    async def delete_file(self, db: AsyncSession, facility_id: int, file_id: int, actor: User) -> bool:
        file = await self.get_file(db, facility_id, file_id)
        return await documents.delete_file(db, file, actor)


class CategoryDocuments(MainDocuments):
    area: Area | None = None

    def __init__(self, category: Category) -> None:
        self.rule: CategoryRule = rule_for(category)
        if self.area is not None and self.rule.area != self.area:
            raise ValueError(f"{category.value} is not a {self.area.value} category")
        self.category = category
        self.value = category.value

    @property
    def root_folder_name(self) -> str:
        return self.rule.root_folder_name

    @property
    def upload_policy(self) -> UploadPolicy:
        return self.rule.upload

    async def find_root_folder(self, db: AsyncSession, facility_id: int) -> DocumentFolder | None:
        return await folder_store.find_root_folder(db, facility_id, self.value, self.root_folder_name)

    async def get_or_create_root_folder(self, db: AsyncSession, facility_id: int, actor: User) -> DocumentFolder:
        root = await self.find_root_folder(db, facility_id)
        if root is not None:
            return root
        root = await documents.create_folder(db, facility_id, None, self.root_folder_name, actor, self.value)
        for name in self.rule.default_subfolders:
            if await folder_store.find_child_folder(db, root, name) is None:
                await documents.create_folder(db, facility_id, root, name, actor, self.value)
        logger.info(
            "Category root folder created",
            extra={"facility_id": facility_id, "category": self.value, "folder_id": root.id, "user_id": actor.id},
        )
        return root

    async def _default_folder(self, db: AsyncSession, facility_id: int, actor: User | None) -> DocumentFolder | None:
        if actor is None:
            return await self.find_root_folder(db, facility_id)
        return await self.get_or_create_root_folder(db, facility_id, actor)

    async def get_contents(
        self,
        db: AsyncSession,
        facility_id: int,
        folder_id: int | None = None,
        options: ListingOptions | None = None,
    ) -> FolderContents:
        options = options or ListingOptions()
        folder = await self._resolve_folder(db, facility_id, folder_id)
        if folder is None:
            # No root folder yet: nothing has been filed in this category.
            return FolderContents(
                pagination=documents.paginate(1, options.per_page, 0),
                options=options,
                category=self.value,
            )
        contents = await documents.get_folder_contents(db, facility_id, folder, options, self.value)
        root = await self.find_root_folder(db, facility_id)
        contents.root_folder_id = root.id if root is not None else None
        return contents

    async def get_window(
        self,
        db: AsyncSession,
        facility_id: int,
        folder_id: int | None = None,
        options: WindowOptions | None = None,
    ) -> FolderWindow:
        folder = await self._resolve_folder(db, facility_id, folder_id)
        if folder is None:
            options = options or WindowOptions()
            return FolderWindow(offset=options.offset, limit=options.limit)
        return await documents.get_folder_window(db, facility_id, folder, options, self.value)

    async def get_stats(self, db: AsyncSession, facility_id: int) -> SubtreeStats:
        root = await self.find_root_folder(db, facility_id)
        if root is None:
            return SubtreeStats()
        return await documents.get_subtree_stats(db, root)

    async def search(
        self, db: AsyncSession, facility_id: int, query: str, page: int = 1, per_page: int | None = None
    ) -> SearchResults:
        """Name search across the whole category tree."""
        root = await self.find_root_folder(db, facility_id)
        if root is None:
            return SearchResults(
                pagination=documents.paginate(1, documents.search_page_size(per_page), 0),
                query=query,
                category=self.value,
            )
        return await documents.search_subtree(db, root, query, page, per_page)


class ContractDocuments(CategoryDocuments):
    area = Area.CONTRACT

    def __init__(self) -> None:
        super().__init__(Category.CONTRACTS)


class MaintenanceDocuments(CategoryDocuments):
    area = Area.MAINTENANCE


class LifelineDocuments(CategoryDocuments):
    area = Area.LIFELINE


_ADAPTER_TYPES: dict[Area, type[CategoryDocuments]] = {
    Area.MAINTENANCE: MaintenanceDocuments,
    Area.LIFELINE: LifelineDocuments,
}


def adapter_for(category: Category) -> CategoryDocuments:
    area = rule_for(category).area
    if area == Area.CONTRACT:
        return ContractDocuments()
    return _ADAPTER_TYPES[area](category)


def available_categories(area: Area | None = None) -> list[CategoryInfo]:
    return [
        CategoryInfo(
            key=category.value,
            area=rule.area.value,
            name=rule.root_folder_name,
            max_upload_bytes=rule.upload.max_bytes,
            allowed_mime_types=sorted(rule.upload.allowed_mime_types),
        )
        for category, rule in CATEGORY_RULES.items()
        if area is None or rule.area == area
    ]
