from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from facility_docs.config import settings
from facility_docs.schemas.file import FileResponse
from facility_docs.schemas.folder import FolderResponse

SortBy = Literal["name", "date", "modified", "size", "type"]
SortDirection = Literal["asc", "desc"]
ViewMode = Literal["list", "grid"]
ItemType = Literal["all", "folders", "files"]


class ListingOptions(BaseModel):
    sort_by: SortBy = "name"
    sort_direction: SortDirection = "asc"
    filter_type: str | None = None
    search: str | None = None
    view_mode: ViewMode = "list"
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=settings.default_per_page, ge=1)
    load_stats: bool = True

    @field_validator("per_page")
    @classmethod
    def cap_per_page(cls, v: int) -> int:
        return min(v, settings.max_per_page)


class WindowOptions(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=settings.default_per_page, ge=1)
    sort_by: SortBy = "name"
    sort_direction: SortDirection = "asc"
    filter_type: str | None = None
    search: str | None = None
    item_type: ItemType = "all"

    @field_validator("limit")
    @classmethod
    def cap_limit(cls, v: int) -> int:
        return min(v, settings.max_per_page)


class Breadcrumb(BaseModel):
    id: int | None
    name: str
    path: str | None = None
    is_current: bool = False


class Pagination(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int
    has_more_pages: bool


class FolderStats(BaseModel):
    file_count: int = 0
    folder_count: int = 0
    total_size: int = 0
    formatted_size: str = "0 B"


class FolderContents(BaseModel):
    folders: list[FolderResponse] = []
    files: list[FileResponse] = []
    current_folder: FolderResponse | None = None
    breadcrumbs: list[Breadcrumb] = []
    pagination: Pagination
    options: ListingOptions
    stats: FolderStats | None = None
    category: str | None = None
    root_folder_id: int | None = None


class WindowItem(BaseModel):
    id: int
    name: str
    item_type: Literal["folder", "file"]
    size: int | None = None
    extension: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FolderWindow(BaseModel):
    items: list[WindowItem] = []
    total_count: int = 0
    has_more: bool = False
    offset: int = 0
    limit: int


class FileTypeCount(BaseModel):
    extension: str
    count: int
    label: str


class SubtreeStats(FolderStats):
    recent_files: list[FileResponse] = []


class SearchResults(BaseModel):
    files: list[FileResponse] = []
    folders: list[FolderResponse] = []
    pagination: Pagination
    total_count: int = 0
    query: str
    category: str | None = None
