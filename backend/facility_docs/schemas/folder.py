from datetime import datetime

from pydantic import BaseModel, Field


class FolderCreate(BaseModel):
    name: str = Field(max_length=255)
    parent_id: int | None = None


class FolderRename(BaseModel):
    name: str = Field(max_length=255)


class MoveRequest(BaseModel):
    # None moves to the tree root
    target_folder_id: int | None = None


class FolderResponse(BaseModel):
    id: int
    facility_id: int
    category: str | None
    parent_id: int | None
    name: str
    path: str
    created_by: int | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class FolderTreeNode(BaseModel):
    id: int
    name: str
    path: str
    parent_id: int | None
    children: list["FolderTreeNode"] = []


class FolderProperties(BaseModel):
    folder: FolderResponse
    direct_file_count: int
    direct_folder_count: int
    direct_total_size: int
    total_file_count: int
    total_size: int
    formatted_size: str
    formatted_total_size: str
    can_delete: bool


FolderTreeNode.model_rebuild()
