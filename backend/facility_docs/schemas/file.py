from datetime import datetime

from pydantic import BaseModel, Field


class FileRename(BaseModel):
    name: str = Field(max_length=255)


class FileResponse(BaseModel):
    id: int
    facility_id: int
    folder_id: int | None
    category: str | None
    name: str
    size: int
    formatted_size: str
    extension: str
    mime_type: str
    uploaded_by: int | None
    can_preview: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UploadResponse(BaseModel):
    message: str
    files: list[FileResponse]
