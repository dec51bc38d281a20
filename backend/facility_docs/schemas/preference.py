from datetime import datetime

from pydantic import BaseModel, Field

from facility_docs.schemas.listing import SortBy, SortDirection, ViewMode


class PreferenceUpdate(BaseModel):
    sort_by: SortBy | None = None
    sort_direction: SortDirection | None = None
    view_mode: ViewMode | None = None
    per_page: int | None = Field(default=None, ge=1, le=100)


class PreferenceResponse(BaseModel):
    facility_id: int
    sort_by: SortBy | None = None
    sort_direction: SortDirection | None = None
    view_mode: ViewMode | None = None
    per_page: int | None = None
    updated_at: datetime | None = None
