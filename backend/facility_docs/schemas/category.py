from pydantic import BaseModel


class CategoryInfo(BaseModel):
    key: str
    area: str
    name: str
    max_upload_bytes: int
    allowed_mime_types: list[str]
