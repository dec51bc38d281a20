from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(min_length=8)
    name: str = ""


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    user_id: int | None = None


class AuthConfig(BaseModel):
    allow_registration: bool
