from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(None, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    role: str = Field("agent", pattern="^(agent|scheduler|admin)$")


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str | None
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
