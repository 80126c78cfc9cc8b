"""User and authentication schemas."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from riskreg.schemas.patch import PatchModel
from typing import Optional

ROLE_PATTERN = "^(ADMIN|DIRECTOR|RISK_MANAGER|RISK_OWNER|AUDITOR)$"


class OrgUnitBrief(BaseModel):
    unit_id: int
    code: str
    name: str

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    role: str = Field("RISK_OWNER", pattern=ROLE_PATTERN)
    unit_id: Optional[int] = None


class UserUpdate(PatchModel):
    non_nullable = ("email", "full_name", "role", "is_active")

    email: EmailStr | None = None
    full_name: str | None = None
    role: str | None = Field(None, pattern=ROLE_PATTERN)
    password: str | None = Field(None, min_length=8)
    unit_id: int | None = None
    is_active: bool | None = None


class UserResponse(UserBase):
    user_id: int
    role: str
    role_display: str | None = None
    is_active: bool
    unit_id: int | None = None
    unit: OrgUnitBrief | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    user_id: int
    full_name: str
    email: str

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RoleCount(BaseModel):
    role: str
    role_display: str
    count: int


class UserStatsResponse(BaseModel):
    total_users: int
    active_users: int
    total_admins: int
    total_regular_users: int
    users_by_role: list[RoleCount]
    recent_users: list[UserResponse]
