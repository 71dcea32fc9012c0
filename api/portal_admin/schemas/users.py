from datetime import datetime

from pydantic import BaseModel, Field

from portal_admin.schemas.common import ModerationEventOut


class UserOut(BaseModel):
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: str
    status: str
    status_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class UserDetailsOut(BaseModel):
    user: UserOut
    applications_total: int = 0
    recent_events: list[ModerationEventOut] = Field(default_factory=list)


class UserCreateRequest(BaseModel):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    role: str = "job-seeker"


class UserRoleUpdateRequest(BaseModel):
    role: str
