from datetime import datetime

from pydantic import BaseModel


class CompanyOut(BaseModel):
    id: str
    name: str
    website: str | None = None
    is_verified: bool = False
    admin_notes: str | None = None
    status: str
    status_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class CompanyVerifyRequest(BaseModel):
    is_verified: bool = True
    admin_notes: str | None = None
