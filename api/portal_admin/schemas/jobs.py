from datetime import datetime

from pydantic import BaseModel


class JobOut(BaseModel):
    id: str
    title: str
    company_id: str | None = None
    category_id: str | None = None
    description: str | None = None
    location: str | None = None
    status: str
    status_reason: str | None = None
    created_at: datetime
    updated_at: datetime
