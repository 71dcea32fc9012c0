from datetime import datetime

from pydantic import BaseModel


class ApplicationOut(BaseModel):
    id: str
    job_id: str | None = None
    user_id: str | None = None
    cover_letter: str | None = None
    status: str
    status_reason: str | None = None
    created_at: datetime
    updated_at: datetime
