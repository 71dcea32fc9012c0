from datetime import datetime

from pydantic import BaseModel


class BlogCommentOut(BaseModel):
    id: str
    blog_id: str | None = None
    author_id: str | None = None
    content: str
    status: str
    status_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class CommentModerationRequest(BaseModel):
    reason: str | None = None
