from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from portal_admin.services.bulk import BulkActionResult
from portal_admin.services.queries import PageEnvelope

ItemT = TypeVar("ItemT", bound=BaseModel)


class PageEnvelopeOut(BaseModel, Generic[ItemT]):
    model_config = ConfigDict(populate_by_name=True)

    data: list[ItemT] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")


class StatusUpdateRequest(BaseModel):
    status: str
    reason: str | None = None
    notes: str | None = None

    def resolved_reason(self) -> str | None:
        return self.reason or self.notes


class BulkCommentsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment_ids: list[str] = Field(alias="commentIds")
    reason: str | None = None


class BulkActionResultOut(BaseModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: BulkActionResult) -> "BulkActionResultOut":
        return cls(succeeded=list(result.succeeded), failed=dict(result.failed))


class ModerationEventOut(BaseModel):
    id: int
    entity_type: str
    entity_id: str | None = None
    event_type: str
    actor_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


def to_page_out(item_model: type[ItemT], envelope: PageEnvelope) -> PageEnvelopeOut[ItemT]:
    return PageEnvelopeOut[item_model](
        data=[item_model(**row) for row in envelope.data],
        total=envelope.total,
        page=envelope.page,
        limit=envelope.limit,
        total_pages=envelope.total_pages,
    )
