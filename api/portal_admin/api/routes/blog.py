from datetime import datetime

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from portal_admin.api.deps import get_bulk_coordinator, get_moderation_service, get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.blog import BlogCommentOut, CommentModerationRequest
from portal_admin.schemas.common import (
    BulkActionResultOut,
    BulkCommentsRequest,
    ModerationEventOut,
    PageEnvelopeOut,
    to_page_out,
)
from portal_admin.services.bulk import BulkActionCoordinator, BulkRequestError
from portal_admin.services.moderation import ModerationService
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import RepositoryNotFoundError, RepositoryUnavailableError
from portal_admin.services.statuses import EntityKind, InvalidStatusError

router = APIRouter()


async def _list_comments(
    query_service: AdminQueryService,
    *,
    page: int,
    limit: int | None,
    status_filter: str | None,
    search: str | None = None,
    blog_id: str | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
) -> PageEnvelopeOut[BlogCommentOut]:
    try:
        query = query_service.build_filter(
            EntityKind.BLOG_COMMENT,
            page=page,
            limit=limit,
            status=status_filter,
            search=search,
            created_from=created_from,
            created_to=created_to,
            blog_id=blog_id,
        )
        envelope = await query_service.list_page(EntityKind.BLOG_COMMENT, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(BlogCommentOut, envelope)


async def _set_comment_status(
    moderation: ModerationService,
    comment_id: str,
    comment_status: str,
    *,
    reason: str | None,
    actor_id: str,
) -> dict:
    try:
        return await moderation.update_status(
            EntityKind.BLOG_COMMENT,
            comment_id,
            comment_status,
            reason=reason,
            actor_id=actor_id,
        )
    except InvalidStatusError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


async def _bulk_set_comment_status(
    coordinator: BulkActionCoordinator,
    payload: BulkCommentsRequest,
    comment_status: str,
    *,
    actor_id: str,
) -> BulkActionResultOut:
    try:
        result = await coordinator.apply(
            EntityKind.BLOG_COMMENT,
            payload.comment_ids,
            comment_status,
            reason=payload.reason,
            actor_id=actor_id,
        )
    except BulkRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return BulkActionResultOut.from_result(result)


@router.get("/comments", response_model=PageEnvelopeOut[BlogCommentOut])
async def list_comments(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    blog_id: str | None = Query(default=None, alias="blogId"),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
) -> PageEnvelopeOut[BlogCommentOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return await _list_comments(
        query_service,
        page=page,
        limit=limit,
        status_filter=status_filter,
        search=search,
        blog_id=blog_id,
        created_from=created_from,
        created_to=created_to,
    )


@router.get("/comments/pending", response_model=PageEnvelopeOut[BlogCommentOut])
async def list_pending_comments(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    blog_id: str | None = Query(default=None, alias="blogId"),
) -> PageEnvelopeOut[BlogCommentOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return await _list_comments(query_service, page=page, limit=limit, status_filter="pending", blog_id=blog_id)


@router.get("/comments/approved", response_model=PageEnvelopeOut[BlogCommentOut])
async def list_approved_comments(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    blog_id: str | None = Query(default=None, alias="blogId"),
) -> PageEnvelopeOut[BlogCommentOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return await _list_comments(query_service, page=page, limit=limit, status_filter="approved", blog_id=blog_id)


@router.post("/comments/bulk-approve", response_model=BulkActionResultOut)
async def bulk_approve_comments(
    payload: BulkCommentsRequest,
    principal=Depends(get_admin_principal),
    coordinator: BulkActionCoordinator = Depends(get_bulk_coordinator),
) -> BulkActionResultOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return await _bulk_set_comment_status(coordinator, payload, "approved", actor_id=principal.actor_id)


@router.post("/comments/bulk-reject", response_model=BulkActionResultOut)
async def bulk_reject_comments(
    payload: BulkCommentsRequest,
    principal=Depends(get_admin_principal),
    coordinator: BulkActionCoordinator = Depends(get_bulk_coordinator),
) -> BulkActionResultOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    return await _bulk_set_comment_status(coordinator, payload, "rejected", actor_id=principal.actor_id)


@router.get("/comments/{comment_id}", response_model=BlogCommentOut)
async def get_comment(
    comment_id: str,
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> BlogCommentOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await query_service.get(EntityKind.BLOG_COMMENT, comment_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return BlogCommentOut(**row)


@router.get("/comments/{comment_id}/events", response_model=list[ModerationEventOut])
async def list_comment_events(
    comment_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[ModerationEventOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        rows = await moderation.list_events(EntityKind.BLOG_COMMENT, comment_id, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [ModerationEventOut(**row) for row in rows]


@router.put("/comments/{comment_id}/approve", response_model=BlogCommentOut)
async def approve_comment(
    comment_id: str,
    payload: CommentModerationRequest | None = Body(default=None),
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> BlogCommentOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    row = await _set_comment_status(
        moderation,
        comment_id,
        "approved",
        reason=payload.reason if payload else None,
        actor_id=principal.actor_id,
    )
    return BlogCommentOut(**row)


@router.delete("/comments/{comment_id}/reject", status_code=status.HTTP_204_NO_CONTENT)
async def reject_comment(
    comment_id: str,
    reason: str | None = Query(default=None),
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    await _set_comment_status(moderation, comment_id, "rejected", reason=reason, actor_id=principal.actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await moderation.delete(EntityKind.BLOG_COMMENT, comment_id, actor_id=principal.actor_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
