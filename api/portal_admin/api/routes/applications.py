from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from portal_admin.api.deps import get_moderation_service, get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.applications import ApplicationOut
from portal_admin.schemas.common import ModerationEventOut, PageEnvelopeOut, StatusUpdateRequest, to_page_out
from portal_admin.services.moderation import ModerationService
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import RepositoryNotFoundError, RepositoryUnavailableError
from portal_admin.services.statuses import EntityKind, InvalidStatusError

router = APIRouter()


@router.get("", response_model=PageEnvelopeOut[ApplicationOut])
async def list_applications(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    job_id: str | None = Query(default=None, alias="jobId"),
    user_id: str | None = Query(default=None, alias="userId"),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
) -> PageEnvelopeOut[ApplicationOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        query = query_service.build_filter(
            EntityKind.APPLICATION,
            page=page,
            limit=limit,
            status=status_filter,
            search=search,
            created_from=created_from,
            created_to=created_to,
            job_id=job_id,
            user_id=user_id,
        )
        envelope = await query_service.list_page(EntityKind.APPLICATION, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(ApplicationOut, envelope)


@router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> ApplicationOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await query_service.get(EntityKind.APPLICATION, application_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return ApplicationOut(**row)


@router.get("/{application_id}/events", response_model=list[ModerationEventOut])
async def list_application_events(
    application_id: str,
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
        rows = await moderation.list_events(EntityKind.APPLICATION, application_id, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [ModerationEventOut(**row) for row in rows]


@router.put("/{application_id}/status", response_model=ApplicationOut)
async def update_application_status(
    application_id: str,
    payload: StatusUpdateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> ApplicationOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.update_status(
            EntityKind.APPLICATION,
            application_id,
            payload.status,
            reason=payload.resolved_reason(),
            actor_id=principal.actor_id,
        )
    except InvalidStatusError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return ApplicationOut(**row)


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await moderation.delete(EntityKind.APPLICATION, application_id, actor_id=principal.actor_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
