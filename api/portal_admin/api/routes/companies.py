from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from portal_admin.api.deps import get_moderation_service, get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.common import ModerationEventOut, PageEnvelopeOut, StatusUpdateRequest, to_page_out
from portal_admin.schemas.companies import CompanyOut, CompanyVerifyRequest
from portal_admin.services.moderation import ModerationService
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import EntityKind, InvalidStatusError

router = APIRouter()


@router.get("", response_model=PageEnvelopeOut[CompanyOut])
async def list_companies(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
) -> PageEnvelopeOut[CompanyOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        query = query_service.build_filter(
            EntityKind.COMPANY,
            page=page,
            limit=limit,
            status=status_filter,
            search=search,
            created_from=created_from,
            created_to=created_to,
        )
        envelope = await query_service.list_page(EntityKind.COMPANY, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(CompanyOut, envelope)


@router.get("/pending-verifications", response_model=PageEnvelopeOut[CompanyOut])
async def list_pending_verifications(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
) -> PageEnvelopeOut[CompanyOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        query = query_service.build_filter(
            EntityKind.COMPANY,
            page=page,
            limit=limit,
            status="pending_verification",
        )
        envelope = await query_service.list_page(EntityKind.COMPANY, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(CompanyOut, envelope)


@router.get("/{company_id}", response_model=CompanyOut)
async def get_company(
    company_id: str,
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> CompanyOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await query_service.get(EntityKind.COMPANY, company_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return CompanyOut(**row)


@router.get("/{company_id}/events", response_model=list[ModerationEventOut])
async def list_company_events(
    company_id: str,
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
        rows = await moderation.list_events(EntityKind.COMPANY, company_id, limit=limit, offset=offset)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return [ModerationEventOut(**row) for row in rows]


@router.put("/{company_id}/status", response_model=CompanyOut)
async def update_company_status(
    company_id: str,
    payload: StatusUpdateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> CompanyOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.update_status(
            EntityKind.COMPANY,
            company_id,
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

    return CompanyOut(**row)


@router.put("/{company_id}/verify", response_model=CompanyOut)
async def verify_company(
    company_id: str,
    payload: CompanyVerifyRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> CompanyOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.verify_company(
            company_id,
            is_verified=payload.is_verified,
            admin_notes=payload.admin_notes,
            actor_id=principal.actor_id,
        )
    except RepositoryDuplicateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return CompanyOut(**row)


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_company(
    company_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await moderation.delete(EntityKind.COMPANY, company_id, actor_id=principal.actor_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
