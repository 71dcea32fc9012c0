from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from portal_admin.api.deps import get_moderation_service, get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE, ADMIN_WRITE_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.common import PageEnvelopeOut, to_page_out
from portal_admin.schemas.content import (
    ContentStatsOut,
    JobCategoryCreateRequest,
    JobCategoryOut,
    JobCategoryUpdateRequest,
    SkillCreateRequest,
    SkillOut,
    SkillUpdateRequest,
)
from portal_admin.services.moderation import ModerationService
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import (
    RepositoryDuplicateError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from portal_admin.services.statuses import EntityKind

router = APIRouter()


@router.get("/stats", response_model=ContentStatsOut)
async def content_stats(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> ContentStatsOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        stats = await query_service.content_stats()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return ContentStatsOut(**stats)


@router.get("/skills", response_model=PageEnvelopeOut[SkillOut])
async def list_skills(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    search: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
) -> PageEnvelopeOut[SkillOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        query = query_service.build_filter(
            EntityKind.SKILL,
            page=page,
            limit=limit,
            search=search,
            created_from=created_from,
            created_to=created_to,
        )
        envelope = await query_service.list_page(EntityKind.SKILL, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(SkillOut, envelope)


@router.post("/skills", response_model=SkillOut, status_code=status.HTTP_201_CREATED)
async def create_skill(
    payload: SkillCreateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> SkillOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.create_skill(
            name=payload.name,
            description=payload.description,
            category=payload.category,
            actor_id=principal.actor_id,
        )
    except RepositoryDuplicateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return SkillOut(**row)


@router.get("/skills/{skill_id}", response_model=SkillOut)
async def get_skill(
    skill_id: str,
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> SkillOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await query_service.get(EntityKind.SKILL, skill_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return SkillOut(**row)


@router.put("/skills/{skill_id}", response_model=SkillOut)
async def update_skill(
    skill_id: str,
    payload: SkillUpdateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> SkillOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.update_skill(
            skill_id,
            name=payload.name,
            description=payload.description,
            category=payload.category,
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

    return SkillOut(**row)


@router.delete("/skills/{skill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_skill(
    skill_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await moderation.delete(EntityKind.SKILL, skill_id, actor_id=principal.actor_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/job-categories", response_model=PageEnvelopeOut[JobCategoryOut])
async def list_job_categories(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    search: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
) -> PageEnvelopeOut[JobCategoryOut]:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        query = query_service.build_filter(
            EntityKind.JOB_CATEGORY,
            page=page,
            limit=limit,
            search=search,
            created_from=created_from,
            created_to=created_to,
        )
        envelope = await query_service.list_page(EntityKind.JOB_CATEGORY, query)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return to_page_out(JobCategoryOut, envelope)


@router.post("/job-categories", response_model=JobCategoryOut, status_code=status.HTTP_201_CREATED)
async def create_job_category(
    payload: JobCategoryCreateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> JobCategoryOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.create_job_category(
            name=payload.name,
            description=payload.description,
            actor_id=principal.actor_id,
        )
    except RepositoryDuplicateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return JobCategoryOut(**row)


@router.get("/job-categories/{category_id}", response_model=JobCategoryOut)
async def get_job_category(
    category_id: str,
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> JobCategoryOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await query_service.get(EntityKind.JOB_CATEGORY, category_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return JobCategoryOut(**row)


@router.put("/job-categories/{category_id}", response_model=JobCategoryOut)
async def update_job_category(
    category_id: str,
    payload: JobCategoryUpdateRequest,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> JobCategoryOut:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        row = await moderation.update_job_category(
            category_id,
            name=payload.name,
            description=payload.description,
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

    return JobCategoryOut(**row)


@router.delete("/job-categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job_category(
    category_id: str,
    principal=Depends(get_admin_principal),
    moderation: ModerationService = Depends(get_moderation_service),
) -> Response:
    try:
        principal.require_scopes({ADMIN_WRITE_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await moderation.delete(EntityKind.JOB_CATEGORY, category_id, actor_id=principal.actor_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
