from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from portal_admin.api.deps import get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.dashboard import JobMarketReportOut, UserActivityReportOut
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.get("/user-activity", response_model=UserActivityReportOut)
async def user_activity_report(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> UserActivityReportOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        report = await query_service.user_activity_report(start_date, end_date)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return UserActivityReportOut.model_validate(report)


@router.get("/job-market", response_model=JobMarketReportOut)
async def job_market_report(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> JobMarketReportOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        report = await query_service.job_market_report(start_date, end_date)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return JobMarketReportOut.model_validate(report)
