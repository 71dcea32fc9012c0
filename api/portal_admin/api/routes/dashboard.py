from fastapi import APIRouter, Depends, HTTPException, Query, status

from portal_admin.api.deps import get_query_service
from portal_admin.core.auth import ADMIN_READ_SCOPE
from portal_admin.core.security import get_admin_principal
from portal_admin.schemas.dashboard import DashboardChartsOut, DashboardOverviewOut
from portal_admin.services.queries import AdminQueryService, InvalidFilterError
from portal_admin.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.get("/overview", response_model=DashboardOverviewOut)
async def dashboard_overview(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
) -> DashboardOverviewOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        overview = await query_service.overview()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DashboardOverviewOut.model_validate(overview)


@router.get("/charts", response_model=DashboardChartsOut)
async def dashboard_charts(
    principal=Depends(get_admin_principal),
    query_service: AdminQueryService = Depends(get_query_service),
    period: str = Query(default="30d"),
) -> DashboardChartsOut:
    try:
        principal.require_scopes({ADMIN_READ_SCOPE})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        charts = await query_service.dashboard_charts(period)
    except InvalidFilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return DashboardChartsOut.model_validate(charts)
