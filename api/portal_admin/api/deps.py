from functools import lru_cache

from fastapi import Depends

from portal_admin.core.config import Settings, get_settings
from portal_admin.services.bulk import BulkActionCoordinator
from portal_admin.services.moderation import ModerationService
from portal_admin.services.queries import AdminQueryService
from portal_admin.services.repository import PostgresRepository
from portal_admin.services.store import InMemoryRepository


@lru_cache
def get_repository() -> PostgresRepository | InMemoryRepository:
    settings = get_settings()
    if settings.store_backend == "memory":
        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )


def get_query_service(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> AdminQueryService:
    return AdminQueryService(
        repository,
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )


def get_moderation_service(repository=Depends(get_repository)) -> ModerationService:
    return ModerationService(repository)


def get_bulk_coordinator(
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> BulkActionCoordinator:
    return BulkActionCoordinator(
        repository,
        max_items=settings.bulk_max_items,
        concurrency=settings.bulk_concurrency,
    )
