"""
FastAPI dependency injection.

Dependencies provide the storage context, repositories and configuration
to route handlers. All long-lived objects are created once by the
application factory and kept on `app.state`; the functions here only hand
them out. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- There is no hidden module-level client state
- Dependencies can be overridden in tests
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.catalog.models import Drink, Food
from ..core.storage.errors import NotInitialized
from ..infrastructure.catalog.repository import CatalogRepository
from ..infrastructure.storage.client import StorageService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage(request: Request) -> StorageService:
    """
    Provide the process-wide storage context.

    Raises NotInitialized if startup never completed storage init; the
    application maps that to 503 rather than letting a handler run
    against a half-built client.
    """
    storage = getattr(request.app.state, "storage", None)
    if storage is None or not storage.ready:
        logger.error("Storage requested before initialization", extra={"path": request.url.path})
        raise NotInitialized("Storage not ready")
    return storage


def get_food_repository(request: Request) -> CatalogRepository[Food]:
    return request.app.state.foods


def get_drink_repository(request: Request) -> CatalogRepository[Drink]:
    return request.app.state.drinks


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
StorageDep = Annotated[StorageService, Depends(get_storage)]
FoodRepositoryDep = Annotated[CatalogRepository[Food], Depends(get_food_repository)]
DrinkRepositoryDep = Annotated[CatalogRepository[Drink], Depends(get_drink_repository)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
