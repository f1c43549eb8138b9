"""
Catalog repositories.

Repositories translate between the catalog domain models and whatever
holds them. The application code asks for items in domain terms and
never touches the store directly.

Only an in-memory implementation ships here: it backs local development,
the mock deployment and the tests. A database-backed repository only has
to satisfy the same protocol.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar
from uuid import UUID

from ...core.catalog.models import Drink, Food

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", Food, Drink)


class ItemNotFoundError(Exception):
    """Raised when a requested catalog item doesn't exist."""
    pass


class CatalogRepository(Protocol[ItemT]):
    """Operations the catalog routes need."""

    def add(self, item: ItemT) -> ItemT: ...
    def get(self, item_id: UUID) -> Optional[ItemT]: ...
    def list_items(self, predicate: Optional[Callable[[ItemT], bool]] = None) -> list[ItemT]: ...
    def update(self, item_id: UUID, **changes: Any) -> ItemT: ...
    def remove(self, item_id: UUID) -> Optional[ItemT]: ...


class InMemoryCatalogRepository(Generic[ItemT]):
    """
    Dictionary-backed repository.

    Items are returned newest first, matching how the storefront lists them.
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._items: dict[UUID, ItemT] = {}

    def add(self, item: ItemT) -> ItemT:
        self._items[item.id] = item
        logger.debug(f"Added {self._kind}", extra={"item_id": str(item.id)})
        return item

    def get(self, item_id: UUID) -> Optional[ItemT]:
        return self._items.get(item_id)

    def list_items(self, predicate: Optional[Callable[[ItemT], bool]] = None) -> list[ItemT]:
        items = [i for i in self._items.values() if predicate is None or predicate(i)]
        return sorted(items, key=lambda i: i.created_at, reverse=True)

    def update(self, item_id: UUID, **changes: Any) -> ItemT:
        """
        Apply field changes and bump updated_at.

        Goes through dataclasses.replace so the model's validation runs
        on the new values.
        """
        current = self._items.get(item_id)
        if current is None:
            raise ItemNotFoundError(f"{self._kind} {item_id} not found")

        updated = replace(current, updated_at=datetime.now(timezone.utc), **changes)
        self._items[item_id] = updated
        return updated

    def remove(self, item_id: UUID) -> Optional[ItemT]:
        return self._items.pop(item_id, None)

    def __len__(self) -> int:
        return len(self._items)
