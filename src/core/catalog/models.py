"""
Catalog domain models.

Food and drink items sold by the shop. An item's `image` is only a
reference to a stored object ("/uploads/{key}"); the item does not own
the bytes, and deleting an item removes its image on a best-effort basis.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Food:
    """A menu item, optionally restricted to a state and local government areas."""
    name: str
    price: float
    id: UUID = field(default_factory=uuid4)
    description: Optional[str] = None
    category: str = "Main"
    is_available: bool = True
    is_popular: bool = False
    image: Optional[str] = None
    state: Optional[str] = None
    lgas: list[str] = field(default_factory=list)
    is_bulk: bool = False
    bulk_initial_qty: int = 25
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Food name cannot be empty")
        if self.price < 0:
            raise ValueError("Price cannot be negative")
        if self.bulk_initial_qty < 1:
            raise ValueError("Bulk initial quantity must be at least 1")

    def is_served_in(self, state: Optional[str], lga: Optional[str]) -> bool:
        """Location filter: state alone, or state plus one of its LGAs."""
        if not state:
            return True
        if self.state != state:
            return False
        return lga is None or lga in self.lgas

    def in_categories(self, categories: list[str]) -> bool:
        return not categories or self.category in categories


@dataclass
class Drink:
    """A drink on the menu."""
    name: str
    price: float
    id: UUID = field(default_factory=uuid4)
    image: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Drink name cannot be empty")
        if self.price < 0:
            raise ValueError("Price cannot be negative")
