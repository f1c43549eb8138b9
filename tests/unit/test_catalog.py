"""
Unit tests for the catalog domain and repository.

Testing philosophy:
- Test behavior, not implementation
- Prefer real objects over mocks where practical
"""

from uuid import uuid4

import pytest

from src.core.catalog.models import Drink, Food
from src.infrastructure.catalog.repository import (
    InMemoryCatalogRepository,
    ItemNotFoundError,
)


# ---------------------------------------------------------------------------
# Model validation
# ---------------------------------------------------------------------------

class TestFood:
    """Tests for the Food model."""

    def test_defaults(self):
        food = Food(name="Fried Rice", price=2000)

        assert food.category == "Main"
        assert food.is_available
        assert not food.is_popular
        assert food.bulk_initial_qty == 25
        assert food.lgas == []

    @pytest.mark.parametrize("kwargs, message", [
        ({"name": "  ", "price": 1}, "cannot be empty"),
        ({"name": "Suya", "price": -1}, "negative"),
        ({"name": "Suya", "price": 1, "bulk_initial_qty": 0}, "at least 1"),
    ])
    def test_validation(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            Food(**kwargs)

    def test_location_filter(self):
        food = Food(name="Amala", price=1500, state="Oyo", lgas=["Ibadan North"])

        assert food.is_served_in(None, None)
        assert food.is_served_in("Oyo", None)
        assert food.is_served_in("Oyo", "Ibadan North")
        assert not food.is_served_in("Oyo", "Ogbomosho")
        assert not food.is_served_in("Lagos", None)

    def test_category_filter(self):
        food = Food(name="Puff Puff", price=300, category="Snacks")

        assert food.in_categories([])
        assert food.in_categories(["Main", "Snacks"])
        assert not food.in_categories(["Main"])


class TestDrink:
    """Tests for the Drink model."""

    def test_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Drink(name="", price=100)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class TestInMemoryCatalogRepository:
    """Tests for the dictionary-backed repository."""

    @pytest.fixture
    def repository(self) -> InMemoryCatalogRepository:
        return InMemoryCatalogRepository("food")

    def test_add_get_remove(self, repository):
        food = repository.add(Food(name="Ofada", price=2200))

        assert repository.get(food.id) is food
        assert len(repository) == 1
        assert repository.remove(food.id) is food
        assert repository.get(food.id) is None
        assert repository.remove(food.id) is None

    def test_list_newest_first(self, repository):
        first = repository.add(Food(name="First", price=1))
        second = repository.add(Food(name="Second", price=1))
        # force a deterministic ordering regardless of clock resolution
        repository.update(first.id, created_at=second.created_at.replace(year=2000))

        assert [f.name for f in repository.list_items()] == ["Second", "First"]

    def test_list_with_predicate(self, repository):
        repository.add(Food(name="Hot", price=1, is_popular=True))
        repository.add(Food(name="Not", price=1))

        assert [f.name for f in repository.list_items(lambda f: f.is_popular)] == ["Hot"]

    def test_update_bumps_updated_at(self, repository):
        food = repository.add(Food(name="Beans", price=900))

        updated = repository.update(food.id, price=1000)

        assert updated.price == 1000
        assert updated.id == food.id
        assert updated.updated_at >= food.updated_at
        assert repository.get(food.id).price == 1000

    def test_update_validates(self, repository):
        food = repository.add(Food(name="Beans", price=900))

        with pytest.raises(ValueError):
            repository.update(food.id, price=-5)
        assert repository.get(food.id).price == 900

    def test_update_missing(self, repository):
        with pytest.raises(ItemNotFoundError):
            repository.update(uuid4(), price=1)
