"""
Food catalog endpoints.

CRUD over food items. Create and update accept multipart forms so an
image can be uploaded alongside the fields; the image is stored under
the "foods/" prefix and the item keeps its /uploads/... path.

Deleting a food removes its stored image best-effort: the item is gone
even if the image delete fails.
"""

import json
import logging
from datetime import datetime
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.catalog.models import Food
from ...infrastructure.catalog.repository import ItemNotFoundError
from ..dependencies import FoodRepositoryDep, SettingsDep, StorageDep
from .common import DeleteResponse, remove_image, store_image

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_PREFIX = "foods"


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class FoodResponse(BaseModel):
    """A food item as returned to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    price: float
    category: str
    is_available: bool
    is_popular: bool
    image: Optional[str] = Field(None, description="Path served by /uploads, e.g. /uploads/foods/...")
    state: Optional[str] = None
    lgas: list[str] = Field(default_factory=list)
    is_bulk: bool
    bulk_initial_qty: int
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def parse_lgas(raw: Optional[str]) -> Optional[list[str]]:
    """
    Parse the lgas form field.

    Accepts a JSON array ('["Ikeja","Surulere"]') or a comma-separated
    string. Returns None when the field was not sent.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            value = json.loads(text)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lgas must be a JSON array of strings"
            )
        if not isinstance(value, list):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lgas must be a JSON array of strings"
            )
        return [str(v) for v in value]
    return [part.strip() for part in text.split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[FoodResponse],
    summary="List foods",
    description="Filter by state, state + lga, and comma-separated categories. Newest first.",
)
async def list_foods(
    repository: FoodRepositoryDep,
    state: Annotated[Optional[str], Query()] = None,
    lga: Annotated[Optional[str], Query()] = None,
    category: Annotated[Optional[str], Query(description="Comma-separated categories")] = None,
) -> list[FoodResponse]:
    categories = [c for c in (category or "").split(",") if c]
    foods = repository.list_items(
        lambda f: f.is_served_in(state, lga) and f.in_categories(categories)
    )
    return [FoodResponse.model_validate(f) for f in foods]


@router.get("/popular", response_model=list[FoodResponse], summary="List popular foods")
async def list_popular_foods(repository: FoodRepositoryDep) -> list[FoodResponse]:
    foods = repository.list_items(lambda f: f.is_popular)
    return [FoodResponse.model_validate(f) for f in foods]


@router.get("/all", response_model=list[FoodResponse], summary="List all foods")
async def list_all_foods(repository: FoodRepositoryDep) -> list[FoodResponse]:
    return [FoodResponse.model_validate(f) for f in repository.list_items()]


@router.get(
    "/{food_id}",
    response_model=FoodResponse,
    summary="Get a food",
    responses={404: {"description": "Food not found"}},
)
async def get_food(food_id: UUID, repository: FoodRepositoryDep) -> FoodResponse:
    food = repository.get(food_id)
    if food is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Food not found")
    return FoodResponse.model_validate(food)


@router.post(
    "",
    response_model=FoodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a food",
)
async def create_food(
    name: Annotated[str, Form()],
    price: Annotated[float, Form()],
    repository: FoodRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
    description: Annotated[Optional[str], Form()] = None,
    category: Annotated[str, Form()] = "Main",
    is_available: Annotated[bool, Form()] = True,
    is_popular: Annotated[bool, Form()] = False,
    state: Annotated[Optional[str], Form()] = None,
    lgas: Annotated[Optional[str], Form(description="JSON array or comma-separated")] = None,
    is_bulk: Annotated[bool, Form()] = False,
    bulk_initial_qty: Annotated[int, Form()] = 25,
    image_file: Annotated[Optional[UploadFile], File()] = None,
) -> FoodResponse:
    parsed_lgas = parse_lgas(lgas) or []

    # validate before touching storage so a bad form leaves no orphan image
    try:
        food = Food(
            name=name,
            price=price,
            description=description,
            category=category,
            is_available=is_available,
            is_popular=is_popular,
            state=state,
            lgas=parsed_lgas,
            is_bulk=is_bulk,
            bulk_initial_qty=bulk_initial_qty,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    food.image = await store_image(image_file, storage, settings, IMAGE_PREFIX)
    repository.add(food)

    logger.info("Created food", extra={"food_id": str(food.id), "has_image": bool(food.image)})
    return FoodResponse.model_validate(food)


@router.put(
    "/{food_id}",
    response_model=FoodResponse,
    summary="Update a food",
    responses={404: {"description": "Food not found"}},
)
async def update_food(
    food_id: UUID,
    repository: FoodRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
    name: Annotated[Optional[str], Form()] = None,
    price: Annotated[Optional[float], Form()] = None,
    description: Annotated[Optional[str], Form()] = None,
    category: Annotated[Optional[str], Form()] = None,
    is_available: Annotated[Optional[bool], Form()] = None,
    is_popular: Annotated[Optional[bool], Form()] = None,
    state: Annotated[Optional[str], Form()] = None,
    lgas: Annotated[Optional[str], Form()] = None,
    is_bulk: Annotated[Optional[bool], Form()] = None,
    bulk_initial_qty: Annotated[Optional[int], Form()] = None,
    image_file: Annotated[Optional[UploadFile], File()] = None,
) -> FoodResponse:
    """Only fields that are sent are changed. A new image replaces the old one."""
    existing = repository.get(food_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Food not found")

    changes: dict[str, Any] = {
        field: value
        for field, value in {
            "name": name,
            "price": price,
            "description": description,
            "category": category,
            "is_available": is_available,
            "is_popular": is_popular,
            "state": state,
            "lgas": parse_lgas(lgas),
            "is_bulk": is_bulk,
            "bulk_initial_qty": bulk_initial_qty,
        }.items()
        if value is not None
    }

    new_image = await store_image(image_file, storage, settings, IMAGE_PREFIX)
    if new_image:
        changes["image"] = new_image

    try:
        food = repository.update(food_id, **changes)
    except ItemNotFoundError:
        # deleted while the new image was uploading
        if new_image:
            await remove_image(storage, new_image)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Food not found")
    except ValueError as e:
        if new_image:
            await remove_image(storage, new_image)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if new_image and existing.image and existing.image != new_image:
        await remove_image(storage, existing.image)

    logger.info("Updated food", extra={"food_id": str(food_id), "fields": sorted(changes)})
    return FoodResponse.model_validate(food)


@router.delete(
    "/{food_id}",
    response_model=DeleteResponse,
    summary="Delete a food",
    responses={404: {"description": "Food not found"}},
)
async def delete_food(
    food_id: UUID,
    repository: FoodRepositoryDep,
    storage: StorageDep,
) -> DeleteResponse:
    food = repository.remove(food_id)
    if food is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Food not found")

    await remove_image(storage, food.image)

    logger.info("Deleted food", extra={"food_id": str(food_id)})
    return DeleteResponse(message="Food deleted successfully")
