"""
Drink catalog endpoints.

Same shape as the food endpoints with fewer fields. Images are stored
under the "drinks/" prefix.
"""

import logging
from datetime import datetime
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict

from ...core.catalog.models import Drink
from ...infrastructure.catalog.repository import ItemNotFoundError
from ..dependencies import DrinkRepositoryDep, SettingsDep, StorageDep
from .common import DeleteResponse, remove_image, store_image

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_PREFIX = "drinks"


class DrinkResponse(BaseModel):
    """A drink as returned to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    price: float
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


@router.get("", response_model=list[DrinkResponse], summary="List drinks")
async def list_drinks(repository: DrinkRepositoryDep) -> list[DrinkResponse]:
    return [DrinkResponse.model_validate(d) for d in repository.list_items()]


@router.get(
    "/{drink_id}",
    response_model=DrinkResponse,
    summary="Get a drink",
    responses={404: {"description": "Drink not found"}},
)
async def get_drink(drink_id: UUID, repository: DrinkRepositoryDep) -> DrinkResponse:
    drink = repository.get(drink_id)
    if drink is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Drink not found")
    return DrinkResponse.model_validate(drink)


@router.post(
    "",
    response_model=DrinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a drink",
)
async def create_drink(
    name: Annotated[str, Form()],
    price: Annotated[float, Form()],
    repository: DrinkRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
    image_file: Annotated[Optional[UploadFile], File()] = None,
) -> DrinkResponse:
    try:
        drink = Drink(name=name, price=price)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    drink.image = await store_image(image_file, storage, settings, IMAGE_PREFIX)
    repository.add(drink)

    logger.info("Created drink", extra={"drink_id": str(drink.id), "has_image": bool(drink.image)})
    return DrinkResponse.model_validate(drink)


@router.put(
    "/{drink_id}",
    response_model=DrinkResponse,
    summary="Update a drink",
    responses={404: {"description": "Drink not found"}},
)
async def update_drink(
    drink_id: UUID,
    repository: DrinkRepositoryDep,
    storage: StorageDep,
    settings: SettingsDep,
    name: Annotated[Optional[str], Form()] = None,
    price: Annotated[Optional[float], Form()] = None,
    image_file: Annotated[Optional[UploadFile], File()] = None,
) -> DrinkResponse:
    existing = repository.get(drink_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Drink not found")

    changes: dict[str, Any] = {}
    if name is not None:
        changes["name"] = name
    if price is not None:
        changes["price"] = price

    new_image = await store_image(image_file, storage, settings, IMAGE_PREFIX)
    if new_image:
        changes["image"] = new_image

    try:
        drink = repository.update(drink_id, **changes)
    except ItemNotFoundError:
        # deleted while the new image was uploading
        if new_image:
            await remove_image(storage, new_image)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Drink not found")
    except ValueError as e:
        if new_image:
            await remove_image(storage, new_image)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if new_image and existing.image and existing.image != new_image:
        await remove_image(storage, existing.image)

    logger.info("Updated drink", extra={"drink_id": str(drink_id), "fields": sorted(changes)})
    return DrinkResponse.model_validate(drink)


@router.delete(
    "/{drink_id}",
    response_model=DeleteResponse,
    summary="Delete a drink",
    responses={404: {"description": "Drink not found"}},
)
async def delete_drink(
    drink_id: UUID,
    repository: DrinkRepositoryDep,
    storage: StorageDep,
) -> DeleteResponse:
    drink = repository.remove(drink_id)
    if drink is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Drink not found")

    await remove_image(storage, drink.image)

    logger.info("Deleted drink", extra={"drink_id": str(drink_id)})
    return DeleteResponse(message="Drink deleted")
