from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status

from .. import schemas
from ..deps import cafe_of, get_item_controller, require_view
from ..items import MenuItemController

router = APIRouter(prefix="/dashboard/cafe/items", tags=["Items"])

Operator = Annotated[schemas.OperatorProfile, Depends(require_view("items"))]
Controller = Annotated[MenuItemController, Depends(get_item_controller)]


@router.get("", response_model=List[schemas.MenuItem])
async def list_items(profile: Operator, controller: Controller, q: Optional[str] = None):
    return await controller.list_items(cafe_of(profile), query=q)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(item: schemas.MenuItemInput, profile: Operator, controller: Controller):
    await controller.create_item(cafe_of(profile), item)
    return {"message": "Item created successfully!"}


@router.put("/{item_id}")
async def update_item(item_id: int, item: schemas.MenuItemInput, profile: Operator, controller: Controller):
    await controller.update_item(cafe_of(profile), item_id, item)
    return {"message": "Item updated successfully!"}


@router.delete("/{item_id}")
async def delete_item(item_id: int, profile: Operator, controller: Controller):
    await controller.delete_item(cafe_of(profile), item_id)
    return {"message": "Item deleted"}
