from typing import Annotated, Dict, List

from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import cafe_of, get_slot_controller, require_view
from ..slots import SlotController, group_slots

router = APIRouter(prefix="/dashboard/cafe/slots", tags=["Slots"])

Operator = Annotated[schemas.OperatorProfile, Depends(require_view("slots"))]
Controller = Annotated[SlotController, Depends(get_slot_controller)]


@router.get("", response_model=Dict[str, List[schemas.Slot]])
async def list_slots(profile: Operator, controller: Controller):
    """
    The café's slots grouped by category, earliest first.
    """
    return group_slots(await controller.list_slots(cafe_of(profile)))


@router.patch("/{slot_id}/availability")
async def toggle_availability(
        slot_id: int,
        toggle: schemas.SlotToggleRequest,
        profile: Operator,
        controller: Controller,
):
    cafe_id = cafe_of(profile)
    slot = await controller.find_slot(cafe_id, slot_id)
    await controller.toggle_availability(cafe_id, slot, toggle.is_available)
    return {"message": "Slot availability updated", "slot_id": slot_id, "is_available": toggle.is_available}
