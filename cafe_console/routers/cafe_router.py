from typing import Annotated

from fastapi import APIRouter, Depends

from .. import schemas
from ..cafes import CafeProfileController
from ..deps import cafe_of, get_cafe_controller, require_view

router = APIRouter(prefix="/dashboard/cafe/profile", tags=["Cafe"])

Admin = Annotated[schemas.OperatorProfile, Depends(require_view("cafe_profile"))]
Controller = Annotated[CafeProfileController, Depends(get_cafe_controller)]


@router.get("", response_model=schemas.CafeSettings)
async def get_profile(profile: Admin, controller: Controller):
    return await controller.get_profile(cafe_of(profile))


@router.put("")
async def update_profile(update: schemas.CafeProfileUpdate, profile: Admin, controller: Controller):
    await controller.update_profile(cafe_of(profile), update)
    return {"message": "Café updated successfully!"}
