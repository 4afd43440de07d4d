from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status

from .. import schemas
from ..deps import cafe_of, get_redemption_controller, require_view
from ..redemptions import RedemptionController, filter_redemptions, partition_redemptions

router = APIRouter(prefix="/dashboard/cafe/redeem", tags=["Redeems"])

Operator = Annotated[schemas.OperatorProfile, Depends(require_view("redeem"))]
Controller = Annotated[RedemptionController, Depends(get_redemption_controller)]


@router.get("", response_model=schemas.RedemptionPartition)
async def cafe_redemptions(profile: Operator, controller: Controller, search: Optional[str] = None):
    """
    All redemptions at the café, split into initiated and confirmed.
    """
    redemptions = await controller.cafe_redemptions(cafe_of(profile))
    return partition_redemptions(filter_redemptions(redemptions, search))


@router.get("/items", response_model=List[schemas.MenuItem])
async def redeemable_items(profile: Operator, controller: Controller):
    return await controller.list_redeemable_items(cafe_of(profile))


@router.post("/initiate", status_code=status.HTTP_201_CREATED)
async def initiate(request: schemas.RedeemInitiateRequest, profile: Operator, controller: Controller):
    message = await controller.initiate(cafe_of(profile), request.user_mobile, request.item_id)
    return {"message": message}


@router.get("/user", response_model=List[schemas.Redemption])
async def user_redemptions(
        profile: Operator,
        controller: Controller,
        mobile: str = "",
        type: str = "initiated",
):
    return await controller.user_redemptions(cafe_of(profile), mobile, state=type)


@router.post("/confirm")
async def confirm(request: schemas.RedeemConfirmRequest, profile: Operator, controller: Controller):
    cafe_id = cafe_of(profile)
    known = await controller.find_redemption(cafe_id, request.redeem_id)
    message = await controller.confirm(cafe_id, request.redeem_id, request.redeem_code, known=known)
    return {"message": message}
