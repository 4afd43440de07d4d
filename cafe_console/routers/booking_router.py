from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends

from .. import schemas
from ..bookings import BookingStatusController
from ..deps import cafe_of, get_booking_controller, get_notification_service, require_view
from ..exceptions import MissingField
from ..notifications import NotificationService

router = APIRouter(prefix="/dashboard/cafe/bookings", tags=["Bookings"])

Operator = Annotated[schemas.OperatorProfile, Depends(require_view("bookings"))]
Controller = Annotated[BookingStatusController, Depends(get_booking_controller)]


@router.get("", response_model=List[schemas.Booking])
async def list_bookings(
        profile: Operator,
        controller: Controller,
        view: str = "recent",
        search: Optional[str] = None,
):
    """
    Bookings for the operator's café, pending first, newest first within a status.
    """
    return await controller.list_bookings(cafe_of(profile), view=view, search=search)


@router.post("/{booking_id}/status-request", response_model=schemas.StatusChangePrompt)
async def request_status_change(
        booking_id: str,
        change: schemas.StatusChangeRequest,
        profile: Operator,
        controller: Controller,
):
    """
    First step of accept/reject. Nothing is changed; the answer says whether a
    notification can be sent along with the change and offers the presets.
    """
    booking = await controller.find_booking(cafe_of(profile), booking_id)
    return controller.request_status_change(booking, change.status, cafe_name=profile.cafe_name)


@router.post("/{booking_id}/status", response_model=schemas.StatusChangeOutcome)
async def apply_status_change(
        booking_id: str,
        change: schemas.StatusChangeRequest,
        profile: Operator,
        controller: Controller,
):
    cafe_id = cafe_of(profile)
    booking = await controller.find_booking(cafe_id, booking_id)
    return await controller.apply_status_change(cafe_id, booking, change.status, change.notification)


@router.post("/{booking_id}/notify")
async def notify(
        booking_id: str,
        draft: schemas.NotifyRequest,
        profile: Operator,
        controller: Controller,
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
):
    cafe_id = cafe_of(profile)
    booking = await controller.find_booking(cafe_id, booking_id)
    await notifications.send(cafe_id, booking, draft.title, draft.body, user_id=draft.user_id, data=draft.data)
    return {"message": "Notification sent", "booking_id": booking_id}


@router.get("/{booking_id}/notifications", response_model=List[schemas.Notification])
async def notification_history(
        booking_id: str,
        profile: Operator,
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
        user_id: Optional[str] = None,
):
    if not user_id:
        raise MissingField("user_id")
    return await notifications.history(booking_id, user_id)
