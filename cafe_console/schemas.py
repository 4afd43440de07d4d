from pydantic import BaseModel, Field, computed_field, field_validator
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import datetime

from .formatting import currency_format, format_ist, format_slot_time, number_format


class Role(str, Enum):
    CAFE_ADMIN = "cafe_admin"
    CAFE_STAFF = "cafe_staff"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        try:
            return cls(value)
        except ValueError:
            return None


class BookingStatus(str, Enum):
    PENDING = "pending"
    INITIATED = "initiated"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# pending and initiated both mean "awaiting operator decision"
STATUS_WEIGHT = {
    BookingStatus.PENDING: 0,
    BookingStatus.INITIATED: 0,
    BookingStatus.ACCEPTED: 1,
    BookingStatus.REJECTED: 2,
    BookingStatus.CANCELLED: 2,
}
UNKNOWN_STATUS_WEIGHT = 99

AWAITING_DECISION = {BookingStatus.PENDING, BookingStatus.INITIATED}
OPERATOR_TARGETS = {BookingStatus.ACCEPTED, BookingStatus.REJECTED}


class OperatorProfile(BaseModel):
    user_id: str
    user_name: str
    user_mobile_no: Optional[str] = None
    user_role: Optional[str] = None
    cafe_id: Optional[str] = None
    cafe_name: Optional[str] = None

    @property
    def role(self) -> Optional[Role]:
        return Role.parse(self.user_role)


class Booking(BaseModel):
    booking_id: str
    booking_date: datetime.date
    booking_start_time: datetime.time
    num_of_guests: int = Field(gt=0)
    special_request: Optional[str] = None
    booking_status: str
    advance_paid: bool = False
    transaction_amount: Optional[float] = None
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    user_name: Optional[str] = None
    user_mobile_no: Optional[str] = None
    user_id: Optional[str] = None
    cafe_id: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    notification_sent: bool = False

    @field_validator("booking_date", mode="before")
    @classmethod
    def _date_only(cls, value):
        # The API sometimes serialises dates as full ISO timestamps
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value

    @property
    def status(self) -> Optional[BookingStatus]:
        try:
            return BookingStatus(self.booking_status)
        except ValueError:
            return None

    @property
    def starts_at(self) -> datetime.datetime:
        return datetime.datetime.combine(self.booking_date, self.booking_start_time)

    @property
    def awaiting_decision(self) -> bool:
        return self.status in AWAITING_DECISION

    # Display strings for the console tables
    @computed_field
    @property
    def created_display(self) -> str:
        return format_ist(self.created_at)

    @computed_field
    @property
    def start_time_display(self) -> str:
        return format_slot_time(self.booking_start_time.isoformat())


class Slot(BaseModel):
    slot_id: int
    cafe_id: Optional[str] = None
    category: str
    slot_time: str
    is_available: bool


class Redemption(BaseModel):
    redeem_id: str
    user_id: Optional[str] = None
    user_mobile_no: Optional[str] = None
    user_name: Optional[str] = None
    item_id: Optional[Union[int, str]] = None
    item_name: Optional[str] = None
    is_redeemed: bool = False
    initiater_role: Optional[str] = None
    redeem_code: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @computed_field
    @property
    def created_display(self) -> str:
        return format_ist(self.created_at)

    @computed_field
    @property
    def updated_display(self) -> str:
        return format_ist(self.updated_at)


class RedemptionPartition(BaseModel):
    initiated: List[Redemption]
    confirmed: List[Redemption]


class Notification(BaseModel):
    notification_id: Union[int, str]
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime.datetime] = None


class MenuItem(BaseModel):
    item_id: Union[int, str]
    item_name: str
    item_description: Optional[str] = None
    category: Optional[str] = None
    price: float
    recommended: bool = False


class MenuItemInput(BaseModel):
    item_name: str = ""
    item_description: str = ""
    category: str = ""
    price: float = 0
    recommended: bool = False


# --- Café profile (admin settings) ---

class SlotCategory(BaseModel):
    name: str = ""
    hours: List[str] = Field(default_factory=list)


class CafeProfile(BaseModel):
    cafe_id: str
    cafe_name: str = ""
    cafe_location: str = ""
    cafe_description: Optional[str] = None
    cafe_mobile_no: str = ""
    cafe_upi_id: str = ""
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    working_days: List[str] = Field(default_factory=list)


class CafeSettings(BaseModel):
    """The profile together with the slot categories and their hours."""
    profile: CafeProfile
    categories: List[SlotCategory] = Field(default_factory=list)


class CafeProfileUpdate(BaseModel):
    cafe_name: str = ""
    cafe_location: str = ""
    cafe_description: Optional[str] = None
    cafe_mobile_no: str = ""
    cafe_upi_id: str = ""
    opening_time: str = ""
    closing_time: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    working_days: List[str] = Field(default_factory=list)
    categories: Optional[List[SlotCategory]] = None


# --- Analytics (read-only reporting API) ---

class AnalyticsSummary(BaseModel):
    total_amount: float = 0
    paid_bookings: int = 0
    normal_bookings: int = 0

    @computed_field
    @property
    def total_amount_display(self) -> str:
        return currency_format(self.total_amount)

    @computed_field
    @property
    def total_bookings_display(self) -> str:
        return number_format(self.paid_bookings + self.normal_bookings)


class AnalyticsChartPoint(BaseModel):
    date: str
    total_amount: float = 0
    paid_amount: float = 0
    normal_amount: float = 0
    paid_count: int = 0
    normal_count: int = 0


class AnalyticsRow(BaseModel):
    booking_id: str
    booking_date: str
    booking_start_time: str
    booking_status: str
    advance_paid: bool = False
    transaction_amount: Optional[float] = None
    transaction_id: Optional[str] = None
    user_name: Optional[str] = None
    user_mobile_no: Optional[str] = None
    payment_mode: Optional[str] = None
    transaction_status: Optional[str] = None
    transaction_created_at: Optional[str] = None

    @computed_field
    @property
    def amount_display(self) -> str:
        if self.transaction_amount is None:
            return "--"
        return currency_format(self.transaction_amount)

    @computed_field
    @property
    def paid_at_display(self) -> str:
        return format_ist(self.transaction_created_at)


class AnalyticsReport(BaseModel):
    summary: AnalyticsSummary = Field(default_factory=AnalyticsSummary)
    chart: List[AnalyticsChartPoint] = Field(default_factory=list)
    rows: List[AnalyticsRow] = Field(default_factory=list)


class AnalyticsPage(BaseModel):
    range: str
    range_label: str
    summary: AnalyticsSummary
    chart: List[AnalyticsChartPoint]
    rows: List[AnalyticsRow]
    page: int
    total_pages: int


# --- Request bodies accepted by the console routes ---

class LoginRequest(BaseModel):
    login_user_name: str = ""
    password_hash: str = ""


class NotificationDraft(BaseModel):
    title: str = ""
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class StatusChangeRequest(BaseModel):
    status: str
    notification: Optional[NotificationDraft] = None


class NotifyRequest(NotificationDraft):
    user_id: Optional[str] = None


class SlotToggleRequest(BaseModel):
    is_available: bool


class RedeemInitiateRequest(BaseModel):
    user_mobile: str = ""
    item_id: Optional[Union[int, str]] = None


class RedeemConfirmRequest(BaseModel):
    redeem_id: str
    redeem_code: str = ""


class ItemDeleteRequest(BaseModel):
    item_id: Union[int, str]


# --- Results returned by the workflow controllers ---

class NotificationTemplate(BaseModel):
    title: str
    body: str


class StatusChangePrompt(BaseModel):
    booking_id: str
    target: BookingStatus
    offer_notification: bool
    template_category: str
    templates: List[NotificationTemplate] = Field(default_factory=list)


class StatusChangeOutcome(BaseModel):
    booking_id: str
    status: BookingStatus
    notification: str  # "sent", "failed" or "skipped"
    notice: Optional[str] = None


class Notice(BaseModel):
    level: str
    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)
