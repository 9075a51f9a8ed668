# hyperlocal/schemas/bookings.py
from datetime import date as Date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PAYMENT_PENDING = "payment_pending"
    PENDING = "pending"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVIEWED = "reviewed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service_id: str = Field(validation_alias=AliasChoices("serviceId", "service_id"))
    date: Date
    time: str = Field(pattern=r"^\d{2}:\d{2}$")
    notes: Optional[str] = None


class PaymentVerification(BaseModel):
    order_id: str = Field(
        validation_alias=AliasChoices("orderId", "razorpay_order_id", "order_id")
    )
    payment_id: str = Field(
        validation_alias=AliasChoices("paymentId", "razorpay_payment_id", "payment_id")
    )
    signature: str = Field(validation_alias=AliasChoices("signature", "razorpay_signature"))


class BookingStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class BulkStatusUpdate(BaseModel):
    booking_ids: List[str] = Field(validation_alias=AliasChoices("bookingIds", "booking_ids"))
    status: str
    notes: Optional[str] = None


class ReviewCreate(BaseModel):
    rating: int
    comment: str = ""


class ReviewOut(BaseModel):
    user_id: str
    rating: int
    comment: str
    created_at: Optional[datetime] = None


class BookingOut(BaseModel):
    id: str
    user_id: str
    service_id: str
    provider_id: str
    date: datetime
    time: str
    status: str
    payment_status: str
    notes: Optional[str] = None
    price: Optional[float] = None
    location: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    reviews: List[ReviewOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingCreated(BaseModel):
    booking: BookingOut
    order: Dict[str, Any]


class PaymentVerified(BaseModel):
    success: bool = True
    booking: BookingOut


class StatusMessage(BaseModel):
    message: str
    booking_id: Optional[str] = None


class ReviewSubmitted(BaseModel):
    message: str
    booking: BookingOut


class BulkFailure(BaseModel):
    id: str
    reason: str


class BulkStatusResult(BaseModel):
    message: str
    updated: List[BookingOut]
    rejected: List[str]
    failed: List[BulkFailure] = []


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_bookings: int
    has_next_page: bool
    has_prev_page: bool


class BookingPage(BaseModel):
    bookings: List[BookingOut]
    pagination: Pagination


class AvailableSlots(BaseModel):
    available_slots: List[str]
    booked_slots: List[str]
