# hyperlocal/routes/bookings.py
import logging
import math
from datetime import date
from typing import List, Union

from fastapi import APIRouter, Depends, Query, Request, status

from hyperlocal.core.exceptions import BookingNotFoundError, PermissionDeniedError
from hyperlocal.middleware.rbac import get_current_user, is_admin, is_provider
from hyperlocal.models.user import Actor, Role
from hyperlocal.schemas.bookings import (
    AvailableSlots,
    BookingCreate,
    BookingCreated,
    BookingOut,
    BookingPage,
    BookingStatus,
    BookingStatusUpdate,
    BulkStatusResult,
    BulkStatusUpdate,
    Pagination,
    PaymentVerification,
    PaymentVerified,
    ReviewCreate,
    ReviewSubmitted,
    StatusMessage,
)
from hyperlocal.schemas.dashboard_schema import BookingSummary, QueueStatus
from hyperlocal.services import checkout
from hyperlocal.services.booking_state import normalize_status

logger = logging.getLogger(__name__)

booking_router = APIRouter(tags=["Bookings"])

# Statuses that hold a time slot.
SLOT_HOLDING = [
    BookingStatus.PAYMENT_PENDING.value,
    BookingStatus.PENDING.value,
    BookingStatus.APPROVED.value,
    BookingStatus.SCHEDULED.value,
    BookingStatus.IN_PROGRESS.value,
]


def _state(request: Request):
    return request.app.state


def _require_user(actor: Actor) -> None:
    if actor.role is not Role.USER:
        raise PermissionDeniedError("Only users can access their bookings")


# Create booking and gateway order
@booking_router.post("/", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(data: BookingCreate, request: Request, user: Actor = Depends(get_current_user)):
    state = _state(request)
    booking, order = await checkout.create_booking(
        state.bookings,
        state.services,
        state.gateway,
        user,
        data.service_id,
        data.date,
        data.time,
        data.notes,
        currency=state.config.PAYMENT_CURRENCY,
    )
    return {"booking": booking, "order": order}


@booking_router.post("/verify-payment", response_model=PaymentVerified)
async def verify_payment(data: PaymentVerification, request: Request, user: Actor = Depends(get_current_user)):
    booking = await _state(request).verifier.verify(data.order_id, data.payment_id, data.signature)
    return {"success": True, "booking": booking}


@booking_router.put("/bulk/status", response_model=BulkStatusResult)
async def bulk_update_status(data: BulkStatusUpdate, request: Request, user: Actor = Depends(get_current_user)):
    result = await _state(request).booking_state.apply_bulk_status_change(
        data.booking_ids, data.status, user, data.notes
    )
    return {
        "message": f"{len(result.updated) + len(result.rejected)} bookings updated",
        "updated": result.updated,
        "rejected": result.rejected,
        "failed": result.failed,
    }


# Current user's bookings, paged
@booking_router.get("/user", response_model=BookingPage)
async def get_user_bookings(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: Actor = Depends(get_current_user),
):
    _require_user(user)
    bookings = _state(request).bookings
    total = await bookings.count_for_user(user.id)
    items = await bookings.list_for_user(user.id, skip=(page - 1) * limit, limit=limit)
    total_pages = math.ceil(total / limit)
    return {
        "bookings": items,
        "pagination": Pagination(
            current_page=page,
            total_pages=total_pages,
            total_bookings=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    }


@booking_router.get("/user/all", response_model=List[BookingOut])
async def get_all_user_bookings(request: Request, user: Actor = Depends(get_current_user)):
    _require_user(user)
    return await _state(request).bookings.list_for_user(user.id)


@booking_router.get("/provider", response_model=List[BookingOut])
async def get_provider_bookings(request: Request, provider: Actor = Depends(is_provider)):
    return await _state(request).bookings.list_for_provider(provider.id)


# Admin: counts per status
@booking_router.get("/summary", response_model=BookingSummary)
async def booking_summary(request: Request, admin: Actor = Depends(is_admin)):
    by_status = {}
    for raw, count in (await _state(request).bookings.count_by_status()).items():
        key = normalize_status(raw)
        name = key.value if key else str(raw)
        by_status[name] = by_status.get(name, 0) + count
    return {"total_bookings": sum(by_status.values()), "by_status": by_status}


@booking_router.get("/queue-status", response_model=QueueStatus)
async def queue_status(request: Request, admin: Actor = Depends(is_admin)):
    return _state(request).dispatcher.queue_status()


@booking_router.get("/available-slots/{service_id}/{day}", response_model=AvailableSlots)
async def get_available_slots(service_id: str, day: date, request: Request):
    state = _state(request)
    free, booked = await checkout.available_slots(state.bookings, state.services, service_id, day, SLOT_HOLDING)
    return {"available_slots": free, "booked_slots": booked}


@booking_router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: str, request: Request, user: Actor = Depends(get_current_user)):
    booking = await _state(request).bookings.get(booking_id)
    if booking is None:
        raise BookingNotFoundError()
    if not user.can_view(booking):
        raise PermissionDeniedError()
    return booking


# Provider/admin: drive the approval pipeline
@booking_router.put("/{booking_id}/status", response_model=Union[BookingOut, StatusMessage])
async def update_status(
    booking_id: str, data: BookingStatusUpdate, request: Request, user: Actor = Depends(get_current_user)
):
    change = await _state(request).booking_state.apply_status_change(booking_id, data.status, user, data.notes)
    if change.deleted:
        return {"message": "Booking rejected and deleted successfully", "booking_id": booking_id}
    return change.booking


@booking_router.patch("/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(booking_id: str, request: Request, user: Actor = Depends(get_current_user)):
    change = await _state(request).booking_state.cancel(booking_id, user)
    return change.booking


@booking_router.post("/{booking_id}/review", response_model=ReviewSubmitted)
async def add_review(booking_id: str, data: ReviewCreate, request: Request, user: Actor = Depends(get_current_user)):
    booking = await _state(request).booking_state.add_review(booking_id, user, data.rating, data.comment)
    return {"message": "Review added successfully", "booking": booking}
