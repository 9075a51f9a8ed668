# hyperlocal/services/checkout.py
import logging
import time as clock
from datetime import date, datetime, time, timezone
from typing import Optional, Tuple

from hyperlocal.core.exceptions import PermissionDeniedError, ServiceNotFoundError, ValidationError
from hyperlocal.models.user import Actor, Role
from hyperlocal.schemas.bookings import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

SLOT_HOURS = range(9, 18)


def booking_day(day: date) -> datetime:
    """Bookings store their day as midnight UTC."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_slots() -> list:
    return [f"{hour:02d}:00" for hour in SLOT_HOURS]


async def create_booking(
    bookings,
    services,
    gateway,
    actor: Actor,
    service_id: str,
    day: date,
    slot: str,
    notes: Optional[str] = None,
    currency: str = "INR",
) -> Tuple[dict, dict]:
    """Open a gateway order and store the booking awaiting payment.

    Nothing is written when the gateway call fails.
    """
    if actor.role is not Role.USER:
        raise PermissionDeniedError("Only users can create bookings")

    service = await services.get(service_id)
    if not service or service.get("status") != "approved":
        raise ValidationError("Service not available")

    amount = int(round(float(service.get("price") or 0) * 100))
    receipt = f"receipt_order_{int(clock.time() * 1000)}"
    order = await gateway.create_order(amount, currency, receipt)

    booking = await bookings.create(
        {
            "user_id": actor.id,
            "service_id": service["id"],
            "provider_id": service["provider_id"],
            "date": booking_day(day),
            "time": slot,
            "notes": notes,
            "price": service.get("price"),
            "location": service.get("location"),
            "status": BookingStatus.PAYMENT_PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "razorpay_order_id": order["id"],
        }
    )
    logger.info("Booking %s created for user %s with order %s", booking["id"], actor.id, order["id"])
    return booking, order


async def available_slots(bookings, services, service_id: str, day: date, statuses) -> Tuple[list, list]:
    if await services.get(service_id) is None:
        raise ServiceNotFoundError()
    booked = set(await bookings.booked_times(service_id, booking_day(day), statuses))
    slots = day_slots()
    return [s for s in slots if s not in booked], sorted(booked)
