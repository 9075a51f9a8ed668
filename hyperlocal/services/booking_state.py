# hyperlocal/services/booking_state.py
"""
Booking status workflow.

Every status change goes through the transition table below. The persisted
state is always written before any notification is queued, so a client that
hears about a change can already read it back. Notifications never block or
fail the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from hyperlocal.core.exceptions import (
    AlreadyReviewedError,
    BookingNotFoundError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from hyperlocal.models.user import Actor, Party, Role, UserActor
from hyperlocal.schemas.bookings import BookingStatus, PaymentStatus
from hyperlocal.services.notifications import BookingEvent, EmailKind

logger = logging.getLogger(__name__)

S = BookingStatus

PROVIDER_SIDE = frozenset({Role.PROVIDER, Role.ADMIN})


class Rule(NamedTuple):
    party: Party
    roles: FrozenSet[Role]
    email_kind: Optional[EmailKind] = None
    broadcast: bool = False
    deletes: bool = False
    # Transitions that only happen as part of another operation.
    via: Optional[str] = None


TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus], Rule] = {
    (S.PAYMENT_PENDING, S.PENDING): Rule(Party.SYSTEM, frozenset({Role.SYSTEM}), via="payment"),
    (S.PENDING, S.APPROVED): Rule(Party.PROVIDER, PROVIDER_SIDE, EmailKind.BOOKING_APPROVED, broadcast=True),
    (S.PENDING, S.REJECTED): Rule(Party.PROVIDER, PROVIDER_SIDE, EmailKind.BOOKING_REJECTED, deletes=True),
    (S.APPROVED, S.SCHEDULED): Rule(Party.PROVIDER, PROVIDER_SIDE, EmailKind.BOOKING_SCHEDULED, broadcast=True),
    (S.SCHEDULED, S.IN_PROGRESS): Rule(Party.PROVIDER, PROVIDER_SIDE, EmailKind.BOOKING_IN_PROGRESS, broadcast=True),
    (S.IN_PROGRESS, S.COMPLETED): Rule(Party.PROVIDER, PROVIDER_SIDE, EmailKind.BOOKING_COMPLETED, broadcast=True),
    (S.COMPLETED, S.REVIEWED): Rule(Party.CUSTOMER, frozenset({Role.USER}), via="review"),
    (S.REVIEWED, S.REVIEWED): Rule(Party.CUSTOMER, frozenset({Role.USER}), via="review"),
    (S.PAYMENT_PENDING, S.CANCELLED): Rule(Party.CUSTOMER, frozenset({Role.USER, Role.ADMIN})),
}

PROVIDER_TARGETS = frozenset({S.APPROVED, S.REJECTED, S.SCHEDULED, S.IN_PROGRESS, S.COMPLETED})
REVIEWABLE = frozenset({S.COMPLETED, S.REVIEWED})


def normalize_status(raw) -> Optional[BookingStatus]:
    """Map a stored or requested status onto the enum.

    Older documents carry mixed-case values ("Completed"), so comparison is
    case-insensitive. Values outside the enum, such as the retired
    "confirmed", come back as None.
    """
    if isinstance(raw, BookingStatus):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return BookingStatus(raw.strip().lower())
    except ValueError:
        return None


@dataclass
class StatusChange:
    booking: dict
    deleted: bool = False


@dataclass
class BulkStatusChange:
    updated: List[dict] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)


class BookingStateMachine:
    def __init__(self, bookings, services, accounts, dispatcher):
        self.bookings = bookings
        self.services = services
        self.accounts = accounts
        self.dispatcher = dispatcher

    async def apply_status_change(
        self, booking_id: str, target, actor: Actor, notes: Optional[str] = None
    ) -> StatusChange:
        started = time.perf_counter()
        target_status = self._parse_target(target)
        booking = await self._load(booking_id)
        if not actor.can_view(booking):
            raise PermissionDeniedError()

        change = await self._transition(booking, target_status, actor, notes)
        logger.info(
            "Booking %s: %s -> %s by %s %s (%.1fms)",
            booking_id, booking.get("status"), target_status.value,
            actor.role.value, actor.id, (time.perf_counter() - started) * 1000,
        )
        return change

    async def apply_bulk_status_change(
        self, booking_ids: Iterable[str], target, actor: Actor, notes: Optional[str] = None
    ) -> BulkStatusChange:
        ids = list(dict.fromkeys(booking_ids or []))
        if not ids:
            raise ValidationError("bookingIds must be a non-empty array")
        target_status = self._parse_target(target)
        if target_status not in PROVIDER_TARGETS:
            raise ValidationError("Invalid status")

        found = {b["id"]: b for b in await self.bookings.get_many(ids)}
        if len(found) != len(ids):
            raise BookingNotFoundError("Some bookings not found")

        # Permission gate for the whole batch before anything is written.
        for booking in found.values():
            if actor.role not in PROVIDER_SIDE or not actor.can_act(booking, Party.PROVIDER):
                raise PermissionDeniedError("Access denied for one or more bookings")

        result = BulkStatusChange()
        for booking_id in ids:
            try:
                change = await self._transition(found[booking_id], target_status, actor, notes)
            except (ValidationError, BookingNotFoundError) as exc:
                result.failed.append({"id": booking_id, "reason": exc.message})
                continue
            if change.deleted:
                result.rejected.append(booking_id)
            else:
                result.updated.append(change.booking)

        logger.info(
            "Bulk status %s by %s %s: %d updated, %d rejected, %d failed",
            target_status.value, actor.role.value, actor.id,
            len(result.updated), len(result.rejected), len(result.failed),
        )
        return result

    async def cancel(self, booking_id: str, actor: Actor) -> StatusChange:
        return await self.apply_status_change(booking_id, S.CANCELLED, actor)

    async def add_review(self, booking_id: str, actor: Actor, rating, comment: str) -> dict:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if not comment or not comment.strip():
            raise ValidationError("Comment is required")

        booking = await self._load(booking_id)
        if actor.role is not Role.USER or not actor.can_act(booking, Party.CUSTOMER):
            raise PermissionDeniedError()
        if normalize_status(booking.get("status")) not in REVIEWABLE:
            raise ValidationError("You can only review services you have completed")
        if any(str(r.get("user_id")) == actor.id for r in booking.get("reviews", [])):
            raise AlreadyReviewedError()

        review = {
            "user_id": actor.id,
            "rating": rating,
            "comment": comment.strip(),
            "created_at": datetime.now(timezone.utc),
        }
        updated = await self.bookings.add_review(booking_id, review, S.REVIEWED.value)
        if updated is None:
            # Lost a race with another submission from the same user.
            raise AlreadyReviewedError()

        await self.recompute_service_rating(booking["service_id"])
        logger.info("Review added to booking %s by user %s", booking_id, actor.id)
        return updated

    async def recompute_service_rating(self, service_id: str) -> Tuple[float, int]:
        # Full rescan of the service's reviewed bookings; O(bookings).
        reviewed = await self.bookings.reviewed_for_service(service_id)
        ratings = [review["rating"] for b in reviewed for review in b.get("reviews", [])]
        average = sum(ratings) / len(ratings) if ratings else 0.0
        await self.services.update_rating(service_id, average, len(ratings))
        return average, len(ratings)

    async def _transition(
        self, booking: dict, target: BookingStatus, actor: Actor, notes: Optional[str]
    ) -> StatusChange:
        current = normalize_status(booking.get("status"))
        rule = TRANSITIONS.get((current, target)) if current else None
        if rule is None:
            raise InvalidTransitionError(str(booking.get("status")), target.value)
        if actor.role not in rule.roles or not actor.can_act(booking, rule.party):
            raise PermissionDeniedError()
        if rule.via == "review":
            raise ValidationError("Reviews must be submitted through the review endpoint")
        if rule.via == "payment" and booking.get("payment_status") != PaymentStatus.PAID.value:
            raise ValidationError("Booking has not been paid")

        email_data = None
        if rule.email_kind is not None:
            email_data = await self._email_data(booking, rule.email_kind, notes)

        if rule.deletes:
            return await self._delete(booking, rule, email_data)

        fields = {"status": target.value}
        if notes:
            fields["notes"] = notes
        updated = await self.bookings.update(booking["id"], fields)
        if updated is None:
            raise BookingNotFoundError()

        self._notify(BookingEvent(updated, rule.email_kind, email_data, rule.broadcast))
        return StatusChange(updated)

    async def _delete(self, booking: dict, rule: Rule, email_data: Optional[dict]) -> StatusChange:
        snapshot = {**booking, "status": S.REJECTED.value}
        if email_data is not None:
            self._notify(BookingEvent(snapshot, rule.email_kind, email_data))
        await self.bookings.delete(booking["id"])
        return StatusChange(snapshot, deleted=True)

    def _notify(self, event: BookingEvent) -> None:
        try:
            self.dispatcher.notify(event)
        except Exception:
            logger.exception("Notification dispatch failed for booking %s", event.booking.get("id"))

    async def _email_data(self, booking: dict, kind: EmailKind, notes: Optional[str]) -> Optional[dict]:
        try:
            user = await self.accounts.get(UserActor(str(booking["user_id"]))) or {}
            service = await self.services.get(str(booking["service_id"])) or {}
        except Exception:
            logger.exception("Could not load email recipient for booking %s", booking.get("id"))
            return None
        if not user.get("email"):
            logger.warning("Booking %s has no user email; skipping %s email", booking.get("id"), kind.value)
            return None

        data = {
            "email": user["email"],
            "name": user.get("name"),
            "service_name": service.get("name"),
            "booking_id": booking["id"],
        }
        if kind is EmailKind.BOOKING_APPROVED:
            data["notes"] = (
                f"Your booking has been approved. Notes from provider: {notes}"
                if notes else "Your booking has been approved."
            )
        elif kind is EmailKind.BOOKING_REJECTED:
            data["notes"] = notes or "No additional notes provided."
        elif kind is EmailKind.BOOKING_SCHEDULED:
            data["date"] = booking.get("date")
            data["time"] = booking.get("time")
        return data

    async def _load(self, booking_id: str) -> dict:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError()
        return booking

    @staticmethod
    def _parse_target(target) -> BookingStatus:
        status = normalize_status(target)
        if status is None:
            raise ValidationError("Invalid status")
        return status
