# hyperlocal/services/notifications.py
"""
Typed fan-out of booking side effects over the job queues.

Two families: transactional email and realtime broadcast. Every entry point
here is fire-and-forget; delivery problems are logged, never raised to the
caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Set

from hyperlocal.core.config import Settings, settings
from hyperlocal.services.queue import Job, JobQueue
from hyperlocal.utils.email_templates import render

logger = logging.getLogger(__name__)


class EmailKind(str, Enum):
    OTP = "otp"
    PROVIDER_APPROVAL = "provider-approval"
    PROVIDER_REJECTION = "provider-rejection"
    SERVICE_APPROVAL = "service-approval"
    SERVICE_REJECTION = "service-rejection"
    BOOKING_APPROVED = "booking-approved"
    BOOKING_REJECTED = "booking-rejected"
    BOOKING_SCHEDULED = "booking-scheduled"
    BOOKING_IN_PROGRESS = "booking-in-progress"
    BOOKING_COMPLETED = "booking-completed"
    PASSWORD_RESET = "password-reset"
    CONTACT_FORM = "contact-form"


class NotificationKind(str, Enum):
    BOOKING_STATUS_UPDATE = "booking_status_update"


REALTIME_EVENTS = {
    NotificationKind.BOOKING_STATUS_UPDATE: "bookingStatusUpdated",
}


@dataclass(frozen=True)
class BookingEvent:
    """Side effects requested for one booking change."""

    booking: dict
    email_kind: Optional[EmailKind] = None
    email_data: Optional[dict] = None
    broadcast: bool = False


class NotificationDispatcher:
    def __init__(
        self,
        email_queue: JobQueue,
        notification_queue: JobQueue,
        mailer,
        realtime,
        config: Settings = settings,
    ):
        self.email_queue = email_queue
        self.notification_queue = notification_queue
        self.mailer = mailer
        self.realtime = realtime
        self.config = config
        self._fallbacks: Set[asyncio.Task] = set()
        email_queue.set_processor(self._process_email)
        notification_queue.set_processor(self._process_notification)

    def notify(self, event: BookingEvent) -> None:
        """Queue the side effects of ``event``. Non-blocking and best-effort."""
        booking_id = event.booking.get("id")
        try:
            if event.email_kind is not None:
                self.enqueue_email(event.email_kind, event.email_data or {})
            if event.broadcast:
                self.enqueue_notification(NotificationKind.BOOKING_STATUS_UPDATE, event.booking)
        except Exception:
            logger.exception("Failed to dispatch notifications for booking %s", booking_id)

    def enqueue_email(self, kind, payload: dict) -> Optional[Job]:
        kind = EmailKind(kind)
        try:
            job = self.email_queue.enqueue({"kind": kind.value, "data": payload})
        except Exception as exc:
            logger.error("Failed to add %s email to queue: %s. Attempting direct send", kind.value, exc)
            self._send_in_background(kind, payload)
            return None
        logger.info("Email job %s queued: %s", job.id, kind.value)
        return job

    def enqueue_notification(self, kind, payload: Any, channel=None) -> Optional[Job]:
        try:
            kind = NotificationKind(kind)
            job = self.notification_queue.enqueue(
                {"kind": kind.value, "data": payload, "channel": channel}
            )
        except Exception as exc:
            logger.error("Failed to add notification job %s: %s", kind, exc)
            return None
        logger.info("Notification job %s queued: %s", job.id, kind.value)
        return job

    async def send_now(self, kind, payload: dict) -> str:
        """Render and deliver one email immediately; returns the message id."""
        kind = EmailKind(kind)
        rendered = render(kind.value, payload)
        if kind is EmailKind.CONTACT_FORM:
            recipient = self.config.SUPPORT_EMAIL
        else:
            recipient = payload.get("email")
        if not recipient:
            raise ValueError(f"No recipient for {kind.value} email")
        return await self.mailer.send_mail(
            to=recipient,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
        )

    def queue_status(self) -> dict:
        running = self.email_queue.running and self.notification_queue.running
        return {
            "email": self.email_queue.get_counts(),
            "notification": self.notification_queue.get_counts(),
            "status": "active" if running else "stopped",
        }

    async def wait_for_fallbacks(self) -> None:
        if self._fallbacks:
            await asyncio.gather(*self._fallbacks, return_exceptions=True)

    async def _process_email(self, job: Job) -> None:
        await self.send_now(job.payload["kind"], job.payload["data"])

    async def _process_notification(self, job: Job) -> None:
        kind = NotificationKind(job.payload["kind"])
        channel = job.payload.get("channel") or self.realtime
        await channel.emit(REALTIME_EVENTS[kind], job.payload["data"])

    def _send_in_background(self, kind: EmailKind, payload: dict) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._send_direct(kind, payload))
        except RuntimeError:
            logger.error("No running event loop for direct %s email; dropped", kind.value)
            return
        self._fallbacks.add(task)
        task.add_done_callback(self._fallbacks.discard)

    async def _send_direct(self, kind: EmailKind, payload: dict) -> None:
        try:
            await self.send_now(kind, payload)
        except Exception:
            logger.exception("Direct email fallback also failed: %s", kind.value)
        else:
            logger.info("Direct email sent: %s", kind.value)
