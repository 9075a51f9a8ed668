"""
Pytest configuration and shared fixtures.

The fakes below stand in for Mongo, SMTP, the payment gateway and the
websocket channel, keeping the same call signatures as the real classes.
"""

import copy
import itertools
import os
from datetime import datetime, timezone

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-thirty-two-bytes")

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from hyperlocal.core.config import Settings
from hyperlocal.core.exceptions import MailTransportUnavailableError, PaymentGatewayError
from hyperlocal.main import create_app
from hyperlocal.models.user import AdminActor, ProviderActor, UserActor
from hyperlocal.services.payments import sign_payment
from hyperlocal.utils.auth_utils import create_access_token

RAZORPAY_SECRET = "test_razorpay_secret"


def new_id() -> str:
    return str(ObjectId())


class FakeBookingRepository:
    def __init__(self):
        self.docs = {}
        self._clock = itertools.count()

    def _stamp(self):
        # Strictly increasing timestamps keep sort order deterministic.
        return datetime(2026, 1, 1, tzinfo=timezone.utc).replace(microsecond=next(self._clock) % 1_000_000)

    async def create(self, data):
        doc = copy.deepcopy(data)
        doc["id"] = new_id()
        doc.setdefault("reviews", [])
        doc["created_at"] = doc["updated_at"] = self._stamp()
        self.docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    def insert(self, **fields):
        doc = {
            "id": new_id(),
            "user_id": new_id(),
            "service_id": new_id(),
            "provider_id": new_id(),
            "date": datetime(2026, 3, 1, tzinfo=timezone.utc),
            "time": "10:00",
            "status": "pending",
            "payment_status": "paid",
            "notes": None,
            "price": 500.0,
            "location": "Bengaluru",
            "reviews": [],
        }
        doc.update(fields)
        doc["created_at"] = doc["updated_at"] = self._stamp()
        self.docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    async def get(self, booking_id):
        doc = self.docs.get(booking_id)
        return copy.deepcopy(doc) if doc else None

    async def get_many(self, booking_ids):
        return [copy.deepcopy(self.docs[i]) for i in booking_ids if i in self.docs]

    async def get_by_order_id(self, order_id):
        for doc in self.docs.values():
            if doc.get("razorpay_order_id") == order_id:
                return copy.deepcopy(doc)
        return None

    async def update(self, booking_id, fields):
        doc = self.docs.get(booking_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        doc["updated_at"] = self._stamp()
        return copy.deepcopy(doc)

    async def update_by_order_id(self, order_id, fields):
        for doc in self.docs.values():
            if doc.get("razorpay_order_id") == order_id:
                return await self.update(doc["id"], fields)
        return None

    async def delete(self, booking_id):
        return self.docs.pop(booking_id, None) is not None

    async def add_review(self, booking_id, review, status):
        doc = self.docs.get(booking_id)
        if doc is None or any(r["user_id"] == review["user_id"] for r in doc["reviews"]):
            return None
        doc["reviews"].append(copy.deepcopy(review))
        doc["status"] = status
        return copy.deepcopy(doc)

    async def reviewed_for_service(self, service_id):
        return [
            copy.deepcopy(d) for d in self.docs.values()
            if d["service_id"] == service_id and str(d["status"]).lower() == "reviewed"
        ]

    def _for_user(self, user_id):
        docs = [d for d in self.docs.values() if d["user_id"] == user_id]
        return sorted(docs, key=lambda d: d["created_at"], reverse=True)

    async def list_for_user(self, user_id, skip=0, limit=None):
        docs = self._for_user(user_id)[skip:]
        if limit:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def count_for_user(self, user_id):
        return len(self._for_user(user_id))

    async def list_for_provider(self, provider_id):
        docs = [d for d in self.docs.values() if d["provider_id"] == provider_id]
        return copy.deepcopy(sorted(docs, key=lambda d: d["created_at"], reverse=True))

    async def booked_times(self, service_id, day, statuses):
        return [
            d["time"] for d in self.docs.values()
            if d["service_id"] == service_id and d["date"] == day and d["status"] in statuses
        ]

    async def count_by_status(self):
        counts = {}
        for doc in self.docs.values():
            counts[doc["status"]] = counts.get(doc["status"], 0) + 1
        return counts


class FakeServiceRepository:
    def __init__(self):
        self.docs = {}

    def insert(self, **fields):
        doc = {
            "id": new_id(),
            "name": "Deep Cleaning",
            "provider_id": new_id(),
            "price": 499.5,
            "location": "Indiranagar, Bengaluru",
            "status": "approved",
            "rating": 0,
            "review_count": 0,
        }
        doc.update(fields)
        self.docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    async def get(self, service_id):
        doc = self.docs.get(service_id)
        return copy.deepcopy(doc) if doc else None

    async def update_rating(self, service_id, rating, review_count):
        if service_id in self.docs:
            self.docs[service_id].update(rating=rating, review_count=review_count)


class FakeAccountDirectory:
    def __init__(self):
        self.docs = {}

    def add(self, actor, **fields):
        doc = {"id": actor.id, "name": "Asha", "email": "asha@gmail.com"}
        doc.update(fields)
        self.docs[(actor.collection, actor.id)] = doc
        return doc

    async def get(self, actor):
        doc = self.docs.get((actor.collection, actor.id))
        return dict(doc) if doc else None


class FakeMailer:
    def __init__(self, failures=0):
        self.sent = []
        self.calls = 0
        self.failures = failures

    async def send_mail(self, to, subject, html, text, from_addr=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise MailTransportUnavailableError()
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"<msg-{self.calls}@test>"


class FakeRealtime:
    def __init__(self):
        self.events = []

    async def emit(self, event, payload):
        self.events.append((event, payload))
        return 1


class FakeGateway:
    def __init__(self, fail=False):
        self.fail = fail
        self.orders = []

    async def create_order(self, amount, currency, receipt):
        if self.fail:
            raise PaymentGatewayError("Failed to create payment order")
        order = {"id": f"order_{len(self.orders) + 1:06d}", "amount": amount, "currency": currency, "receipt": receipt}
        self.orders.append(order)
        return order

    async def aclose(self):
        pass


def auth_header(actor) -> dict:
    token = create_access_token({"id": actor.id, "role": actor.role.value})
    return {"Authorization": f"Bearer {token}"}


def signature_for(order_id: str, payment_id: str) -> str:
    return sign_payment(RAZORPAY_SECRET, order_id, payment_id)


@pytest.fixture
def test_settings():
    return Settings(
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET=RAZORPAY_SECRET,
        QUEUE_BACKOFF_SECONDS=[0.0, 0.0, 0.0],
        EMAIL_MAX_ATTEMPTS=3,
        NOTIFICATION_MAX_ATTEMPTS=1,
    )


@pytest.fixture
def bookings():
    return FakeBookingRepository()


@pytest.fixture
def services():
    return FakeServiceRepository()


@pytest.fixture
def accounts():
    return FakeAccountDirectory()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def realtime():
    return FakeRealtime()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def customer(accounts):
    actor = UserActor(new_id())
    accounts.add(actor, name="Asha", email="asha@gmail.com")
    return actor


@pytest.fixture
def provider(accounts):
    actor = ProviderActor(new_id())
    accounts.add(actor, name="Ravi", email="ravi@gmail.com")
    return actor


@pytest.fixture
def admin():
    return AdminActor(new_id())


@pytest.fixture
def service(services, provider):
    return services.insert(provider_id=provider.id)


@pytest.fixture
def app(test_settings, bookings, services, accounts, mailer, gateway, realtime):
    return create_app(
        test_settings,
        bookings=bookings,
        services=services,
        accounts=accounts,
        mailer=mailer,
        gateway=gateway,
        realtime=realtime,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def drain(client, timeout=5):
    """Wait for both queues of the app under ``client`` to go idle."""
    state = client.app.state
    client.portal.call(state.email_queue.drain, timeout)
    client.portal.call(state.notification_queue.drain, timeout)
