"""
HTTP tests for the bookings and contact routes.
"""

from datetime import datetime, timezone

import pytest

from conftest import auth_header, drain, new_id, signature_for
from hyperlocal.models.user import ProviderActor, UserActor


@pytest.fixture
def pending_booking(bookings, customer, provider, service):
    return bookings.insert(
        user_id=customer.id,
        provider_id=provider.id,
        service_id=service["id"],
        status="pending",
    )


def test_root(client):
    assert client.get("/").json() == {"message": "Welcome to Hyperlocal AI Bookings API"}


class TestAuth:
    def test_missing_token_is_401(self, client, pending_booking):
        response = client.put(f"/api/bookings/{pending_booking['id']}/status", json={"status": "approved"})
        assert response.status_code == 401
        assert response.json()["detail"] == "No token, authorization denied"

    def test_bad_token_is_401(self, client, pending_booking):
        response = client.get(
            f"/api/bookings/{pending_booking['id']}", headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 401


class TestCreate:
    def test_create_returns_booking_and_order(self, client, customer, service):
        response = client.post(
            "/api/bookings/",
            json={"serviceId": service["id"], "date": "2026-03-14", "time": "11:00", "notes": "Gate 2"},
            headers=auth_header(customer),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["booking"]["status"] == "payment_pending"
        assert body["booking"]["payment_status"] == "pending"
        assert body["order"]["amount"] == 49950
        assert body["booking"]["razorpay_order_id"] == body["order"]["id"]

    def test_bad_time_is_400(self, client, customer, service):
        response = client.post(
            "/api/bookings/",
            json={"serviceId": service["id"], "date": "2026-03-14", "time": "11am"},
            headers=auth_header(customer),
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("time:")

    def test_missing_service_id_is_400(self, client, customer):
        response = client.post(
            "/api/bookings/", json={"date": "2026-03-14", "time": "11:00"}, headers=auth_header(customer)
        )
        assert response.status_code == 400
        assert "Field required" in response.json()["detail"]

    def test_unavailable_service_is_400(self, client, customer, services):
        service = services.insert(status="pending")
        response = client.post(
            "/api/bookings/",
            json={"serviceId": service["id"], "date": "2026-03-14", "time": "11:00"},
            headers=auth_header(customer),
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Service not available"}

    def test_gateway_failure_is_500(self, client, customer, service, gateway, bookings):
        gateway.fail = True
        response = client.post(
            "/api/bookings/",
            json={"serviceId": service["id"], "date": "2026-03-14", "time": "11:00"},
            headers=auth_header(customer),
        )
        assert response.status_code == 500
        assert bookings.docs == {}


class TestVerifyPayment:
    def test_accepts_gateway_field_names(self, client, bookings, customer):
        bookings.insert(user_id=customer.id, status="payment_pending", payment_status="pending",
                        razorpay_order_id="order_1")
        response = client.post(
            "/api/bookings/verify-payment",
            json={
                "razorpay_order_id": "order_1",
                "razorpay_payment_id": "pay_1",
                "razorpay_signature": signature_for("order_1", "pay_1"),
            },
            headers=auth_header(customer),
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["booking"]["status"] == "pending"

    def test_bad_signature_is_400(self, client, bookings, customer):
        booking = bookings.insert(user_id=customer.id, status="payment_pending", payment_status="pending",
                                  razorpay_order_id="order_1")
        response = client.post(
            "/api/bookings/verify-payment",
            json={"orderId": "order_1", "paymentId": "pay_1", "signature": "0" * 64},
            headers=auth_header(customer),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment verification failed"
        assert bookings.docs[booking["id"]]["payment_status"] == "failed"

    def test_unknown_order_is_404(self, client, customer):
        response = client.post(
            "/api/bookings/verify-payment",
            json={"orderId": "order_x", "paymentId": "pay_1", "signature": "0" * 64},
            headers=auth_header(customer),
        )
        assert response.status_code == 404


class TestStatus:
    def test_provider_approves(self, client, pending_booking, provider, mailer, realtime):
        response = client.put(
            f"/api/bookings/{pending_booking['id']}/status",
            json={"status": "approved", "notes": "On my way"},
            headers=auth_header(provider),
        )
        drain(client)

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert [m["to"] for m in mailer.sent] == ["asha@gmail.com"]
        assert realtime.events[0][0] == "bookingStatusUpdated"
        assert realtime.events[0][1]["status"] == "approved"

    def test_reject_deletes(self, client, bookings, pending_booking, provider):
        response = client.put(
            f"/api/bookings/{pending_booking['id']}/status",
            json={"status": "rejected"},
            headers=auth_header(provider),
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Booking rejected and deleted successfully",
            "booking_id": pending_booking["id"],
        }
        assert pending_booking["id"] not in bookings.docs

    def test_invalid_transition_is_400(self, client, pending_booking, provider):
        response = client.put(
            f"/api/bookings/{pending_booking['id']}/status",
            json={"status": "completed"},
            headers=auth_header(provider),
        )
        assert response.status_code == 400
        assert "Cannot change booking status" in response.json()["detail"]

    def test_foreign_provider_is_403(self, client, pending_booking):
        response = client.put(
            f"/api/bookings/{pending_booking['id']}/status",
            json={"status": "approved"},
            headers=auth_header(ProviderActor(new_id())),
        )
        assert response.status_code == 403

    def test_unknown_booking_is_404(self, client, provider):
        response = client.put(
            f"/api/bookings/{new_id()}/status", json={"status": "approved"}, headers=auth_header(provider)
        )
        assert response.status_code == 404

    def test_bulk_status(self, client, bookings, customer, provider, service):
        ids = [
            bookings.insert(user_id=customer.id, provider_id=provider.id, service_id=service["id"])["id"]
            for _ in range(3)
        ]
        response = client.put(
            "/api/bookings/bulk/status",
            json={"bookingIds": ids, "status": "rejected"},
            headers=auth_header(provider),
        )

        assert response.status_code == 200
        assert sorted(response.json()["rejected"]) == sorted(ids)
        assert bookings.docs == {}

    def test_bulk_forbidden_item_is_403(self, client, bookings, customer, provider, service):
        ids = [
            bookings.insert(user_id=customer.id, provider_id=provider.id, service_id=service["id"])["id"],
            bookings.insert(user_id=customer.id, provider_id=new_id(), service_id=service["id"])["id"],
        ]
        response = client.put(
            "/api/bookings/bulk/status",
            json={"bookingIds": ids, "status": "approved"},
            headers=auth_header(provider),
        )

        assert response.status_code == 403
        assert all(bookings.docs[i]["status"] == "pending" for i in ids)

    def test_cancel(self, client, bookings, customer):
        booking = bookings.insert(user_id=customer.id, status="payment_pending", payment_status="pending")
        response = client.patch(f"/api/bookings/{booking['id']}/cancel", headers=auth_header(customer))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_after_payment_is_400(self, client, pending_booking, customer):
        response = client.patch(f"/api/bookings/{pending_booking['id']}/cancel", headers=auth_header(customer))
        assert response.status_code == 400


class TestReview:
    def test_review_twice(self, client, bookings, customer, service, services):
        booking = bookings.insert(user_id=customer.id, service_id=service["id"], status="completed")
        url = f"/api/bookings/{booking['id']}/review"

        first = client.post(url, json={"rating": 5, "comment": "Spotless"}, headers=auth_header(customer))
        second = client.post(url, json={"rating": 1, "comment": "Again"}, headers=auth_header(customer))

        assert first.status_code == 200
        assert first.json()["booking"]["status"] == "reviewed"
        assert second.status_code == 400
        assert second.json()["detail"] == "You have already reviewed this booking"
        assert services.docs[service["id"]]["rating"] == 5

    def test_rating_out_of_range_is_400(self, client, bookings, customer):
        booking = bookings.insert(user_id=customer.id, status="completed")
        response = client.post(
            f"/api/bookings/{booking['id']}/review",
            json={"rating": 9, "comment": "wow"},
            headers=auth_header(customer),
        )
        assert response.status_code == 400

    def test_missing_rating_is_400(self, client, bookings, customer):
        booking = bookings.insert(user_id=customer.id, status="completed")
        response = client.post(
            f"/api/bookings/{booking['id']}/review",
            json={"comment": "good"},
            headers=auth_header(customer),
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "rating: Field required"}
        assert bookings.docs[booking["id"]]["status"] == "completed"


class TestReads:
    def test_user_bookings_are_paged(self, client, bookings, customer):
        for _ in range(3):
            bookings.insert(user_id=customer.id)
        bookings.insert()

        response = client.get("/api/bookings/user?page=1&limit=2", headers=auth_header(customer))

        body = response.json()
        assert len(body["bookings"]) == 2
        assert body["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_bookings": 3,
            "has_next_page": True,
            "has_prev_page": False,
        }
        assert len(client.get("/api/bookings/user/all", headers=auth_header(customer)).json()) == 3

    def test_provider_listing_requires_provider(self, client, bookings, customer, provider):
        bookings.insert(provider_id=provider.id)

        assert len(client.get("/api/bookings/provider", headers=auth_header(provider)).json()) == 1
        assert client.get("/api/bookings/provider", headers=auth_header(customer)).status_code == 403

    def test_get_booking_checks_ownership(self, client, pending_booking, customer, provider, admin):
        url = f"/api/bookings/{pending_booking['id']}"
        for actor in (customer, provider, admin):
            assert client.get(url, headers=auth_header(actor)).status_code == 200
        assert client.get(url, headers=auth_header(UserActor(new_id()))).status_code == 403

    def test_available_slots_is_public(self, client, bookings, service):
        bookings.insert(service_id=service["id"], date=datetime(2026, 3, 14, tzinfo=timezone.utc), time="13:00")
        response = client.get(f"/api/bookings/available-slots/{service['id']}/2026-03-14")

        assert response.status_code == 200
        assert len(response.json()["available_slots"]) == 8
        assert response.json()["booked_slots"] == ["13:00"]

    def test_available_slots_unknown_service_is_404(self, client):
        response = client.get(f"/api/bookings/available-slots/{new_id()}/2026-03-14")

        assert response.status_code == 404
        assert response.json() == {"detail": "Service not found"}

    def test_available_slots_bad_date_is_400(self, client, service):
        response = client.get(f"/api/bookings/available-slots/{service['id']}/14-03-2026")
        assert response.status_code == 400

    def test_admin_summary_and_queue_status(self, client, bookings, admin, customer):
        bookings.insert(status="pending")
        bookings.insert(status="Completed")
        bookings.insert(status="completed")

        summary = client.get("/api/bookings/summary", headers=auth_header(admin)).json()
        assert summary == {"total_bookings": 3, "by_status": {"pending": 1, "completed": 2}}

        queues = client.get("/api/bookings/queue-status", headers=auth_header(admin)).json()
        assert queues["status"] == "active"
        assert client.get("/api/bookings/summary", headers=auth_header(customer)).status_code == 403


def test_contact_form_is_queued(client, mailer):
    response = client.post(
        "/api/contact",
        json={"name": "Asha", "email": "asha@gmail.com", "subject": "Refund", "message": "Please call"},
    )
    drain(client)

    assert response.status_code == 202
    assert response.json()["job_id"].startswith("job-")
    assert mailer.sent[0]["to"] == "support@hyperlocalai.com"
