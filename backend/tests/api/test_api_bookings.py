"""
预订 API 测试
"""
from datetime import datetime

from app.models.ontology import Booking, BookingStatus, IdVerificationStatus, Notification

DAY1 = datetime(2026, 3, 1, 10, 0)
DAY3 = datetime(2026, 3, 3, 10, 0)


class TestCreateBooking:

    def test_create(self, client, user_headers, sample_room, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(sample_room.id),
                               headers=user_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["roomId"] == sample_room.id
        assert data["checkIn"].startswith("2026-03-02T10:00:00")
        assert data["status"] == "confirmed"
        assert data["paymentStatus"] == "pending"
        assert data["idVerified"] == "pending"
        assert data["totalPrice"] == 9000

    def test_create_shifts_on_conflict(self, client, user_headers, sample_room, other_user,
                                       make_booking, booking_payload):
        make_booking(sample_room, other_user, DAY1, DAY3)

        response = client.post(
            "/api/bookings",
            json=booking_payload(sample_room.id, "2026-03-02T10:00:00Z", "2026-03-04T10:00:00Z"),
            headers=user_headers,
        )

        assert response.status_code == 201
        assert response.json()["checkIn"].startswith("2026-03-03T10:00:00")
        assert response.json()["checkOut"].startswith("2026-03-05T10:00:00")

    def test_offset_timestamps_normalized(self, client, user_headers, sample_room,
                                          booking_payload):
        response = client.post(
            "/api/bookings",
            json=booking_payload(sample_room.id, "2026-03-02T15:30:00+05:30",
                                 "2026-03-04T15:30:00+05:30"),
            headers=user_headers,
        )

        assert response.json()["checkIn"].startswith("2026-03-02T10:00:00")

    def test_create_writes_notification(self, client, db_session, user_headers, guest_user,
                                        sample_room, booking_payload):
        client.post("/api/bookings", json=booking_payload(sample_room.id), headers=user_headers)

        note = db_session.query(Notification).one()
        assert note.title == "Booking Confirmed"
        assert note.user_id == guest_user.id

    def test_admin_forbidden(self, client, admin_headers, sample_room, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(sample_room.id),
                               headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error_type"] == "permission_denied"

    def test_unknown_room(self, client, user_headers, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(999), headers=user_headers)
        assert response.status_code == 404

    def test_check_out_before_check_in(self, client, user_headers, sample_room, booking_payload):
        response = client.post(
            "/api/bookings",
            json=booking_payload(sample_room.id, "2026-03-04T10:00:00Z", "2026-03-02T10:00:00Z"),
            headers=user_headers,
        )
        assert response.status_code == 400

    def test_missing_field(self, client, user_headers, sample_room, booking_payload):
        payload = booking_payload(sample_room.id)
        del payload["guestName"]

        response = client.post("/api/bookings", json=payload, headers=user_headers)
        assert response.status_code == 422

    def test_non_finite_price(self, client, user_headers, sample_room, booking_payload):
        response = client.post("/api/bookings",
                               json=booking_payload(sample_room.id, totalPrice="NaN"),
                               headers=user_headers)
        assert response.status_code == 422

    def test_requires_token(self, client, sample_room, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(sample_room.id))
        assert response.status_code in (401, 403)

    def test_bad_token(self, client, sample_room, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(sample_room.id),
                               headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestReadBookings:

    def test_list_own(self, client, user_headers, guest_user, other_user, sample_room,
                      make_booking):
        make_booking(sample_room, guest_user, DAY1, DAY3)
        make_booking(sample_room, other_user, DAY3, datetime(2026, 3, 5, 10, 0))

        response = client.get("/api/bookings", headers=user_headers)

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert response.json()[0]["userId"] == guest_user.id

    def test_get_other_users_booking(self, client, other_headers, guest_user, sample_room,
                                     make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.get(f"/api/bookings/{booking.id}", headers=other_headers)
        assert response.status_code == 403

    def test_admin_reads_any(self, client, admin_headers, guest_user, sample_room, make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.get(f"/api/bookings/{booking.id}", headers=admin_headers)
        assert response.status_code == 200


class TestBookingTransitions:

    def test_cancel(self, client, user_headers, guest_user, sample_room, make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.patch(f"/api/bookings/{booking.id}/status",
                                json={"status": "cancelled"}, headers=user_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancelledAt"] is not None

    def test_cancelled_cannot_be_revived(self, client, user_headers, guest_user, sample_room,
                                         make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3,
                               status=BookingStatus.CANCELLED)

        response = client.patch(f"/api/bookings/{booking.id}/status",
                                json={"status": "confirmed"}, headers=user_headers)

        assert response.status_code == 409
        assert response.json()["error_type"] == "conflict"

    def test_check_in_without_id(self, client, user_headers, guest_user, sample_room,
                                 make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.patch(f"/api/bookings/{booking.id}/status",
                                json={"status": "checked-in"}, headers=user_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "ID verification is required before check-in"

        stored = client.get(f"/api/bookings/{booking.id}", headers=user_headers).json()
        assert stored["status"] == "confirmed"
        assert stored["cancelledAt"] is None

    def test_unknown_status(self, client, user_headers, guest_user, sample_room, make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.patch(f"/api/bookings/{booking.id}/status",
                                json={"status": "archived"}, headers=user_headers)
        assert response.status_code == 400

    def test_id_proof(self, client, user_headers, guest_user, sample_room, make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3,
                               id_verified=IdVerificationStatus.REJECTED)

        response = client.patch(
            f"/api/bookings/{booking.id}/id-proof",
            json={"idType": "aadhaar", "idProofUrl": "/uploads/ids/a.png"},
            headers=user_headers,
        )

        assert response.status_code == 200
        assert response.json()["idVerified"] == "pending"
        assert response.json()["idProofType"] == "aadhaar"

    def test_payment_status(self, client, db_session, user_headers, guest_user, sample_room,
                            make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        response = client.patch(f"/api/bookings/{booking.id}/payment-status",
                                json={"paymentStatus": "failed"}, headers=user_headers)

        assert response.status_code == 200
        assert response.json()["paymentStatus"] == "failed"
        assert db_session.query(Notification).one().title == "Payment Failed"

    def test_payment_status_on_cancelled(self, client, user_headers, guest_user, sample_room,
                                         make_booking):
        booking = make_booking(sample_room, guest_user, DAY1, DAY3,
                               status=BookingStatus.CANCELLED)

        response = client.patch(f"/api/bookings/{booking.id}/payment-status",
                                json={"paymentStatus": "paid"}, headers=user_headers)
        assert response.status_code == 409

    def test_storage_failure_is_500(self, client, db_session, user_headers, guest_user,
                                    sample_room, make_booking, monkeypatch):
        from sqlalchemy.exc import SQLAlchemyError

        booking = make_booking(sample_room, guest_user, DAY1, DAY3)

        def broken_commit():
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(db_session, "commit", broken_commit)

        response = client.patch(f"/api/bookings/{booking.id}/status",
                                json={"status": "cancelled"}, headers=user_headers)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error",
                                   "error_type": "dependency_error"}
        assert db_session.get(Booking, booking.id).status == BookingStatus.CONFIRMED
