from datetime import datetime

import pytest

from pricing import offer_to_document
from schemas import SpecialOffer


@pytest.fixture()
def host(make_user):
    return make_user(role="host", name="Omar", email="omar@example.com")


@pytest.fixture()
def guest(make_user):
    return make_user(name="Lina", email="lina@example.com")


@pytest.fixture()
def prop(host, make_property):
    return make_property(host_id=str(host[0]["_id"]), price=100.0, capacity={"guests": 2})


def _add_offer(mongo_db, **fields):
    data = dict(
        title="Summer Sale",
        discount={"type": "percentage", "percentage": 25, "maximum_discount": 500},
        start_date=datetime(2030, 6, 1),
        end_date=datetime(2030, 8, 31),
        minimum_stay=2,
    )
    data.update(fields)
    mongo_db["special_offer"].insert_one(offer_to_document(SpecialOffer(**data)))


def _book(client, prop, headers, check_in="2030-07-10", check_out="2030-07-13", guests=2):
    return client.post(
        "/bookings/",
        json={
            "property_id": str(prop["_id"]),
            "check_in": check_in,
            "check_out": check_out,
            "guests": guests,
            "special_requests": "Late arrival",
        },
        headers=headers,
    )


def test_quote_without_booking(client, mongo_db, prop) -> None:
    _add_offer(mongo_db)
    res = client.post(
        "/bookings/quote",
        json={"property_id": str(prop["_id"]), "check_in": "2030-07-10", "check_out": "2030-07-13"},
    )
    assert res.status_code == 200
    data = res.json()
    assert data["base_price"] == 300
    assert data["discount"] == 75
    assert data["total_price"] == 225
    assert data["special_offer"]["title"] == "Summer Sale"


def test_quote_rejects_inverted_dates(client, prop) -> None:
    res = client.post(
        "/bookings/quote",
        json={"property_id": str(prop["_id"]), "check_in": "2030-07-13", "check_out": "2030-07-10"},
    )
    assert res.status_code == 400


def test_create_booking_applies_offer_and_notifies(client, mongo_db, prop, guest, sent_emails) -> None:
    _add_offer(mongo_db)
    _add_offer(mongo_db, title="Fixed 100 off", discount={"type": "fixed", "amount": 100}, priority=2)

    res = _book(client, prop, guest[1])
    assert res.status_code == 201
    booking = res.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["base_price"] == 300
    assert booking["total_price"] == 200
    assert booking["special_offer_id"]
    assert booking["guest_id"] == str(guest[0]["_id"])

    recipients = [e["template_params"]["to_email"] for e in sent_emails]
    assert recipients == ["lina@example.com", "omar@example.com"]
    assert "Special Requests: Late arrival" in sent_emails[1]["template_params"]["message"]


def test_minimum_stay_is_enforced(client, mongo_db, prop, guest) -> None:
    _add_offer(mongo_db, minimum_stay=5)
    booking = _book(client, prop, guest[1]).json()["booking"]
    assert booking["total_price"] == 300
    assert booking["special_offer_id"] is None


def test_booking_requires_auth(client, prop) -> None:
    assert _book(client, prop, {}).status_code == 401


def test_booking_validations(client, prop, guest, make_property, host) -> None:
    assert _book(client, prop, guest[1], guests=3).status_code == 400
    assert _book(client, prop, guest[1], check_in="2030-07-13", check_out="2030-07-13").status_code == 400

    closed = make_property(host_id=str(host[0]["_id"]), is_available=False)
    assert _book(client, closed, guest[1]).status_code == 400


def test_overlapping_booking_is_rejected(client, prop, guest, make_user) -> None:
    assert _book(client, prop, guest[1]).status_code == 201
    _, other = make_user()
    res = _book(client, prop, other, check_in="2030-07-12", check_out="2030-07-15")
    assert res.status_code == 400
    assert res.json()["detail"] == "Selected dates are no longer available"

    # back-to-back stays do not overlap
    assert _book(client, prop, other, check_in="2030-07-13", check_out="2030-07-15").status_code == 201


def test_availability(client, prop, guest) -> None:
    _book(client, prop, guest[1], check_in="2030-07-11", check_out="2030-07-13")
    res = client.post(
        "/bookings/availability",
        json={"property_id": str(prop["_id"]), "start_date": "2030-07-10", "end_date": "2030-07-14"},
    )
    assert res.json()["days"] == [
        {"date": "2030-07-10", "available": True},
        {"date": "2030-07-11", "available": False},
        {"date": "2030-07-12", "available": False},
        {"date": "2030-07-13", "available": True},
    ]


def test_my_and_host_bookings(client, prop, guest, host) -> None:
    _book(client, prop, guest[1])
    assert len(client.get("/bookings/me", headers=guest[1]).json()["items"]) == 1
    assert len(client.get("/bookings/host", headers=host[1]).json()["items"]) == 1
    assert client.get("/bookings/host", headers=guest[1]).status_code == 403


def test_status_updates(client, prop, guest, host, sent_emails) -> None:
    bid = _book(client, prop, guest[1]).json()["booking"]["_id"]
    url = f"/bookings/{bid}/status"

    assert client.patch(url, json={"status": "confirmed"}, headers=guest[1]).status_code == 403

    res = client.patch(url, json={"status": "confirmed"}, headers=host[1])
    assert res.json()["booking"]["status"] == "confirmed"
    assert sent_emails[-1]["template_params"]["subject"].startswith("Booking Confirmed")
    assert sent_emails[-1]["template_params"]["to_email"] == "lina@example.com"

    res = client.patch(url, json={"status": "cancelled"}, headers=guest[1])
    assert res.json()["booking"]["status"] == "cancelled"


def test_cancelled_booking_frees_dates(client, prop, guest, host) -> None:
    bid = _book(client, prop, guest[1]).json()["booking"]["_id"]
    client.patch(f"/bookings/{bid}/status", json={"status": "cancelled"}, headers=host[1])
    assert _book(client, prop, guest[1]).status_code == 201


def test_cancelled_booking_cannot_be_reconfirmed(client, mongo_db, prop, guest, host, make_user) -> None:
    bid = _book(client, prop, guest[1]).json()["booking"]["_id"]
    client.patch(f"/bookings/{bid}/status", json={"status": "cancelled"}, headers=guest[1])
    _, other = make_user()
    assert _book(client, prop, other).status_code == 201

    res = client.patch(f"/bookings/{bid}/status", json={"status": "confirmed"}, headers=host[1])
    assert res.status_code == 400
    assert res.json()["detail"] == "Cannot change the status of a cancelled booking"
    assert mongo_db["booking"].count_documents({"status": {"$ne": "cancelled"}}) == 1


def test_completed_booking_is_final(client, prop, guest, host) -> None:
    bid = _book(client, prop, guest[1]).json()["booking"]["_id"]
    url = f"/bookings/{bid}/status"
    assert client.patch(url, json={"status": "completed"}, headers=host[1]).status_code == 200
    assert client.patch(url, json={"status": "cancelled"}, headers=guest[1]).status_code == 400
