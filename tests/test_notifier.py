import json
from datetime import datetime

import httpx

from config import EmailSettings
from notifier import EmailNotifier

GUEST = {"name": "Lina", "email": "lina@example.com"}
HOST = {"name": "Omar", "email": "omar@example.com"}
PROPERTY = {"title": "Courtyard House", "location": {"address": "Straight Street 5"}}
BOOKING = {
    "check_in": datetime(2030, 7, 10),
    "check_out": datetime(2030, 7, 13),
    "guests": 2,
    "total_price": 225.0,
    "payment_method": "cash",
}


def test_payload_shape(notifier, sent_emails) -> None:
    assert notifier.send_booking_confirmation_to_guest(BOOKING, GUEST, PROPERTY) is True

    payload = sent_emails[0]
    assert payload["service_id"] == "svc"
    assert payload["template_id"] == "tpl"
    assert payload["user_id"] == "usr"
    params = payload["template_params"]
    assert params["to_email"] == "lina@example.com"
    assert params["subject"] == "Booking Confirmed - Courtyard House"
    assert "Check-in: 2030-07-10" in params["message"]
    assert json.loads(params["booking_details"])["total_price"] == 225.0


def test_host_notification_omits_empty_special_requests(notifier, sent_emails) -> None:
    notifier.send_booking_notification_to_host(BOOKING, HOST, PROPERTY, GUEST)
    params = sent_emails[0]["template_params"]
    assert params["subject"] == "New Booking Request - Courtyard House"
    assert "Guest: Lina" in params["message"]
    assert "Special Requests" not in params["message"]


def test_status_update_subject(notifier, sent_emails) -> None:
    notifier.send_booking_status_update(BOOKING, GUEST, PROPERTY, "completed")
    params = sent_emails[0]["template_params"]
    assert params["subject"] == "Booking Completed - Courtyard House"
    assert params["message"].startswith("Your stay has been completed.")


def test_unconfigured_notifier_skips_sending() -> None:
    calls = []
    transport = httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200))
    notifier = EmailNotifier(EmailSettings(service_id=None, template_id=None, user_id=None), transport=transport)

    assert notifier.send_welcome_email(GUEST) is False
    assert calls == []


def test_delivery_failure_is_reported_not_raised(settings) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    notifier = EmailNotifier(settings.email, transport=transport)
    assert notifier.send_reset_password_email(GUEST, "123456") is False


def test_connection_error_is_reported_not_raised(settings) -> None:
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    notifier = EmailNotifier(settings.email, transport=httpx.MockTransport(handler))
    assert notifier.send_phone_verification_code(GUEST, "654321") is False
