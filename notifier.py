"""
Transactional email through the EmailJS REST API.

Sending is best-effort: a booking or a registration must not fail because
an email could not be delivered, so every send returns True/False and logs
the reason for a failure.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends

from config import EmailSettings, Settings, get_settings

logger = logging.getLogger(__name__)

TEAM_SIGNATURE = "Best regards,\nThe Nawartu Team"

STATUS_MESSAGES = {
    "confirmed": "Your booking has been confirmed by the host!",
    "cancelled": "Your booking has been cancelled.",
    "completed": "Your stay has been completed. We hope you enjoyed it!",
}


def _day(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    return str(value)


class EmailNotifier:
    def __init__(self, settings: EmailSettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def send(self, to_email: str, to_name: str, subject: str, message: str, **extra: Any) -> bool:
        if not self.settings.configured:
            logger.warning("EmailJS is not configured, skipping email %r to %s", subject, to_email)
            return False

        template_params = {
            "to_email": to_email,
            "to_name": to_name,
            "subject": subject,
            "message": message,
        }
        for key, value in extra.items():
            template_params[key] = json.dumps(value, default=str) if isinstance(value, dict) else value

        payload = {
            "service_id": self.settings.service_id,
            "template_id": self.settings.template_id,
            "user_id": self.settings.user_id,
            "template_params": template_params,
        }
        try:
            with httpx.Client(timeout=self.settings.timeout, transport=self._transport) as client:
                response = client.post(self.settings.api_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to send email %r to %s", subject, to_email)
            return False

        logger.info("Email %r sent to %s", subject, to_email)
        return True

    # ------- Booking emails -------

    def send_booking_confirmation_to_guest(
        self, booking: Dict[str, Any], guest: Dict[str, Any], prop: Dict[str, Any]
    ) -> bool:
        address = (prop.get("location") or {}).get("address", "")
        message = (
            "Your booking has been confirmed. Here are the details:\n\n"
            f"Property: {prop['title']}\n"
            f"Check-in: {_day(booking['check_in'])}\n"
            f"Check-out: {_day(booking['check_out'])}\n"
            f"Guests: {booking['guests']}\n"
            f"Total Price: ${booking['total_price']}\n"
            f"Payment Method: {booking.get('payment_method')}\n"
            f"Address: {address}\n\n"
            "Your host will contact you with check-in instructions closer to your arrival date.\n\n"
            f"{TEAM_SIGNATURE}"
        )
        return self.send(
            guest["email"],
            guest.get("name", ""),
            f"Booking Confirmed - {prop['title']}",
            message,
            booking_details={
                "property_title": prop["title"],
                "check_in": _day(booking["check_in"]),
                "check_out": _day(booking["check_out"]),
                "guests": booking["guests"],
                "total_price": booking["total_price"],
                "payment_method": booking.get("payment_method"),
                "address": address,
            },
        )

    def send_booking_notification_to_host(
        self,
        booking: Dict[str, Any],
        host: Dict[str, Any],
        prop: Dict[str, Any],
        guest: Dict[str, Any],
    ) -> bool:
        special_requests = booking.get("special_requests") or ""
        message = (
            "You have received a new booking request for your property. Here are the details:\n\n"
            f"Property: {prop['title']}\n"
            f"Guest: {guest.get('name', '')}\n"
            f"Check-in: {_day(booking['check_in'])}\n"
            f"Check-out: {_day(booking['check_out'])}\n"
            f"Guests: {booking['guests']}\n"
            f"Total Price: ${booking['total_price']}\n"
            f"Payment Method: {booking.get('payment_method')}\n"
        )
        if special_requests:
            message += f"Special Requests: {special_requests}\n"
        message += f"\nPlease log in to your dashboard to confirm or decline this booking.\n\n{TEAM_SIGNATURE}"
        return self.send(
            host["email"],
            host.get("name", ""),
            f"New Booking Request - {prop['title']}",
            message,
            booking_details={
                "property_title": prop["title"],
                "guest_name": guest.get("name", ""),
                "check_in": _day(booking["check_in"]),
                "check_out": _day(booking["check_out"]),
                "guests": booking["guests"],
                "total_price": booking["total_price"],
                "payment_method": booking.get("payment_method"),
                "special_requests": special_requests,
            },
        )

    def send_booking_status_update(
        self, booking: Dict[str, Any], user: Dict[str, Any], prop: Dict[str, Any], status: str
    ) -> bool:
        message = (
            f"{STATUS_MESSAGES.get(status, f'Your booking is now {status}.')}\n\n"
            f"Property: {prop['title']}\n"
            f"Check-in: {_day(booking['check_in'])}\n"
            f"Check-out: {_day(booking['check_out'])}\n"
            f"Total Price: ${booking['total_price']}\n\n"
            f"{TEAM_SIGNATURE}"
        )
        return self.send(
            user["email"],
            user.get("name", ""),
            f"Booking {status.capitalize()} - {prop['title']}",
            message,
            booking_details={
                "status": status,
                "property_title": prop["title"],
                "check_in": _day(booking["check_in"]),
                "check_out": _day(booking["check_out"]),
                "total_price": booking["total_price"],
            },
        )

    # ------- Account emails -------

    def send_welcome_email(self, user: Dict[str, Any]) -> bool:
        message = (
            "Welcome to Nawartu, your destination for discovering unique homes in Damascus!\n\n"
            "Browse and book properties, list your own place to host guests, "
            "and connect with local hosts.\n\n"
            "Happy exploring!\nThe Nawartu Team"
        )
        return self.send(
            user["email"],
            user.get("name", ""),
            "Welcome to Nawartu!",
            message,
            user_details={"name": user.get("name"), "email": user["email"]},
        )

    def send_reset_password_email(self, user: Dict[str, Any], code: str, expires_minutes: int = 15) -> bool:
        message = (
            f"Hello {user.get('name', '')},\n\n"
            "You have requested to reset your password. Here is your reset code:\n\n"
            f"{code}\n\n"
            f"This code will expire in {expires_minutes} minutes.\n\n"
            "If you did not request this password reset, please ignore this email.\n\n"
            f"{TEAM_SIGNATURE}"
        )
        return self.send(user["email"], user.get("name", ""), "Reset Your Nawartu Password", message)

    def send_phone_verification_code(self, user: Dict[str, Any], code: str, expires_minutes: int = 5) -> bool:
        message = (
            f"Hello {user.get('name', '')},\n\n"
            f"Your Nawartu login code is {code}. It expires in {expires_minutes} minutes.\n\n"
            f"{TEAM_SIGNATURE}"
        )
        return self.send(user["email"], user.get("name", ""), "Your Nawartu Login Code", message)


def get_notifier(settings: Settings = Depends(get_settings)) -> EmailNotifier:
    return EmailNotifier(settings.email)
