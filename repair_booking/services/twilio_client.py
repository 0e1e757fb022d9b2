"""Twilio client configuration for WhatsApp messaging."""

import logging

from twilio.rest import Client

from repair_booking.config import TWILIO

logger = logging.getLogger(__name__)

if not TWILIO.account_sid or not TWILIO.auth_token:
    logger.warning(
        "Twilio credentials not set. WhatsApp notifications will be skipped."
    )

client: Client | None = None
if TWILIO.account_sid and TWILIO.auth_token:
    client = Client(TWILIO.account_sid, TWILIO.auth_token)


def send_whatsapp_message(to: str, body: str) -> str:
    """Send a WhatsApp message via Twilio and return the message SID."""
    if client is None:
        raise RuntimeError("Twilio client is not configured.")

    if not to.startswith("+"):
        raise ValueError("Phone number must be in E.164 format.")

    message = client.messages.create(
        from_=TWILIO.whatsapp_from,
        to=f"whatsapp:{to}",
        body=body,
    )

    logger.info("WhatsApp message sent to %s (SID: %s)", to, message.sid)
    return message.sid
