"""
Confirmation e-mail and SMS for committed reservations.

Both senders are blocking client libraries, so they run in a worker thread.
Dispatch is fire-and-forget: the reply to the customer never waits on it,
and a failure is logged without touching the committed reservation.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from booking_engine.config import NotificationConfig, settings
from booking_engine.schemas.booking_schema import Reservation
from booking_engine.utils import format_date_label, format_time_label, to_e164

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a confirmation message cannot be sent."""


@dataclass(frozen=True)
class ConfirmationEmail:
    to: str
    name: str
    service: str
    date_label: str
    time_label: str
    reservation_id: str


@dataclass(frozen=True)
class ConfirmationSms:
    to: str
    name: str
    service: str
    date_label: str
    time_label: str


def send_confirmation_email(details: ConfirmationEmail, config: NotificationConfig) -> None:
    """Send the booking confirmation over SMTP."""
    if not config.smtp_user or not config.smtp_password or not config.smtp_from:
        raise NotificationError("SMTP credentials are not configured")

    message = EmailMessage()
    message["From"] = config.smtp_from
    message["To"] = details.to
    message["Subject"] = f"Booking confirmed: {details.service}"
    message.set_content(
        f"Hi {details.name},\n\n"
        f"You're all set.\n{details.service}\n{details.date_label} at {details.time_label}\n\n"
        f"Booking ID: {details.reservation_id}\n\n"
        "Need to reschedule? Just reply to this email."
    )

    smtp_cls = smtplib.SMTP_SSL if config.smtp_secure else smtplib.SMTP
    try:
        with smtp_cls(config.smtp_host, config.smtp_port, timeout=30) as server:
            if not config.smtp_secure:
                server.starttls()
            server.login(config.smtp_user, config.smtp_password)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationError(f"SMTP delivery to {details.to} failed: {exc}") from exc


def send_confirmation_sms(
    details: ConfirmationSms, config: NotificationConfig, client: Optional[Client] = None
) -> None:
    """Send the booking confirmation through Twilio."""
    if not config.twilio_account_sid or not config.twilio_auth_token:
        raise NotificationError("Twilio credentials are not configured")
    if not config.twilio_from_number and not config.twilio_messaging_service_sid:
        raise NotificationError("Twilio sender is not configured")

    client = client or Client(config.twilio_account_sid, config.twilio_auth_token)
    body = (
        f"Hi {details.name}, you're all set.\n"
        f"{details.service}\n{details.date_label} at {details.time_label}\n"
        "Need to reschedule? Just text us."
    )
    sender: dict[str, str] = {}
    if config.twilio_messaging_service_sid:
        sender["messaging_service_sid"] = config.twilio_messaging_service_sid
    else:
        sender["from_"] = config.twilio_from_number
    to = to_e164(details.to, config.sms_default_country_code)
    try:
        client.messages.create(to=to, body=body, **sender)
    except TwilioException as exc:
        raise NotificationError(f"SMS delivery to {to} failed: {exc}") from exc


class ConfirmationNotifier:
    """Schedules confirmation messages without blocking the caller."""

    def __init__(self, config: NotificationConfig = settings.notifications) -> None:
        self._config = config
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, reservation: Reservation) -> None:
        """Fire-and-forget both confirmations for a committed reservation."""
        task = asyncio.create_task(self.send_all(reservation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send_all(self, reservation: Reservation) -> None:
        date_label = format_date_label(reservation.start_at.date())
        time_label = format_time_label(reservation.start_at.timetz())
        jobs = []
        if reservation.customer_email:
            jobs.append(("email", self.send_email(ConfirmationEmail(
                to=reservation.customer_email,
                name=reservation.customer_name,
                service=reservation.service_name,
                date_label=date_label,
                time_label=time_label,
                reservation_id=reservation.id,
            ))))
        jobs.append(("sms", self.send_sms(ConfirmationSms(
            to=reservation.customer_phone,
            name=reservation.customer_name,
            service=reservation.service_name,
            date_label=date_label,
            time_label=time_label,
        ))))

        results = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
        for (channel, _), result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Confirmation %s for %s failed: %s", channel, reservation.id, result
                )
            else:
                logger.info("Confirmation %s sent for %s", channel, reservation.id)

    async def send_email(self, details: ConfirmationEmail) -> None:
        await asyncio.to_thread(send_confirmation_email, details, self._config)

    async def send_sms(self, details: ConfirmationSms) -> None:
        await asyncio.to_thread(send_confirmation_sms, details, self._config)

    async def drain(self) -> None:
        """Wait for in-flight notifications. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
