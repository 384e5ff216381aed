"""Guest and operator email notifications over SMTP.

Sending is best-effort: a missing SMTP configuration or a delivery failure
is logged and reported as ``False``, never raised.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from hotel_booking.config import Settings, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    text: str
    html: str


class EmailNotifier:
    """Sends multipart (text + HTML) email through the configured SMTP relay."""

    def __init__(self, config: Settings) -> None:
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.username = config.smtp_username
        self.password = config.smtp_password
        self.use_tls = config.smtp_use_tls
        self.sender = config.email_from

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    async def send(self, message: OutgoingEmail) -> bool:
        if not self.is_configured:
            logger.warning("SMTP is not configured; not sending %r to %s", message.subject, message.to)
            return False
        if not message.to:
            logger.warning("Email %r has no recipient; skipping", message.subject)
            return False

        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email %r to %s", message.subject, message.to)
            return False

        logger.info("Email %r sent to %s", message.subject, message.to)
        return True

    def _send_sync(self, message: OutgoingEmail) -> None:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = self.sender
        mime["To"] = message.to
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [message.to], mime.as_string())


def get_notifier() -> EmailNotifier:
    """FastAPI dependency returning an SMTP-backed notifier."""
    return EmailNotifier(settings)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_WRAPPER = (
    '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
    "{body}"
    "<p>Best regards,<br>The Hotel team</p>"
    "</div>"
)


def booking_confirmation_email(
    *,
    to: str,
    guest_name: str,
    confirmation_code: str,
    room_type_name: str | None,
    room_number: str | None,
    check_in: str,
    check_out: str,
    adults: int,
    children: int,
    payment_label: str,
) -> OutgoingEmail:
    text = (
        f"Dear {guest_name},\n\n"
        f"Your reservation has been confirmed with code {confirmation_code}.\n\n"
        f"Check-in: {check_in}\n"
        f"Check-out: {check_out}\n"
        f"Guests: {adults} adults, {children} children\n"
        f"Payment: {payment_label}\n\n"
        "Thank you for choosing us."
    )
    details = [
        f"<p>Room type: {room_type_name or 'Not specified'}</p>",
        f"<p>Room: {room_number}</p>" if room_number else "",
        f"<p>Check-in: {check_in}</p>",
        f"<p>Check-out: {check_out}</p>",
        f"<p>Guests: {adults} adults, {children} children</p>",
        f"<p>Payment: {payment_label}</p>",
    ]
    html = _WRAPPER.format(
        body=(
            '<h1 style="color: #333;">Reservation Confirmation</h1>'
            f"<p>Dear {guest_name},</p>"
            f"<p>Your reservation has been confirmed with code <strong>{confirmation_code}</strong>.</p>"
            '<div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">'
            "<p><strong>Reservation details:</strong></p>" + "".join(details) + "</div>"
        )
    )
    return OutgoingEmail(to=to, subject="Reservation Confirmation", text=text, html=html)


def payment_confirmation_email(
    *,
    to: str,
    guest_name: str,
    confirmation_code: str,
    amount: str,
    currency: str,
) -> OutgoingEmail:
    text = (
        f"Dear {guest_name},\n\n"
        f"Your payment of {currency} {amount} for reservation {confirmation_code} "
        "has been processed successfully.\n\n"
        "Thank you for choosing us."
    )
    html = _WRAPPER.format(
        body=(
            '<h1 style="color: #333;">Payment Confirmation</h1>'
            f"<p>Dear {guest_name},</p>"
            f"<p>Your payment of <strong>{currency} {amount}</strong> for reservation "
            f"<strong>{confirmation_code}</strong> has been processed successfully.</p>"
        )
    )
    return OutgoingEmail(to=to, subject="Payment Confirmation", text=text, html=html)


def room_conflict_alert_email(
    *,
    to: str,
    reservation_id: str,
    confirmation_code: str,
    room_type_name: str | None,
    check_in: str,
    check_out: str,
    guest_email: str,
    payment_id: str,
) -> OutgoingEmail:
    text = (
        "A paid reservation could not be assigned a room and needs manual resolution.\n\n"
        f"Reservation: {reservation_id} ({confirmation_code})\n"
        f"Room type: {room_type_name or 'Unknown'}\n"
        f"Dates: {check_in} to {check_out}\n"
        f"Guest: {guest_email}\n"
        f"Payment: {payment_id}\n"
    )
    html = _WRAPPER.format(
        body=(
            '<h1 style="color: #b00;">Room assignment required</h1>'
            "<p>A paid reservation could not be assigned a room and needs manual resolution.</p>"
            f"<p>Reservation: {reservation_id} ({confirmation_code})</p>"
            f"<p>Room type: {room_type_name or 'Unknown'}</p>"
            f"<p>Dates: {check_in} to {check_out}</p>"
            f"<p>Guest: {guest_email}</p>"
            f"<p>Payment: {payment_id}</p>"
        )
    )
    return OutgoingEmail(
        to=to,
        subject=f"[Action required] Room conflict for reservation {confirmation_code}",
        text=text,
        html=html,
    )
