"""
Notification delivery for account lifecycle events.

Supports:
- SMTP (works with any email provider)
- Console logging (development fallback)

Account operations emit a ``NotificationEvent`` and move on. Within a request
the event waits for the transaction to commit; delivery then happens in a
background task and its failures never reach the caller.

IMPORTANT: Never log OTP values, link tokens or verification URLs.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import List, Optional, Protocol, Set

from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    CONFIRM_EMAIL = "confirm_email"
    FORGET_PASSWORD = "forget_password"


@dataclass
class NotificationEvent:
    """One message to deliver to an account holder."""
    kind: NotificationKind
    recipient: str
    otp_code: str
    subject: str
    display_name: str = ""
    link_token: Optional[str] = None
    verification_url: Optional[str] = None


class NotificationSink(Protocol):
    def emit(self, event: NotificationEvent) -> None:
        ...


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────

def _render_text(event: NotificationEvent) -> str:
    if event.kind == NotificationKind.FORGET_PASSWORD:
        if event.verification_url:
            return (
                "You requested to reset your password. "
                f"You can use the OTP code: {event.otp_code} or click the link: {event.verification_url}"
            )
        return f"You requested to reset your password. Use this OTP code: {event.otp_code}"

    if event.verification_url:
        return (
            "Please confirm your email. "
            f"You can use the OTP code: {event.otp_code} or click the link: {event.verification_url}"
        )
    return f"Please confirm your email using the OTP code: {event.otp_code}"


def _render_html(event: NotificationEvent) -> str:
    name = html.escape(event.display_name or "there")
    is_reset = event.kind == NotificationKind.FORGET_PASSWORD
    intro = (
        "You requested to reset your password. Use the verification code below:"
        if is_reset
        else "Thanks for signing up. Use the verification code below to confirm your email:"
    )

    link_block = ""
    if event.verification_url:
        label = "Reset Password" if is_reset else "Verify Email"
        url = html.escape(event.verification_url, quote=True)
        link_block = f"""
        <p style="font-size: 14px; color: #666; text-align: center;">Or use the button below:</p>
        <p style="text-align: center;">
            <a href="{url}" style="display: inline-block; background-color: #007BFF; color: #ffffff; text-decoration: none; padding: 10px 20px; border-radius: 5px; font-size: 16px;">{label}</a>
        </p>
"""

    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #007BFF; padding: 20px; border-radius: 8px 8px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 24px;">{html.escape(event.subject)}</h1>
    </div>

    <div style="background: #ffffff; padding: 30px; border: 1px solid #dddddd; border-top: none; border-radius: 0 0 8px 8px;">
        <p style="font-size: 16px;">Hi {name},</p>

        <p style="font-size: 16px;">{intro}</p>

        <div style="background: #f8f9fa; border: 2px dashed #007BFF; border-radius: 8px; padding: 20px; text-align: center; margin: 25px 0;">
            <p style="font-size: 36px; font-weight: bold; color: #007BFF; margin: 0; letter-spacing: 8px;">{html.escape(event.otp_code)}</p>
        </div>
{link_block}
        <p style="font-size: 14px; color: #666;">
            If you didn't request this, please ignore this email.
        </p>

        <hr style="border: none; border-top: 1px solid #dddddd; margin: 25px 0;">

        <p style="font-size: 12px; color: #999; text-align: center;">
            This is an automated message. Please do not reply to this email.
        </p>
    </div>
</body>
</html>
"""


# ─────────────────────────────────────────────────────────────
# SMTP sink
# ─────────────────────────────────────────────────────────────

def build_message(sender: str, recipient: str, subject: str, html_body: str, text_body: Optional[str]) -> MIMEMultipart:
    """Plain-text part first so clients that prefer it pick it up."""
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = recipient
    if text_body:
        message.attach(MIMEText(text_body, "plain"))
    message.attach(MIMEText(html_body, "html"))
    return message


class EmailNotificationSink:
    """Delivers notification events by email, in the background."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        # Strong references so pending deliveries are not garbage collected
        self._pending: Set[asyncio.Task] = set()

        if self.is_configured:
            logger.info(f"Email sink using SMTP {self.settings.smtp_host}:{self.settings.smtp_port}")
        else:
            logger.warning("SMTP not configured - outgoing mail is only logged")

    @property
    def is_configured(self) -> bool:
        s = self.settings
        return all((s.smtp_host, s.smtp_port, s.smtp_user, s.smtp_password))

    @property
    def sender(self) -> str:
        return f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"

    def emit(self, event: NotificationEvent) -> None:
        """Schedule delivery and return immediately."""
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.send_email(
                to_email=event.recipient,
                subject=event.subject,
                html_body=_render_html(event),
                text_body=_render_text(event),
            )
        except Exception as e:
            logger.error(f"Failed to deliver {event.kind.value} notification to {event.recipient}: {e}")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """
        Send one message without blocking the event loop.

        Returns:
            False when the SMTP exchange failed
        """
        if not self.is_configured:
            # Envelope only; the body carries the OTP
            logger.info(f"[EMAIL] to={to_email} subject={subject!r}")
            return True

        message = build_message(self.sender, to_email, subject, html_body, text_body)
        return await asyncio.to_thread(self._send_smtp, to_email, message)

    def _send_smtp(self, to_email: str, message: MIMEMultipart) -> bool:
        s = self.settings
        context = ssl.create_default_context()
        try:
            if s.smtp_use_tls:
                server = smtplib.SMTP(s.smtp_host, s.smtp_port)
            else:
                # Implicit TLS, usually port 465
                server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, context=context)
            with server:
                if s.smtp_use_tls:
                    server.starttls(context=context)
                server.login(s.smtp_user, s.smtp_password)
                server.sendmail(s.smtp_from_email, to_email, message.as_string())
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP login rejected - check SMTP_USER / SMTP_PASSWORD")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to_email} failed: {e}")
            return False

        logger.info(f"Email delivered to {to_email}")
        return True


# ─────────────────────────────────────────────────────────────
# Transactional hand-off
# ─────────────────────────────────────────────────────────────

class AfterCommitNotifier:
    """
    Queue events emitted during a unit of work and pass them to ``sink`` once
    the session's outermost transaction commits.

    A rollback of the outer transaction drops the queue, so no message goes out
    for a signup or reset that was never persisted. SAVEPOINT commits and
    rollbacks leave it alone.
    """

    def __init__(self, sink: NotificationSink, session: AsyncSession):
        self.sink = sink
        self.pending: List[NotificationEvent] = []
        sync_session = session.sync_session
        sa_event.listen(sync_session, "after_commit", self._flush)
        sa_event.listen(sync_session, "after_soft_rollback", self._discard)

    def emit(self, event: NotificationEvent) -> None:
        self.pending.append(event)

    def _flush(self, session) -> None:
        if session.in_nested_transaction():
            return
        ready, self.pending = self.pending, []
        for event in ready:
            try:
                self.sink.emit(event)
            except Exception:
                # Already committed; a failed hand-off is only logged
                logger.exception(f"Could not hand off {event.kind.value} notification to {event.recipient}")

    def _discard(self, session, previous_transaction) -> None:
        if previous_transaction.nested or not self.pending:
            return
        logger.info(f"Dropping {len(self.pending)} notification(s) of a rolled back transaction")
        self.pending.clear()


_email_sink: Optional[EmailNotificationSink] = None


def get_email_sink() -> EmailNotificationSink:
    """Get or create the email sink singleton."""
    global _email_sink
    if _email_sink is None:
        _email_sink = EmailNotificationSink()
    return _email_sink
