"""
Email notifier – delivers one-time codes via SMTP.

In development (no SMTP configured), emails are logged to the console
so you can see what *would* be sent without configuring a mail server.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from html import escape
from typing import Protocol

import aiosmtplib

from billing_auth.config import (
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    smtp_enabled,
)
from billing_auth.errors import DeliveryError

logger = logging.getLogger(__name__)


class TemplateKind(str, Enum):
    LOGIN_OTP = "login-otp"
    PASSWORD_RESET = "password-reset"


class Notifier(Protocol):
    async def send(
        self,
        to_address: str,
        kind: TemplateKind,
        *,
        name: str,
        code: str,
        expiry_minutes: int,
    ) -> None:
        """Deliver *code* to *to_address*. Raises DeliveryError on failure."""
        ...


_SUBJECTS = {
    TemplateKind.LOGIN_OTP: "Your login verification code",
    TemplateKind.PASSWORD_RESET: "Your password reset code",
}

_INTROS = {
    TemplateKind.LOGIN_OTP: "Use the code below to finish signing in.",
    TemplateKind.PASSWORD_RESET: "Use the code below to reset your password.",
}


def _build_plain_body(kind: TemplateKind, name: str, code: str, expiry_minutes: int) -> str:
    return (
        f"Hello {name},\n\n"
        f"{_INTROS[kind]}\n\n"
        f"    {code}\n\n"
        f"The code is valid for {expiry_minutes} minutes and can be used once.\n"
        "Never share it with anyone. If you did not request it, ignore this email.\n"
    )


def _build_html_body(kind: TemplateKind, name: str, code: str, expiry_minutes: int) -> str:
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <h2>Hello {escape(name)},</h2>
      <p>{_INTROS[kind]}</p>
      <p style="font-size:32px;letter-spacing:8px;font-weight:bold">{code}</p>
      <p>The code is valid for {expiry_minutes} minutes and can be used once.</p>
      <p style="margin-top:1em;font-size:0.9em;color:#888">
        Never share this code. If you did not request it, ignore this email.
      </p>
    </body>
    </html>
    """


class EmailNotifier:
    """Sends OTP emails over SMTP, or logs them when SMTP is disabled."""

    async def send(
        self,
        to_address: str,
        kind: TemplateKind,
        *,
        name: str,
        code: str,
        expiry_minutes: int,
    ) -> None:
        subject = _SUBJECTS[kind]

        # ── Console fallback (dev mode) ───────────────────────────────
        if not smtp_enabled():
            logger.info(
                "📧 [DEV] Would send email to %s:\n"
                "  Subject: %s\n"
                "  Code: %s (valid %d min)",
                to_address,
                subject,
                code,
                expiry_minutes,
            )
            return

        # ── Real SMTP send ────────────────────────────────────────────
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = SMTP_FROM_EMAIL
        msg["To"] = to_address
        msg.attach(MIMEText(_build_plain_body(kind, name, code, expiry_minutes), "plain"))
        msg.attach(MIMEText(_build_html_body(kind, name, code, expiry_minutes), "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=SMTP_HOST,
                port=SMTP_PORT,
                username=SMTP_USERNAME,
                password=SMTP_PASSWORD,
                start_tls=SMTP_USE_TLS,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.exception("Failed to send %s email to %s", kind.value, to_address)
            raise DeliveryError("Failed to send email") from exc

        logger.info("Sent %s email to %s", kind.value, to_address)
