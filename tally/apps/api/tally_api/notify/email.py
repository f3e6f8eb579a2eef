"""Outbound email via the Resend HTTP API.

Delivery is best-effort: every send returns an EmailResult and never
raises, so invitation and reset flows succeed even when email is down.

Resend API Reference:
- Send Email: https://resend.com/docs/api-reference/emails/send-email
"""

import html
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from tally_api.config.env import get_resend_api_key, get_resend_from_email

logger = logging.getLogger(__name__)

APP_NAME = "Tally"
RESEND_API_URL = "https://api.resend.com/emails"


@dataclass
class EmailResult:
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


class ResendClient:
    """Resend API client.

    Environment Variables:
    - RESEND_API_KEY: API key (sending is skipped when unset)
    - RESEND_FROM_EMAIL: Sender address
    """

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else get_resend_api_key()
        self.from_email = from_email or get_resend_from_email()

    def send(self, to: str, subject: str, body_html: str) -> EmailResult:
        if not self.api_key:
            logger.info(
                "RESEND_API_KEY not set, skipping email send",
                extra={"event": "email.skipped", "to": to, "subject": subject},
            )
            return EmailResult(success=False, error="Email not configured")

        try:
            response = httpx.post(
                RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": self.from_email,
                    "to": [to],
                    "subject": subject,
                    "html": body_html,
                },
                timeout=10.0,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Email send rejected",
                extra={
                    "event": "email.failed",
                    "to": to,
                    "status_code": e.response.status_code,
                },
            )
            return EmailResult(success=False, error=f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(
                "Email send error",
                extra={"event": "email.failed", "to": to, "error_type": type(e).__name__},
            )
            return EmailResult(success=False, error="Failed to send email")

        email_id = response.json().get("id")
        logger.info("Email sent", extra={"event": "email.sent", "to": to, "email_id": email_id})
        return EmailResult(success=True, id=email_id)


def _layout(title: str, paragraphs: list[str], link: Optional[str] = None, link_label: str = "") -> str:
    parts = [f"<h1>{html.escape(title)}</h1>"]
    parts.extend(f"<p>{html.escape(p)}</p>" for p in paragraphs)
    if link:
        safe = html.escape(link, quote=True)
        parts.append(f'<p><a href="{safe}">{html.escape(link_label)}</a></p>')
        parts.append(f"<p>Or copy this link: {safe}</p>")
    return "<!DOCTYPE html><html><body>" + "".join(parts) + "</body></html>"


def send_project_invitation_email(
    to: str, inviter_name: str, project_name: str, invite_link: str, client: Optional[ResendClient] = None
) -> EmailResult:
    subject = f"You've been invited to join {project_name} on {APP_NAME}"
    body = _layout(
        "You're invited!",
        [f"{inviter_name} has invited you to collaborate on {project_name}.", "This invitation expires in 7 days."],
        invite_link,
        "Accept Invitation",
    )
    return (client or ResendClient()).send(to, subject, body)


def send_org_invitation_email(
    to: str,
    inviter_name: str,
    org_name: str,
    role: str,
    invite_link: str,
    client: Optional[ResendClient] = None,
) -> EmailResult:
    subject = f"Join {org_name} on {APP_NAME}"
    body = _layout(
        f"Join {org_name}",
        [f"{inviter_name} has invited you to join {org_name} as {role.lower()}.", "This invitation expires in 7 days."],
        invite_link,
        "Accept Invitation",
    )
    return (client or ResendClient()).send(to, subject, body)


def send_password_reset_email(to: str, reset_link: str, client: Optional[ResendClient] = None) -> EmailResult:
    subject = f"Reset your {APP_NAME} password"
    body = _layout(
        "Password reset",
        ["We received a request to reset your password.", "This link expires in 1 hour. If you didn't ask for it, ignore this email."],
        reset_link,
        "Reset Password",
    )
    return (client or ResendClient()).send(to, subject, body)


def send_welcome_email(to: str, name: Optional[str], client: Optional[ResendClient] = None) -> EmailResult:
    subject = f"Welcome to {APP_NAME}!"
    body = _layout(
        f"Welcome to {APP_NAME}!",
        [f"Hi {name or 'there'},", "You're all set to start tracking your time and managing your projects."],
    )
    return (client or ResendClient()).send(to, subject, body)
