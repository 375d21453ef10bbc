"""
Transactional email over SMTP.

Bodies are plain-text Jinja2 templates. ``send_email`` raises
``EmailDeliveryError``; callers that must not fail on email (invitations,
status notices) record the error on the document instead.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from jinja2 import DictLoader, Environment, StrictUndefined

from playbookd import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


TEMPLATES = {
    "coach_invitation": (
        "You're invited to coach {{ sport }} on PLAYBOOKD",
        """Hi {{ name }},

{{ inviter_name }} has invited you to join PLAYBOOKD as a {{ sport }} coach.
{% if custom_message %}
"{{ custom_message }}"
{% endif %}
Set up your coach profile here:
{{ url }}

This invitation expires on {{ expires_at }}.

The PLAYBOOKD team
""",
    ),
    "athlete_invitation": (
        "{{ inviter_name }} invited you to train on PLAYBOOKD",
        """Hi {{ name }},

{{ inviter_name }} would like to coach you in {{ sport }} on PLAYBOOKD.

Accept your invitation here:
{{ url }}

This invitation expires on {{ expires_at }}.

The PLAYBOOKD team
""",
    ),
    "admin_invitation": (
        "PLAYBOOKD admin access",
        """Hi {{ name }},

You have been invited to help run PLAYBOOKD as an {{ role }}.

Accept here: {{ url }}
This invitation expires on {{ expires_at }}.
""",
    ),
    "invitation_status": (
        "Invitation for {{ name }} was {{ status }}",
        """Hi {{ inviter_name }},

The invitation you sent to {{ name }} <{{ email }}> is now {{ status }}.
{% if reason %}
Reason: {{ reason }}
{% endif %}
You can send a new invitation from your dashboard.
""",
    ),
    "new_message": (
        "New message from {{ sender_name }}: {{ subject }}",
        """Hi {{ name }},

{{ sender_name }} sent you a message on PLAYBOOKD:

{{ body }}

Reply from your dashboard: {{ url }}
""",
    ),
}

_env = Environment(loader=DictLoader({}), undefined=StrictUndefined, keep_trailing_newline=True)


def render(template: str, **context) -> tuple[str, str]:
    """Return (subject, body) for one of ``TEMPLATES``."""
    subject_src, body_src = TEMPLATES[template]
    subject = _env.from_string(subject_src).render(**context).strip()
    body = _env.from_string(body_src).render(**context)
    return subject, body


def is_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_USER and settings.SMTP_PASSWORD)


def send_email(to_email: str, subject: str, body: str) -> None:
    if not is_configured():
        raise EmailDeliveryError("Email is not configured")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    msg.set_content(body)

    try:
        if settings.SMTP_PORT == 465:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=ssl.create_default_context()) as server:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                server.starttls(context=ssl.create_default_context())
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("email send failed", extra={"to": to_email, "error": str(e)})
        raise EmailDeliveryError(str(e)) from e

    logger.info("email sent", extra={"to": to_email, "subject": subject})


def send_template(to_email: str, template: str, **context) -> None:
    subject, body = render(template, **context)
    send_email(to_email, subject, body)


def try_send_template(to_email: str, template: str, **context) -> tuple[bool, str | None]:
    """
    Send and report instead of raising: returns (sent, error).
    """
    try:
        send_template(to_email, template, **context)
    except EmailDeliveryError as e:
        logger.warning("email not delivered", extra={"to": to_email, "template": template, "error": str(e)})
        return False, str(e)
    return True, None
