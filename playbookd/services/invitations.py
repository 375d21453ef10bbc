"""
Invitation codes, validity checks and emails.

An invitation is a one-time token (``maxUses`` defaults to 1) stored under
its code. It is unusable once declined, expired or out of uses.
"""
from __future__ import annotations

import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from playbookd import settings
from playbookd.services import mailer
from playbookd.utils.dates import as_utc

UTC = timezone.utc

COACH_INVITE = "coach_invitation"
ATHLETE_INVITE = "athlete_invitation"
ADMIN_INVITE = "admin_invitation"

_PREFIX = {COACH_INVITE: "coach", ATHLETE_INVITE: "athlete", ADMIN_INVITE: "admin"}
_ONBOARD_PATH = {COACH_INVITE: "coach-onboard", ATHLETE_INVITE: "athlete-onboard", ADMIN_INVITE: "admin-onboard"}

CLOSED_STATUSES = ("declined", "expired")
SETTABLE_STATUSES = ("declined", "expired")

# fields an unauthenticated invitee may see
PUBLIC_FIELDS = ("type", "role", "email", "name", "sport", "status", "expiresAt", "customMessage", "createdByName")


def new_code(kind: str) -> str:
    return f"{_PREFIX[kind]}-{int(time.time() * 1000)}-{secrets.token_hex(6)}"


def invitation_url(kind: str, code: str) -> str:
    return f"{settings.BASE_URL}/{_ONBOARD_PATH[kind]}/{code}"


def build_invitation(
    kind: str,
    *,
    role: str,
    email: str,
    name: str,
    created_by: dict,
    expires_in_days: int = 7,
    sport: str = "",
    custom_message: Optional[str] = None,
    max_uses: int = 1,
    **extra: Any,
) -> Dict[str, Any]:
    now = datetime.now(UTC)
    code = new_code(kind)
    return {
        "_id": code,
        "type": kind,
        "role": role,
        "email": email.strip().lower(),
        "name": name.strip(),
        "sport": (sport or "").strip().lower(),
        "customMessage": custom_message or "",
        "url": invitation_url(kind, code),
        "status": "pending",
        "maxUses": max_uses,
        "usedCount": 0,
        "used": False,
        "usedBy": None,
        "usedAt": None,
        "emailSent": False,
        "emailError": None,
        "createdBy": created_by["uid"],
        "createdByName": created_by.get("displayName") or created_by.get("email") or "",
        "createdAt": now,
        "updatedAt": now,
        "expiresAt": now + timedelta(days=expires_in_days),
        **extra,
    }


def invitation_problem(invitation: dict, now: Optional[datetime] = None) -> Optional[str]:
    """Why the invitation can no longer be redeemed, or None if it can."""
    now = now or datetime.now(UTC)
    if invitation.get("status") in CLOSED_STATUSES:
        return f"Invitation has been {invitation['status']}"
    expires_at = as_utc(invitation.get("expiresAt"))
    if expires_at is not None and expires_at <= now:
        return "Invitation has expired"
    if invitation.get("usedCount", 0) >= invitation.get("maxUses", 1):
        return "Invitation has already been used"
    return None


def public_view(invitation: dict) -> Dict[str, Any]:
    out = {k: invitation.get(k) for k in PUBLIC_FIELDS}
    out["code"] = invitation["_id"]
    return out


def send_invitation_email(invitation: dict) -> tuple[bool, Optional[str]]:
    """Send the email matching the invitation type; returns (sent, error)."""
    expires_at = as_utc(invitation["expiresAt"]).strftime("%B %d, %Y")
    ctx = {
        "name": invitation["name"],
        "inviter_name": invitation.get("createdByName") or "The PLAYBOOKD team",
        "sport": invitation.get("sport") or "",
        "url": invitation["url"],
        "expires_at": expires_at,
    }
    kind = invitation["type"]
    if kind == COACH_INVITE:
        ctx["custom_message"] = invitation.get("customMessage") or ""
    elif kind == ADMIN_INVITE:
        ctx["role"] = invitation["role"]
    return mailer.try_send_template(invitation["email"], kind, **ctx)
