# playbookd/roles.py
"""
Role names, default permission sets, and role-based navigation.

Stored roles may still carry legacy names from older onboarding flows
("user" for athletes, "creator" for coaches). ``normalize_role`` maps them
onto the current set; predicates accept either form.
"""
from __future__ import annotations

from typing import Optional

GUEST = "guest"
USER = "user"
ATHLETE = "athlete"
CREATOR = "creator"
COACH = "coach"
ASSISTANT = "assistant"
ADMIN = "admin"
SUPERADMIN = "superadmin"

ALL_ROLES = (GUEST, USER, ATHLETE, CREATOR, COACH, ASSISTANT, ADMIN, SUPERADMIN)
ADMIN_ROLES = (ADMIN, SUPERADMIN)
COACH_ROLES = (COACH, CREATOR, ADMIN, SUPERADMIN)

LEGACY_ROLE_MAP = {
    USER: ATHLETE,
    CREATOR: COACH,
    "assistant_coach": ASSISTANT,
}

PERMISSION_FLAGS = (
    "canCreateContent",
    "canManageContent",
    "canAccessAnalytics",
    "canReceivePayments",
    "canSwitchRoles",
    "canManageUsers",
    "canViewCoachingRequests",
    "canRespondToRequests",
    "canManageSchedule",
    "canOrganizeContent",
    "canManageAthletes",
)

_COACH_PERMS = {
    "canCreateContent": True,
    "canManageContent": True,
    "canAccessAnalytics": True,
    "canReceivePayments": True,
    "canViewCoachingRequests": True,
    "canRespondToRequests": True,
    "canManageSchedule": True,
    "canOrganizeContent": True,
    "canManageAthletes": True,
}

_ASSISTANT_PERMS = {
    "canAccessAnalytics": True,   # read-only
    "canViewCoachingRequests": True,
    "canRespondToRequests": True,
    "canManageSchedule": True,
    "canOrganizeContent": True,
    "canManageAthletes": True,
}

_ROUTES = {
    SUPERADMIN: "/dashboard/overview",
    ADMIN: "/dashboard/overview",
    CREATOR: "/dashboard/overview",
    COACH: "/dashboard/coaching",
    ASSISTANT: "/dashboard/coaching",
    ATHLETE: "/dashboard",
    USER: "/dashboard",
}


def _role_of(user_or_role) -> str:
    if isinstance(user_or_role, dict):
        user_or_role = user_or_role.get("role")
    return (user_or_role or "").strip().lower()


def normalize_role(raw: Optional[str]) -> str:
    """Map a stored role (possibly legacy) onto the current role set."""
    role = _role_of(raw)
    if not role or role == GUEST:
        return ATHLETE
    role = LEGACY_ROLE_MAP.get(role, role)
    return role if role in ALL_ROLES else ATHLETE


def default_permissions(role: Optional[str]) -> dict:
    role = _role_of(role)
    perms = {flag: False for flag in PERMISSION_FLAGS}
    if role in (CREATOR, COACH):
        perms.update(_COACH_PERMS)
    elif role == ASSISTANT:
        perms.update(_ASSISTANT_PERMS)
    elif role in ADMIN_ROLES:
        perms = {flag: True for flag in PERMISSION_FLAGS}
    return perms


def is_admin(user_or_role) -> bool:
    return _role_of(user_or_role) in ADMIN_ROLES


def is_coach(user_or_role) -> bool:
    return _role_of(user_or_role) in (COACH, CREATOR)


def is_athlete(user_or_role) -> bool:
    return _role_of(user_or_role) in (ATHLETE, USER)


def can_create_content(user: Optional[dict]) -> bool:
    if not user:
        return False
    if _role_of(user) in (CREATOR, COACH, ADMIN, SUPERADMIN):
        return True
    return (user.get("permissions") or {}).get("canCreateContent") is True


def can_manage_coaching_requests(user: Optional[dict]) -> bool:
    if not user:
        return False
    if _role_of(user) in (CREATOR, COACH, ASSISTANT, ADMIN, SUPERADMIN):
        return True
    return (user.get("permissions") or {}).get("canViewCoachingRequests") is True


def can_switch_roles(user: Optional[dict]) -> bool:
    if not user or not is_admin(user):
        return False
    return (user.get("permissions") or {}).get("canSwitchRoles") is not False


def dashboard_route_for(role: Optional[str]) -> str:
    """Where a signed-in user lands; anonymous visitors go home."""
    role = _role_of(role)
    if not role:
        return "/"
    return _ROUTES.get(role, "/dashboard")
