# playbookd/authz.py
from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Depends, HTTPException, status

from playbookd.auth import get_current_user
from playbookd.roles import ADMIN_ROLES


def require_role(*allowed_roles: str) -> Callable:
    """
    Usage:
        @router.post("/admin/thing")
        def admin_only(user: dict = Depends(require_role("admin", "superadmin"))):
            ...
    """
    allowed = set(r.strip().lower() for r in allowed_roles if r)

    def _dep(user: dict = Depends(get_current_user)) -> dict:
        role = (user.get("role") or "athlete").strip().lower()
        if role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return _dep


require_admin = require_role(*ADMIN_ROLES)


def ensure_owner_or_admin(user: dict, owner_ids: Iterable, detail: str = "Not authorized for this resource") -> None:
    """403 unless the caller is one of ``owner_ids`` or an admin."""
    if (user.get("role") or "").lower() in ADMIN_ROLES:
        return
    if user["uid"] in {o for o in owner_ids if o}:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
