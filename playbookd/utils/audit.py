# playbookd/utils/audit.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from pymongo.errors import PyMongoError

from playbookd import db as store
from playbookd.utils.dates import utcnow as _utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Normalized identity for audit events."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    display_name: Optional[str] = None

    @staticmethod
    def from_user(user: Optional[dict]) -> "Actor":
        if not user:
            return Actor()
        uid = user.get("uid") or user.get("_id")
        return Actor(
            user_id=str(uid) if uid is not None else None,
            email=user.get("email"),
            role=user.get("role"),
            display_name=user.get("displayName"),
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role,
            "display_name": self.display_name,
        }


def write_audit_event(
    *,
    action: str,
    ok: bool,
    actor: Union[Actor, dict, None] = None,
    err: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    source: str = "api",
    severity: str = "low",
) -> None:
    """
    Write one normalized audit event. Best-effort (never raises).

    Event schema:
    {
      ts, action, ok, err, severity,
      actor: {user_id, email, role, display_name},
      meta: {...},
      source: "api"|"sync"|"maintenance"
    }
    """
    doc = {
        "ts": _utcnow(),
        "action": action,
        "ok": ok,
        "err": err,
        "severity": severity,
        "actor": (actor if isinstance(actor, Actor) else Actor.from_user(actor)).to_dict(),
        "meta": meta or {},
        "source": source,
    }
    try:
        store.audit_events.insert_one(doc)
    except PyMongoError as e:
        # Never block requests due to audit failure.
        logger.warning("audit write failed", extra={"action": action, "error": str(e)})
