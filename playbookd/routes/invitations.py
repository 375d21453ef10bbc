# playbookd/routes/invitations.py
import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException

from playbookd import db as store
from playbookd.auth import get_current_user, get_user_by_email
from playbookd.authz import ensure_owner_or_admin, require_admin, require_role
from playbookd.roles import (
    ADMIN_ROLES,
    ATHLETE,
    COACH,
    COACH_ROLES,
    SUPERADMIN,
    dashboard_route_for,
    default_permissions,
    is_admin,
)
from playbookd.schemas.invitation import (
    AdminInvitationCreate,
    AthleteInvitationCreate,
    CoachInvitationCreate,
    InvitationStatusUpdate,
    ResendInvitation,
)
from playbookd.services import mailer
from playbookd.services.invitations import (
    ADMIN_INVITE,
    ATHLETE_INVITE,
    COACH_INVITE,
    SETTABLE_STATUSES,
    build_invitation,
    invitation_problem,
    public_view,
    send_invitation_email,
)
from playbookd.services.visibility import VisibilityError, ensure_coach_visibility
from playbookd.utils.audit import Actor, write_audit_event
from playbookd.utils.dates import as_utc
from playbookd.utils.logger import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])

UTC = timezone.utc


def _reject_existing_user(email: str) -> None:
    if get_user_by_email(email):
        raise HTTPException(status_code=400, detail="A user with this email already exists in the system")


def _store_and_send(invitation: dict, current_user: dict) -> dict:
    store.invitations.insert_one(invitation)
    sent, error = send_invitation_email(invitation)
    store.invitations.update_one(
        {"_id": invitation["_id"]},
        {"$set": {"emailSent": sent, "emailError": error}},
    )
    log_activity(
        user_id=current_user["uid"],
        action="invitation_create",
        metadata={"code": invitation["_id"], "type": invitation["type"], "email": invitation["email"]},
    )
    return {
        "success": True,
        "invitationId": invitation["_id"],
        "url": invitation["url"],
        "expiresAt": invitation["expiresAt"],
        "emailSent": sent,
        "emailError": error,
    }


# ---------- Create ----------
@router.post("/admin/invitations/coach")
def create_coach_invitation(body: CoachInvitationCreate, current_user: dict = Depends(require_admin)):
    _reject_existing_user(body.coachEmail)
    invitation = build_invitation(
        COACH_INVITE,
        role=COACH,
        email=body.coachEmail,
        name=body.coachName,
        sport=body.sport,
        custom_message=body.customMessage
        or f"Join PLAYBOOKD as a {body.sport} coach and help athletes reach their full potential!",
        created_by=current_user,
        expires_in_days=body.expiresInDays,
    )
    return _store_and_send(invitation, current_user)


@router.post("/admin/invitations/athlete")
def create_athlete_invitation(
    body: AthleteInvitationCreate,
    current_user: dict = Depends(require_role(*COACH_ROLES)),
):
    _reject_existing_user(body.athleteEmail)
    coach_id = body.coachId if (body.coachId and is_admin(current_user)) else current_user["uid"]
    invitation = build_invitation(
        ATHLETE_INVITE,
        role=ATHLETE,
        email=body.athleteEmail,
        name=body.athleteName,
        sport=body.sport,
        custom_message=body.customMessage,
        created_by=current_user,
        expires_in_days=body.expiresInDays,
        coachId=coach_id,
    )
    return _store_and_send(invitation, current_user)


@router.post("/admin/invitations/admin")
def create_admin_invitation(
    body: AdminInvitationCreate,
    current_user: dict = Depends(require_role(SUPERADMIN)),
):
    _reject_existing_user(body.email)
    invitation = build_invitation(
        ADMIN_INVITE,
        role=body.role,
        email=body.email,
        name=body.name,
        created_by=current_user,
        expires_in_days=body.expiresInDays,
    )
    return _store_and_send(invitation, current_user)


# ---------- Validate / redeem ----------
def _load_redeemable(code: str) -> dict:
    invitation = store.invitations.find_one({"_id": code})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    problem = invitation_problem(invitation)
    if problem:
        raise HTTPException(status_code=410, detail=problem)
    return invitation


@router.get("/invitations/{code}")
def get_invitation(code: str):
    return public_view(_load_redeemable(code))


@router.post("/invitations/{code}/accept")
def accept_invitation(code: str, current_user: dict = Depends(get_current_user)):
    invitation = _load_redeemable(code)
    if (current_user.get("email") or "").lower() != invitation["email"]:
        raise HTTPException(status_code=403, detail="This invitation was sent to a different email address")

    uid = current_user["uid"]
    now = datetime.now(UTC)
    # an admin accepting a coach or athlete invite keeps admin rights
    role = current_user["role"] if current_user["role"] in ADMIN_ROLES else invitation["role"]

    user_updates = {"role": role, "permissions": default_permissions(role), "updatedAt": now}
    if invitation["type"] == ATHLETE_INVITE and invitation.get("coachId"):
        user_updates.update({"coachId": invitation["coachId"], "assignedCoachId": invitation["coachId"]})
    if invitation.get("sport"):
        user_updates["sport"] = invitation["sport"]

    display_name = current_user.get("displayName") or invitation["name"]
    profile = None
    if invitation["type"] == COACH_INVITE:
        profile = {
            "uid": uid,
            "email": invitation["email"],
            "displayName": display_name,
            "sport": invitation.get("sport") or "",
            "isActive": True,
            "profileComplete": True,
            "status": "approved",
            "verified": True,
            "featured": False,
            "createdAt": now,
        }

    with store.transaction() as session:
        store.users.update_one({"_id": uid}, {"$set": user_updates}, session=session)
        if profile:
            for coll in (store.creator_profiles, store.coach_profiles):
                coll.update_one({"_id": uid}, {"$setOnInsert": profile}, upsert=True, session=session)
        store.invitations.update_one(
            {"_id": code},
            {
                "$inc": {"usedCount": 1},
                "$set": {"used": True, "usedBy": uid, "usedAt": now, "status": "accepted", "updatedAt": now},
            },
            session=session,
        )

    visibility = None
    if profile:
        canonical = store.creator_profiles.find_one({"_id": uid}) or profile
        canonical = {**canonical, "uid": uid}
        canonical.pop("_id", None)
        try:
            visibility = ensure_coach_visibility(canonical).to_dict()
        except VisibilityError as e:
            raise HTTPException(status_code=400, detail=str(e))

    write_audit_event(
        action="invitation_accepted", ok=True, actor=Actor.from_user(current_user),
        meta={"code": code, "type": invitation["type"], "role": role}, source="api",
    )
    log_activity(user_id=uid, action="invitation_accept", metadata={"code": code, "role": role})
    return {
        "success": True,
        "role": role,
        "dashboardRoute": dashboard_route_for(role),
        "visibility": visibility,
    }


# ---------- Status ----------
def _notify_creator(invitation: dict, status: str, reason: str = "") -> None:
    creator = store.users.find_one({"_id": invitation.get("createdBy")})
    if not creator or not creator.get("email"):
        return
    mailer.try_send_template(
        creator["email"],
        "invitation_status",
        inviter_name=creator.get("displayName") or "Coach",
        name=invitation.get("name") or "Unknown",
        email=invitation.get("email") or "",
        status=status,
        reason=reason or "",
    )


@router.post("/invitation-status")
def update_invitation_status(body: InvitationStatusUpdate):
    if body.status not in SETTABLE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Status must be one of: {', '.join(SETTABLE_STATUSES)}")
    invitation = store.invitations.find_one({"_id": body.invitationId})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invitation.get("status") == "accepted":
        raise HTTPException(status_code=400, detail="Invitation has already been accepted")

    store.invitations.update_one(
        {"_id": body.invitationId},
        {"$set": {"status": body.status, "statusReason": body.reason or "", "updatedAt": datetime.now(UTC)}},
    )
    _notify_creator(invitation, body.status, body.reason or "")
    return {"success": True, "message": f"Invitation status updated to {body.status}", "invitationId": body.invitationId}


@router.get("/invitation-status")
def expire_stale_invitations(current_user: dict = Depends(require_admin)):
    now = datetime.now(UTC)
    expired = []
    for invitation in store.invitations.find({"status": "pending"}):
        expires_at = as_utc(invitation.get("expiresAt"))
        if expires_at is None or expires_at > now:
            continue
        store.invitations.update_one(
            {"_id": invitation["_id"]},
            {"$set": {"status": "expired", "updatedAt": now}},
        )
        _notify_creator(invitation, "expired")
        expired.append(invitation["_id"])

    logger.info("stale invitations expired", extra={"count": len(expired)})
    return {"success": True, "processedCount": len(expired), "expired": expired}


@router.post("/coach/resend-invitation/{code}")
def resend_invitation(
    code: str,
    body: ResendInvitation = ResendInvitation(),
    current_user: dict = Depends(get_current_user),
):
    invitation = store.invitations.find_one({"_id": code})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    ensure_owner_or_admin(current_user, [invitation.get("createdBy")], detail="Only the sender can resend this invitation")
    if invitation.get("status") == "accepted" or invitation.get("used"):
        raise HTTPException(status_code=400, detail="Invitation has already been accepted")

    now = datetime.now(UTC)
    invitation.update({"status": "pending", "expiresAt": now + timedelta(days=body.expiresInDays)})
    sent, error = send_invitation_email(invitation)
    store.invitations.update_one(
        {"_id": code},
        {
            "$set": {
                "status": "pending",
                "expiresAt": invitation["expiresAt"],
                "emailSent": sent,
                "emailError": error,
                "lastResentAt": now,
                "updatedAt": now,
            },
            "$inc": {"resentCount": 1},
        },
    )
    log_activity(user_id=current_user["uid"], action="invitation_resend", metadata={"code": code})
    return {"success": True, "invitationId": code, "expiresAt": invitation["expiresAt"], "emailSent": sent, "emailError": error}
