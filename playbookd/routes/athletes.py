# playbookd/routes/athletes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from playbookd import db as store
from playbookd.auth import get_current_user
from playbookd.authz import require_role
from playbookd.roles import ATHLETE, COACH_ROLES, USER, is_admin, is_athlete, is_coach
from playbookd.schemas.athlete import FollowCoach
from playbookd.services.billing import can_add_coach, coach_limit, current_tier
from playbookd.utils.audit import Actor, write_audit_event
from playbookd.utils.dates import utcnow as _utcnow
from playbookd.utils.logger import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["athletes"])

ATHLETE_ROLES = [ATHLETE, USER]
# older docs used creatorUid for the owning coach
COACH_LINK_FIELDS = ("coachId", "assignedCoachId", "creatorUid")


def _athlete_out(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "displayName": doc.get("displayName") or doc.get("email") or "Unknown Athlete",
        "email": doc.get("email") or "",
        "photoURL": doc.get("photoURL"),
        "sport": doc.get("sport") or "",
        "tier": current_tier(doc),
        "coachId": doc.get("coachId") or doc.get("assignedCoachId") or doc.get("creatorUid"),
        "createdAt": doc.get("createdAt"),
        "lastLoginAt": doc.get("lastLoginAt"),
    }


def _coach_of(doc: dict) -> Optional[str]:
    for field in COACH_LINK_FIELDS:
        if doc.get(field):
            return doc[field]
    return None


def _follow_id(athlete_id: str, coach_id: str) -> str:
    return f"{athlete_id}_{coach_id}"


# ---------- Coach roster ----------
@router.get("/coach/athletes")
def list_coach_athletes(
    coachId: Optional[str] = Query(None),
    current_user: dict = Depends(require_role(*COACH_ROLES)),
):
    coach_id = current_user["uid"]
    if coachId and coachId != coach_id:
        if not is_admin(current_user):
            raise HTTPException(status_code=403, detail="You can only list your own athletes")
        coach_id = coachId

    query = {
        "role": {"$in": ATHLETE_ROLES},
        "$or": [{field: coach_id} for field in COACH_LINK_FIELDS],
    }
    athletes = [_athlete_out(doc) for doc in store.users.find(query).sort("displayName", ASCENDING)]
    return {"success": True, "athletes": athletes, "count": len(athletes)}


@router.get("/coach/athletes/{athlete_id}")
def get_coach_athlete(athlete_id: str, current_user: dict = Depends(require_role(*COACH_ROLES))):
    doc = store.users.find_one({"_id": athlete_id})
    if not doc or doc.get("role", ATHLETE) not in ATHLETE_ROLES:
        raise HTTPException(status_code=404, detail="Athlete not found")
    if _coach_of(doc) != current_user["uid"] and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="You do not have access to this athlete")

    stats = {
        "submissions": store.submissions.count_documents({"athleteUid": athlete_id}),
        "reviewedSubmissions": store.submissions.count_documents(
            {"athleteUid": athlete_id, "status": {"$in": ["reviewed", "complete"]}}
        ),
        "messages": store.messages.count_documents({"athleteId": athlete_id}),
        "coachesFollowed": store.coach_followers.count_documents({"athleteId": athlete_id}),
    }
    return {"success": True, "athlete": _athlete_out(doc), "stats": stats}


# ---------- Following ----------
def _coach_count(athlete: dict) -> int:
    """Assigned coach plus followed coaches, each coach counted once."""
    assigned = athlete.get("coachId") or athlete.get("assignedCoachId")
    followed = {f["coachId"] for f in store.coach_followers.find({"athleteId": athlete["uid"]})}
    followed.discard(assigned)
    return len(followed) + (1 if assigned else 0)


@router.post("/athlete/follow-coach")
def follow_coach(body: FollowCoach, current_user: dict = Depends(get_current_user)):
    if not is_athlete(current_user):
        raise HTTPException(status_code=403, detail="Only athletes can follow coaches")

    coach = store.users.find_one({"_id": body.coachId})
    if not coach or not is_coach(coach):
        raise HTTPException(status_code=404, detail="Coach not found")

    athlete_id = current_user["uid"]
    follow_id = _follow_id(athlete_id, body.coachId)
    coach_name = coach.get("displayName") or coach.get("email") or "Coach"
    if store.coach_followers.find_one({"_id": follow_id}):
        return {"success": True, "message": "Already following this coach", "alreadyFollowing": True}

    count = _coach_count(current_user)
    assigned = current_user.get("coachId") or current_user.get("assignedCoachId")
    if body.coachId != assigned and not can_add_coach(current_user, count):
        logger.info("follow blocked by coach limit", extra={"uid": athlete_id, "count": count})
        raise HTTPException(
            status_code=403,
            detail={
                "error": "You've reached your coach limit. Upgrade to follow more coaches.",
                "limitReached": True,
                "currentCount": count,
                "maxCoaches": coach_limit(current_user),
            },
        )

    now = _utcnow()
    try:
        with store.transaction() as session:
            store.coach_followers.insert_one({
                "_id": follow_id,
                "athleteId": athlete_id,
                "coachId": body.coachId,
                "athleteName": current_user.get("displayName") or current_user.get("email") or "Athlete",
                "coachName": coach_name,
                "notificationsEnabled": True,
                "followedAt": now,
            }, session=session)
            store.coach_profiles.update_one(
                {"_id": body.coachId},
                {"$inc": {"followerCount": 1}, "$set": {"updatedAt": now}},
                session=session,
            )
    except DuplicateKeyError:
        # a concurrent request got there first
        return {"success": True, "message": "Already following this coach", "alreadyFollowing": True}

    write_audit_event(
        action="coach_followed", ok=True, actor=Actor.from_user(current_user),
        meta={"coachId": body.coachId, "coachName": coach_name},
    )
    log_activity(user_id=athlete_id, action="follow_coach", metadata={"coachId": body.coachId})
    return {"success": True, "message": f"You are now following {coach_name}", "alreadyFollowing": False}


@router.delete("/athlete/follow-coach/{coach_id}")
def unfollow_coach(coach_id: str, current_user: dict = Depends(get_current_user)):
    athlete_id = current_user["uid"]
    result = store.coach_followers.delete_one({"_id": _follow_id(athlete_id, coach_id)})
    if not result.deleted_count:
        return {"success": True, "message": "Not following this coach", "wasFollowing": False}

    store.coach_profiles.update_one(
        {"_id": coach_id},
        {"$inc": {"followerCount": -1}, "$set": {"updatedAt": _utcnow()}},
    )
    write_audit_event(
        action="coach_unfollowed", ok=True, actor=Actor.from_user(current_user),
        meta={"coachId": coach_id},
    )
    log_activity(user_id=athlete_id, action="unfollow_coach", metadata={"coachId": coach_id})
    return {"success": True, "message": "Coach unfollowed", "wasFollowing": True}


@router.get("/athlete/follow-coach")
def follow_status(coachId: str = Query(..., min_length=1), current_user: dict = Depends(get_current_user)):
    following = store.coach_followers.find_one({"_id": _follow_id(current_user["uid"], coachId)}) is not None
    return {"success": True, "isFollowing": following}


@router.get("/athlete/following")
def list_following(current_user: dict = Depends(get_current_user)):
    follows = [
        {"coachId": f["coachId"], "coachName": f.get("coachName"), "followedAt": f.get("followedAt")}
        for f in store.coach_followers.find({"athleteId": current_user["uid"]}).sort("followedAt", DESCENDING)
    ]
    return {"success": True, "following": follows, "count": len(follows)}
