# playbookd/routes/coach_profile.py
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from playbookd import db as store
from playbookd.auth import get_current_user, new_uid
from playbookd.authz import require_admin, require_role
from playbookd.roles import COACH, COACH_ROLES, default_permissions, is_admin
from playbookd.schemas.profile import BakedProfileCreate, CoachProfileUpdate
from playbookd.services.visibility import (
    apply_visibility,
    is_discoverable,
    sync_coach_to_public_profile,
    update_coach_count_cache,
)
from playbookd.utils.dates import utcnow as _utcnow
from playbookd.utils.logger import log_activity
from playbookd.utils.slugify import create_slug_mapping, resolve_slug

logger = logging.getLogger(__name__)

router = APIRouter(tags=["coach-profile"])

LIST_FIELDS = {"specialties", "achievements", "galleryPhotos"}

# fields copied from a baked profile when a coach adopts it
BAKED_FIELDS = (
    "displayName", "firstName", "lastName", "sport", "bio", "tagline", "specialties",
    "achievements", "credentials", "experience", "profileImageUrl", "heroImageUrl",
)


def _blank_nulls(updates: Dict[str, Any]) -> Dict[str, Any]:
    """null clears a field: lists become [], everything else ""."""
    out = {}
    for key, value in updates.items():
        if value is None:
            out[key] = [] if key in LIST_FIELDS else ""
        elif key == "socialLinks":
            out[key] = {k: v or "" for k, v in value.items()}
        else:
            out[key] = value
    return out


def _status_defaults(existing: Optional[dict]) -> Dict[str, Any]:
    # an admin suspension (isActive False / status other than approved) survives edits
    existing = existing or {}
    out: Dict[str, Any] = {"profileComplete": True}
    if existing.get("isActive") is None:
        out["isActive"] = True
    if not existing.get("status"):
        out["status"] = "approved"
    return out


def _write_profile(uid: str, profile_updates: Dict[str, Any], user_updates: Dict[str, Any]) -> None:
    """Canonical profile, its coach_profiles mirror and the user doc, in one transaction."""
    now = _utcnow()
    with store.transaction() as session:
        for coll in (store.creator_profiles, store.coach_profiles):
            coll.update_one(
                {"_id": uid},
                {"$set": profile_updates, "$setOnInsert": {"createdAt": now, "uid": uid}},
                upsert=True,
                session=session,
            )
        store.users.update_one({"_id": uid}, {"$set": user_updates}, session=session)


def _ensure_slug(uid: str, display_name: str) -> Optional[str]:
    try:
        return create_slug_mapping(uid, display_name)
    except PyMongoError as e:
        logger.warning("slug mapping failed", extra={"uid": uid, "error": str(e)})
        return None


def _public_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


# ---------- Save ----------
@router.post("/coach-profile/save")
def save_coach_profile(
    body: CoachProfileUpdate,
    current_user: dict = Depends(require_role(*COACH_ROLES)),
):
    updates = body.model_dump(exclude_unset=True)
    target = updates.pop("uid", None) or current_user["uid"]
    if not updates:
        raise HTTPException(status_code=400, detail="No profile fields provided")
    if target != current_user["uid"] and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="You can only edit your own profile")

    user_doc = store.users.find_one({"_id": target})
    if not user_doc:
        raise HTTPException(status_code=404, detail="User not found")
    existing = store.creator_profiles.find_one({"_id": target})

    updates = _blank_nulls(updates)
    display_name = (updates.get("displayName") or "").strip() or (existing or {}).get("displayName") \
        or user_doc.get("displayName") or ""
    now = _utcnow()

    profile_updates = {
        **updates,
        **_status_defaults(existing),
        "displayName": display_name,
        "email": user_doc.get("email", ""),
        "updatedAt": now,
    }
    user_updates: Dict[str, Any] = {"displayName": display_name, "updatedAt": now}
    if "profileImageUrl" in updates:
        user_updates["photoURL"] = updates["profileImageUrl"]
    if "sport" in updates:
        user_updates["sport"] = (updates["sport"] or "").strip().lower()

    _write_profile(target, profile_updates, user_updates)

    slug = _ensure_slug(target, display_name)
    if slug and not (existing or {}).get("slug"):
        store.creator_profiles.update_one({"_id": target}, {"$set": {"slug": slug}})

    # outside the transaction: a failed listing write leaves the profile saved
    sync = sync_coach_to_public_profile(target, profile_updates)
    log_activity(
        user_id=current_user["uid"],
        action="coach_profile_save",
        metadata={"target": target, "fields": sorted(updates), "synced": sync.success},
    )

    resp: Dict[str, Any] = {"success": True, "uid": target, "slug": slug, "sync": sync.to_dict()}
    if not sync.success:
        resp["warning"] = "Profile saved but the public listing could not be updated"
    return resp


# ---------- Public profile ----------
@router.get("/coach-profile/{slug}")
def get_coach_profile(slug: str):
    uid = resolve_slug(slug)
    profile = store.creator_profiles.find_one({"_id": uid})
    if not profile:
        raise HTTPException(status_code=404, detail="Coach not found")

    entry = store.creators_index.find_one({"_id": uid})
    lessons = [
        _public_doc(doc)
        for doc in store.lessons.find({"coachId": uid, "status": "published"})
        .sort("createdAt", DESCENDING)
        .limit(50)
    ]
    return {
        "profile": apply_visibility(uid, profile),
        "listing": _public_doc(entry),
        "visible": is_discoverable(entry),
        "lessons": lessons,
    }


# ---------- Browse ----------
@router.get("/coaches")
def browse_coaches(
    sport: Optional[str] = Query(None),
    limit: int = Query(24, ge=1, le=100),
):
    query: Dict[str, Any] = {"isActive": True, "profileComplete": True, "status": "approved"}
    if sport:
        query["sport"] = sport.strip().lower()

    cursor = (
        store.creators_index.find(query)
        .sort([("featured", DESCENDING), ("displayName", ASCENDING)])
        .limit(limit)
    )
    coaches = [_public_doc(doc) for doc in cursor]
    return {"coaches": coaches, "total": len(coaches)}


@router.get("/coaches/count")
def coach_count():
    cached = store.system_cache.find_one({"_id": "coach_count"})
    if not cached:
        count = update_coach_count_cache()
        return {"count": count, "cached": False}
    return {"count": cached.get("count", 0), "updatedAt": cached.get("updatedAt"), "cached": True}


# ---------- Baked profiles ----------
@router.post("/baked-profiles", status_code=201)
def create_baked_profile(body: BakedProfileCreate, current_user: dict = Depends(require_admin)):
    now = _utcnow()
    baked_id = new_uid()
    doc = body.model_dump()
    doc.update({
        "_id": baked_id,
        "targetEmail": str(body.targetEmail).lower(),
        "sport": body.sport.strip().lower(),
        "status": "pending",
        "createdBy": current_user["uid"],
        "createdAt": now,
        "updatedAt": now,
    })
    store.baked_profiles.insert_one(doc)
    log_activity(user_id=current_user["uid"], action="baked_profile_create",
                 metadata={"bakedId": baked_id, "targetEmail": doc["targetEmail"]})
    return {"id": baked_id, "targetEmail": doc["targetEmail"]}


@router.post("/baked-profiles/{baked_id}/adopt")
def adopt_baked_profile(baked_id: str, current_user: dict = Depends(get_current_user)):
    """The account the profile was prepared for adopts it and becomes a coach."""
    baked = store.baked_profiles.find_one({"_id": baked_id})
    if not baked:
        raise HTTPException(status_code=404, detail="Baked profile not found")
    if baked.get("targetEmail") != (current_user.get("email") or "").lower():
        raise HTTPException(status_code=403, detail="This profile was prepared for a different account")
    if baked.get("status") == "adopted":
        raise HTTPException(status_code=400, detail="Profile already adopted")

    uid = current_user["uid"]
    existing = store.creator_profiles.find_one({"_id": uid})
    now = _utcnow()
    fields = {k: baked[k] for k in BAKED_FIELDS if baked.get(k) is not None}
    profile_updates = {
        **_blank_nulls(fields),
        **_status_defaults(existing),
        "email": current_user["email"],
        "bakedProfileId": baked_id,
        "updatedAt": now,
    }
    # admins keep their role
    role = current_user["role"] if is_admin(current_user) else COACH
    user_updates = {
        "displayName": profile_updates["displayName"],
        "role": role,
        "permissions": default_permissions(role),
        "creatorStatus": "approved",
        "updatedAt": now,
    }
    if fields.get("profileImageUrl"):
        user_updates["photoURL"] = fields["profileImageUrl"]

    _write_profile(uid, profile_updates, user_updates)
    store.baked_profiles.update_one(
        {"_id": baked_id},
        {"$set": {"status": "adopted", "adoptedBy": uid, "adoptedAt": now, "updatedAt": now}},
    )

    slug = _ensure_slug(uid, profile_updates["displayName"])
    if slug:
        store.creator_profiles.update_one({"_id": uid}, {"$set": {"slug": slug}})
    sync = sync_coach_to_public_profile(uid)
    log_activity(user_id=uid, action="baked_profile_adopt", metadata={"bakedId": baked_id})
    return {"success": True, "uid": uid, "slug": slug, "sync": sync.to_dict()}
