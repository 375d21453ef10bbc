"""
Coach visibility sync.

A coach's canonical profile lives in ``creator_profiles``. The public
"Browse Coaches" listing reads a denormalized copy from ``creators_index``
(and the older ``creatorPublic``). Every profile edit is followed by a
best-effort write of the merged snapshot into the listing; nothing here runs
inside a transaction, so a failed listing write leaves the listing stale
until ``validate_and_fix_visibility`` is run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import PyMongoError

from playbookd import db as store
from playbookd.utils.audit import write_audit_event
from playbookd.utils.dates import utcnow as _utcnow
from playbookd.utils.slugify import create_slug_mapping

logger = logging.getLogger(__name__)

SOCIAL_FIELDS = ("instagram", "facebook", "twitter", "linkedin", "youtube", "tiktok", "website")

# visibility-map key -> public fields it controls
VISIBILITY_FIELDS = {
    "tagline": ("tagline",),
    "bio": ("bio",),
    "philosophy": ("philosophy",),
    "credentials": ("credentials",),
    "specialties": ("specialties",),
    "achievements": ("achievements",),
    "heroImage": ("heroImageUrl",),
    "headshot": ("headshotUrl",),
}

# the browse entry carries aliases for some of the same fields
LISTING_VISIBILITY_FIELDS = {
    **VISIBILITY_FIELDS,
    "bio": ("bio", "description"),
    "heroImage": ("heroImageUrl", "bannerUrl", "coverImageUrl"),
    "headshot": ("headshotUrl", "profileImageUrl", "photoURL"),
}

# listing fields that change on every write and never count as drift
_VOLATILE_FIELDS = {"lastUpdated", "updatedAt", "lastSyncedAt"}


class VisibilityError(Exception):
    """Raised when a visibility request is missing required coach data."""


@dataclass
class SyncResult:
    uid: str
    success: bool
    removed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# pure helpers
# ---------------------------------------------------------------------------
def is_discoverable(doc: Optional[dict]) -> bool:
    """A coach is listed only when active, complete and approved."""
    if not doc:
        return False
    return (
        doc.get("isActive") is True
        and doc.get("profileComplete") is True
        and doc.get("status") == "approved"
    )


def _first(*values: Any) -> str:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v
    return ""


def _clean_photos(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [v for v in values if isinstance(v, str) and v.strip()]


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def build_listing_entry(uid: str, merged: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the ``creators_index`` document for a discoverable coach.

    Older profiles stored the same thing under several names (headshotUrl vs
    profileImageUrl, actionPhotos vs galleryPhotos, socialLinks.* vs flat
    fields); the entry resolves each to one value and writes every alias.
    """
    display_name = _first(merged.get("displayName"), merged.get("name"))
    bio = _first(merged.get("bio"), merged.get("description"))
    profile_image = _first(merged.get("profileImageUrl"), merged.get("headshotUrl"), merged.get("photoURL"))
    banner = _first(merged.get("bannerUrl"), merged.get("heroImageUrl"), merged.get("coverImageUrl"))

    gallery = _clean_photos(merged.get("galleryPhotos"))
    if not gallery and not isinstance(merged.get("galleryPhotos"), list):
        gallery = _clean_photos(merged.get("actionPhotos"))

    nested = merged.get("socialLinks") or {}
    social = {name: _first(merged.get(name), nested.get(name)) for name in SOCIAL_FIELDS}

    entry: Dict[str, Any] = {
        "uid": uid,
        "displayName": display_name,
        "name": display_name,
        "firstName": merged.get("firstName") or "",
        "lastName": merged.get("lastName") or "",
        "email": merged.get("email") or "",
        "sport": (merged.get("sport") or "").strip().lower(),
        "location": merged.get("location") or "",
        "bio": bio,
        "description": bio,
        "tagline": merged.get("tagline") or "",
        "credentials": merged.get("credentials") or "",
        "philosophy": merged.get("philosophy") or "",
        "experience": merged.get("experience") or "",
        "specialties": _list(merged.get("specialties")),
        "achievements": _list(merged.get("achievements")),
        "profileImageUrl": profile_image,
        "headshotUrl": _first(merged.get("headshotUrl"), profile_image),
        "photoURL": profile_image,
        "bannerUrl": banner,
        "heroImageUrl": merged.get("heroImageUrl") or "",
        "coverImageUrl": _first(merged.get("coverImageUrl"), merged.get("heroImageUrl")),
        "showcasePhoto1": merged.get("showcasePhoto1") or "",
        "showcasePhoto2": merged.get("showcasePhoto2") or "",
        "galleryPhotos": gallery,
        "actionPhotos": _clean_photos(merged.get("actionPhotos")),
        "highlightVideo": merged.get("highlightVideo") or "",
        **social,
        "socialLinks": dict(social),
        "role": merged.get("role") or "coach",
        "verified": merged.get("verified", True) is not False,
        "isVerified": bool(merged.get("isVerified", False)),
        "featured": bool(merged.get("featured", False)),
        "isPlatformCoach": bool(merged.get("isPlatformCoach", False)),
        "isActive": True,
        "profileComplete": True,
        "status": "approved",
        "lastUpdated": _utcnow(),
    }
    visibility = merged.get("visibility") or {}
    for key, fields in LISTING_VISIBILITY_FIELDS.items():
        if visibility.get(key) is False:
            for f in fields:
                entry[f] = [] if isinstance(entry[f], list) else ""
    if merged.get("slug"):
        entry["slug"] = merged["slug"]
    return entry


def apply_visibility(uid: str, profile: Dict[str, Any]) -> Dict[str, Any]:
    """
    Public-profile shape: fields the coach marked hidden are blanked, and
    status flags keep their own defaults (pending, incomplete).
    """
    visibility = profile.get("visibility") or {}
    name = profile.get("displayName") or f"{profile.get('firstName', '')} {profile.get('lastName', '')}".strip()

    public: Dict[str, Any] = {
        "id": uid,
        "uid": uid,
        "name": name,
        "displayName": profile.get("displayName") or name,
        "firstName": profile.get("firstName") or "",
        "sport": (profile.get("sport") or "").strip().lower(),
        "experience": profile.get("experience") or "coach",
        "tagline": profile.get("tagline") or "",
        "bio": profile.get("bio") or "",
        "philosophy": profile.get("philosophy") or "",
        "credentials": profile.get("credentials") or "",
        "specialties": _list(profile.get("specialties")),
        "achievements": _list(profile.get("achievements")),
        "heroImageUrl": _first(profile.get("heroImageUrl"), profile.get("profileImageUrl")),
        "headshotUrl": _first(profile.get("headshotUrl"), profile.get("profileImageUrl")),
        "badges": _list(profile.get("badges")),
        "lessonCount": profile.get("lessonCount") or 0,
        "verified": profile.get("verified") is not False,
        "featured": bool(profile.get("featured", False)),
        "isActive": profile.get("isActive") is not False,
        "profileComplete": bool(profile.get("profileComplete", False)),
        "status": profile.get("status") or "pending",
        "syncSource": "automatic",
    }
    for key, fields in VISIBILITY_FIELDS.items():
        if visibility.get(key) is False:
            for f in fields:
                public[f] = [] if isinstance(public[f], list) else ""
    return public


# ---------------------------------------------------------------------------
# writes
# ---------------------------------------------------------------------------
def load_merged_profile(uid: str, partial: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Canonical profile with ``partial`` layered on top (partial wins)."""
    merged = dict(store.creator_profiles.find_one({"_id": uid}) or {})
    merged.pop("_id", None)
    if partial:
        merged.update(partial)
    merged["uid"] = uid
    if not merged.get("slug"):
        mapping = store.slug_mappings.find_one({"originalId": uid})
        if mapping:
            merged["slug"] = mapping["slug"]
    return merged


def remove_coach_from_browse(uid: str) -> bool:
    res = store.creators_index.delete_one({"_id": uid})
    if res.deleted_count:
        logger.info("coach removed from browse listing", extra={"uid": uid})
        write_audit_event(action="coach_removed_from_browse", ok=True, meta={"coachId": uid}, source="sync")
    return bool(res.deleted_count)


def sync_coach_to_browse(uid: str, partial: Optional[Dict[str, Any]] = None) -> SyncResult:
    """
    Merge ``partial`` over the canonical profile and write the result to
    ``creators_index``. Coaches that are not discoverable are removed.
    """
    merged = load_merged_profile(uid, partial)
    try:
        if not is_discoverable(merged):
            remove_coach_from_browse(uid)
            return SyncResult(uid=uid, success=True, removed=True)

        entry = build_listing_entry(uid, merged)
        store.creators_index.update_one(
            {"_id": uid},
            {"$set": entry, "$setOnInsert": {"createdAt": _utcnow()}},
            upsert=True,
        )
    except PyMongoError as e:
        logger.error("browse sync failed", extra={"uid": uid, "error": str(e)})
        write_audit_event(
            action="coach_profile_sync_failed", ok=False, err=str(e),
            meta={"coachId": uid, "target": "creators_index"}, source="sync", severity="high",
        )
        return SyncResult(uid=uid, success=False, error=str(e))

    logger.info("coach synced to browse listing", extra={"uid": uid})
    return SyncResult(uid=uid, success=True)


def sync_coach_to_public_profile(uid: str, partial: Optional[Dict[str, Any]] = None) -> SyncResult:
    """
    Fan a profile change out to both public copies: the visibility-filtered
    ``creatorPublic`` profile, then the ``creators_index`` browse entry.
    """
    profile = load_merged_profile(uid, partial)
    public = apply_visibility(uid, profile)
    now = _utcnow()
    public.update({"updatedAt": now, "lastSyncedAt": now})

    try:
        store.creator_public.update_one({"_id": uid}, {"$set": public}, upsert=True)
    except PyMongoError as e:
        logger.error("public profile sync failed", extra={"uid": uid, "error": str(e)})
        write_audit_event(
            action="coach_profile_sync_failed", ok=False, err=str(e),
            meta={"coachId": uid, "target": "creatorPublic"}, source="sync", severity="high",
        )
        return SyncResult(uid=uid, success=False, error=str(e))

    result = sync_coach_to_browse(uid, partial)
    if result.success:
        write_audit_event(
            action="coach_profile_synced_to_public", ok=True,
            meta={"coachId": uid, "coachName": public["displayName"], "removed": result.removed,
                  "collections": ["creators_index", "creatorPublic"]},
            source="sync",
        )
    refresh_coach_count_quietly()
    return result


def ensure_coach_visibility(data: Dict[str, Any]) -> SyncResult:
    """
    Force a coach into the browse listing (used after onboarding).

    Requires uid, email and displayName. Slug creation and the count cache
    are secondary: their failures are logged, not raised.
    """
    missing = [k for k in ("uid", "email", "displayName") if not data.get(k)]
    if missing:
        raise VisibilityError(f"Missing required fields: {', '.join(missing)}")

    uid = data["uid"]
    merged = {
        **data,
        "isActive": data.get("isActive", True),
        "profileComplete": data.get("profileComplete", True),
        "status": data.get("status") or "approved",
        "verified": data.get("verified", True),
        "featured": data.get("featured", False),
    }
    if not is_discoverable(merged):
        return sync_coach_to_browse(uid, merged)

    entry = build_listing_entry(uid, merged)
    try:
        store.creators_index.update_one(
            {"_id": uid},
            {"$set": entry, "$setOnInsert": {"createdAt": _utcnow()}},
            upsert=True,
        )
    except PyMongoError as e:
        logger.error("ensure visibility failed", extra={"uid": uid, "error": str(e)})
        write_audit_event(
            action="coach_profile_sync_failed", ok=False, err=str(e),
            meta={"coachId": uid, "target": "creators_index"}, source="sync", severity="high",
        )
        return SyncResult(uid=uid, success=False, error=str(e))

    try:
        create_slug_mapping(uid, merged["displayName"])
    except PyMongoError as e:
        logger.warning("slug mapping failed", extra={"uid": uid, "error": str(e)})

    refresh_coach_count_quietly()
    return SyncResult(uid=uid, success=True)


def verify_coach_visibility(uid: str) -> Dict[str, Any]:
    entry = store.creators_index.find_one({"_id": uid})
    if not entry:
        return {"uid": uid, "visible": False, "reason": "Not in creators_index", "entry": None}

    if entry.get("isActive") is not True:
        reason = "isActive is not true"
    elif entry.get("profileComplete") is not True:
        reason = "profileComplete is not true"
    elif entry.get("status") not in (None, "approved"):
        reason = f"status is '{entry.get('status')}'"
    else:
        reason = None

    entry.pop("_id", None)
    return {"uid": uid, "visible": reason is None, "reason": reason or "Visible", "entry": entry}


def _counts_as_active(entry: dict) -> bool:
    return (
        entry.get("profileComplete") is True
        and entry.get("status") in (None, "approved")
        and bool(entry.get("tagline") or entry.get("bio") or entry.get("specialties"))
    )


def update_coach_count_cache() -> int:
    active = list(store.creators_index.find({"isActive": True}))
    count = sum(1 for e in active if _counts_as_active(e))
    store.system_cache.update_one(
        {"_id": "coach_count"},
        {"$set": {"count": count, "activeCoaches": count, "totalCoaches": len(active), "updatedAt": _utcnow()}},
        upsert=True,
    )
    return count


def refresh_coach_count_quietly() -> None:
    try:
        update_coach_count_cache()
    except PyMongoError as e:
        logger.warning("coach count cache update failed", extra={"error": str(e)})


def batch_sync_coaches(uids: Iterable[str]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {"success": [], "failed": []}
    for uid in uids:
        result = sync_coach_to_browse(uid)
        out["success" if result.success else "failed"].append(uid)
    refresh_coach_count_quietly()
    return out


# ---------------------------------------------------------------------------
# reconciliation
# ---------------------------------------------------------------------------
def _drifted(expected: dict, actual: Optional[dict]) -> List[str]:
    if actual is None:
        return ["<missing>"]
    return sorted(
        k for k, v in expected.items()
        if k not in _VOLATILE_FIELDS and actual.get(k) != v
    )


def validate_and_fix_visibility(dry_run: bool = False) -> Dict[str, Any]:
    """
    Re-scan every coach profile and rewrite listing entries that drifted.

    Returns {scanned, fixed, removed, errors, details}; with ``dry_run`` the
    counts describe what would change and nothing is written.
    """
    report: Dict[str, Any] = {"scanned": 0, "fixed": 0, "removed": 0, "errors": 0, "details": []}
    seen = set()

    for profile in store.creator_profiles.find({}):
        uid = str(profile["_id"])
        seen.add(uid)
        report["scanned"] += 1

        merged = load_merged_profile(uid)
        actual = store.creators_index.find_one({"_id": uid})

        if not is_discoverable(merged):
            if actual is None:
                continue
            report["removed"] += 1
            report["details"].append({"uid": uid, "action": "remove"})
            if not dry_run:
                remove_coach_from_browse(uid)
            continue

        drift = _drifted(build_listing_entry(uid, merged), actual)
        if not drift:
            continue

        report["details"].append({"uid": uid, "action": "rewrite", "fields": drift})
        if dry_run:
            report["fixed"] += 1
            continue

        result = sync_coach_to_browse(uid)
        if result.success:
            report["fixed"] += 1
            write_audit_event(
                action="coach_visibility_fixed", ok=True,
                meta={"coachId": uid, "fields": drift}, source="sync",
            )
        else:
            report["errors"] += 1

    # listing entries with no canonical profile behind them
    for orphan in store.creators_index.find({"_id": {"$nin": list(seen)}}, {"_id": 1}):
        uid = str(orphan["_id"])
        report["removed"] += 1
        report["details"].append({"uid": uid, "action": "remove_orphan"})
        if not dry_run:
            remove_coach_from_browse(uid)

    if not dry_run:
        refresh_coach_count_quietly()
    logger.info(
        "visibility validation finished",
        extra={k: report[k] for k in ("scanned", "fixed", "removed", "errors")},
    )
    return report
