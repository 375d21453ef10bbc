"""
One-off data repairs shared by the admin "fix" endpoints and the scripts in
``playbookd.scripts``. Every function takes ``dry_run`` and returns a report of
what it changed (or would change).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from playbookd import db as store
from playbookd.roles import ATHLETE, USER, default_permissions, is_coach, normalize_role
from playbookd.services.visibility import batch_sync_coaches
from playbookd.utils.audit import write_audit_event
from playbookd.utils.slugify import create_slug_mapping, generate_slug, get_slug_for

logger = logging.getLogger(__name__)

UTC = timezone.utc

_MISSING = [{"slug": {"$exists": False}}, {"slug": None}, {"slug": ""}]


def _finish(action: str, report: Dict[str, Any], dry_run: bool) -> Dict[str, Any]:
    report["dryRun"] = dry_run
    logger.info(action, extra={"counts": {k: v for k, v in report.items() if isinstance(v, (int, bool))}})
    if not dry_run:
        write_audit_event(action=action, ok=True, meta=report, source="maintenance")
    return report


def fix_coach_sports(dry_run: bool = False) -> Dict[str, Any]:
    """Lowercase/trim ``sport`` on profiles and listings; fill listings that lack one."""
    report = {"profiles": 0, "listings": 0, "copied": 0}

    profile_sports = {}
    for doc in store.creator_profiles.find({}, {"sport": 1}):
        raw = doc.get("sport")
        if not isinstance(raw, str):
            continue
        clean = raw.strip().lower()
        profile_sports[doc["_id"]] = clean
        if clean != raw:
            report["profiles"] += 1
            if not dry_run:
                store.creator_profiles.update_one({"_id": doc["_id"]}, {"$set": {"sport": clean}})

    for doc in store.creators_index.find({}, {"sport": 1}):
        raw = doc.get("sport")
        if isinstance(raw, str) and raw.strip():
            clean = raw.strip().lower()
            if clean == raw:
                continue
            report["listings"] += 1
        else:
            clean = profile_sports.get(doc["_id"])
            if not clean:
                continue
            report["copied"] += 1
        if not dry_run:
            store.creators_index.update_one({"_id": doc["_id"]}, {"$set": {"sport": clean}})

    return _finish("maintenance_fix_coach_sports", report, dry_run)


def fix_missing_created_at(dry_run: bool = False) -> Dict[str, Any]:
    """Stamp createdAt (from updatedAt when present) on docs that never got one."""
    now = datetime.now(UTC)
    report: Dict[str, Any] = {}
    for name, coll in (
        ("users", store.users),
        ("creator_profiles", store.creator_profiles),
        ("creators_index", store.creators_index),
    ):
        count = 0
        for doc in coll.find({"createdAt": {"$exists": False}}, {"updatedAt": 1, "lastUpdated": 1}):
            count += 1
            if not dry_run:
                stamp = doc.get("updatedAt") or doc.get("lastUpdated") or now
                coll.update_one({"_id": doc["_id"]}, {"$set": {"createdAt": stamp}})
        report[name] = count
    return _finish("maintenance_fix_missing_created_at", report, dry_run)


def migrate_athlete_slugs(dry_run: bool = False) -> Dict[str, Any]:
    report = {"scanned": 0, "updated": 0}
    query = {"role": {"$in": [ATHLETE, USER]}, "$or": _MISSING}
    for user in store.users.find(query, {"displayName": 1, "email": 1}):
        report["scanned"] += 1
        name = user.get("displayName") or (user.get("email") or "").split("@")[0]
        slug = generate_slug(name, str(user["_id"]))
        report["updated"] += 1
        if not dry_run:
            store.users.update_one({"_id": user["_id"]}, {"$set": {"slug": slug}})
    return _finish("maintenance_migrate_athlete_slugs", report, dry_run)


def backfill_coach_slugs(dry_run: bool = False) -> Dict[str, Any]:
    """Give every coach profile a slug mapping and mirror it onto the profile."""
    report = {"scanned": 0, "created": 0, "mirrored": 0}
    for profile in store.creator_profiles.find({}, {"displayName": 1, "slug": 1}):
        report["scanned"] += 1
        uid = str(profile["_id"])
        slug = get_slug_for(uid)
        if not slug:
            report["created"] += 1
            if dry_run:
                continue
            slug = create_slug_mapping(uid, profile.get("displayName") or "")
        if profile.get("slug") != slug:
            report["mirrored"] += 1
            if not dry_run:
                store.creator_profiles.update_one({"_id": profile["_id"]}, {"$set": {"slug": slug}})
    return _finish("maintenance_backfill_coach_slugs", report, dry_run)


def fix_athlete_coach_assignment(dry_run: bool = False) -> Dict[str, Any]:
    """
    Keep ``coachId`` and ``assignedCoachId`` in step on athletes; references to
    coaches that no longer exist are cleared.
    """
    report = {"scanned": 0, "copied": 0, "cleared": 0}
    query = {"role": {"$in": [ATHLETE, USER]}}
    for user in store.users.find(query, {"coachId": 1, "assignedCoachId": 1}):
        report["scanned"] += 1
        coach_id = user.get("coachId") or user.get("assignedCoachId")
        if not coach_id:
            continue

        coach = store.users.find_one({"_id": coach_id}, {"role": 1})
        if not coach or not is_coach(coach):
            report["cleared"] += 1
            update = {"$unset": {"coachId": "", "assignedCoachId": ""}}
        elif user.get("coachId") != coach_id or user.get("assignedCoachId") != coach_id:
            report["copied"] += 1
            update = {"$set": {"coachId": coach_id, "assignedCoachId": coach_id}}
        else:
            continue
        if not dry_run:
            store.users.update_one({"_id": user["_id"]}, update)
    return _finish("maintenance_fix_athlete_coach_assignment", report, dry_run)


def repair_roles(dry_run: bool = False) -> Dict[str, Any]:
    """Map legacy roles onto the current set and reset permissions to the role defaults."""
    report: Dict[str, Any] = {"scanned": 0, "updated": 0, "changes": []}
    for user in store.users.find({}, {"role": 1, "permissions": 1, "email": 1}):
        report["scanned"] += 1
        current = user.get("role")
        role = normalize_role(current)
        perms = default_permissions(role)
        if current == role and user.get("permissions") == perms:
            continue
        report["updated"] += 1
        report["changes"].append({"uid": str(user["_id"]), "email": user.get("email"), "from": current, "to": role})
        if not dry_run:
            store.users.update_one(
                {"_id": user["_id"]},
                {"$set": {"role": role, "permissions": perms, "updatedAt": datetime.now(UTC)}},
            )
    return _finish("maintenance_repair_roles", report, dry_run)


def resync_all_coaches() -> Dict[str, Any]:
    uids = [str(d["_id"]) for d in store.creator_profiles.find({}, {"_id": 1})]
    result = batch_sync_coaches(uids)
    report = {"total": len(uids), "synced": len(result["success"]), "failed": result["failed"]}
    return _finish("maintenance_resync_coaches", report, False)
