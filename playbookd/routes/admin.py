# playbookd/routes/admin.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from playbookd import db as store
from playbookd.authz import require_admin
from playbookd.services import maintenance
from playbookd.services.visibility import (
    VisibilityError,
    batch_sync_coaches,
    ensure_coach_visibility,
    sync_coach_to_public_profile,
    validate_and_fix_visibility,
    verify_coach_visibility,
)
from playbookd.utils.logger import log_activity

router = APIRouter(prefix="/admin", tags=["admin"])


class BatchSyncRequest(BaseModel):
    uids: List[str] = []


class EnsureVisibilityRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: Optional[str] = None
    email: Optional[str] = None
    displayName: Optional[str] = None


def _ran(user: dict, action: str, report: dict) -> dict:
    log_activity(user_id=user["uid"], action=action, metadata={"dryRun": report.get("dryRun", False)})
    return {"success": True, **report}


# ---------- Visibility ----------
@router.post("/coach-visibility/validate-and-fix")
def validate_and_fix(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    report = validate_and_fix_visibility(dry_run=dry_run)
    report["dryRun"] = dry_run
    return _ran(current_user, "admin_validate_and_fix_visibility", report)


@router.post("/coach-visibility/ensure")
def ensure_visibility(body: EnsureVisibilityRequest, current_user: dict = Depends(require_admin)):
    try:
        result = ensure_coach_visibility(body.model_dump(exclude_none=True))
    except VisibilityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    log_activity(user_id=current_user["uid"], action="admin_ensure_visibility", metadata={"coachId": body.uid})
    return {"success": result.success, "result": result.to_dict()}


@router.post("/coaches/batch-sync")
def batch_sync(body: Optional[BatchSyncRequest] = None, current_user: dict = Depends(require_admin)):
    uids = (body.uids if body else None) or [str(d["_id"]) for d in store.creator_profiles.find({}, {"_id": 1})]
    result = batch_sync_coaches(uids)
    log_activity(user_id=current_user["uid"], action="admin_batch_sync", metadata={"count": len(uids)})
    return {"success": not result["failed"], **result}


@router.post("/coaches/{uid}/sync")
def sync_one(uid: str, current_user: dict = Depends(require_admin)):
    if not store.creator_profiles.find_one({"_id": uid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Coach profile not found")
    result = sync_coach_to_public_profile(uid)
    log_activity(user_id=current_user["uid"], action="admin_sync_coach", metadata={"coachId": uid})
    return {"success": result.success, "result": result.to_dict()}


@router.get("/coaches/{uid}/visibility")
def coach_visibility(uid: str, current_user: dict = Depends(require_admin)):
    return verify_coach_visibility(uid)


# ---------- Data fixes ----------
@router.post("/fix-coach-sports")
def fix_coach_sports(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    return _ran(current_user, "admin_fix_coach_sports", maintenance.fix_coach_sports(dry_run))


@router.post("/fix-missing-created-at")
def fix_missing_created_at(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    return _ran(current_user, "admin_fix_missing_created_at", maintenance.fix_missing_created_at(dry_run))


@router.post("/migrate-athlete-slugs")
def migrate_athlete_slugs(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    return _ran(current_user, "admin_migrate_athlete_slugs", maintenance.migrate_athlete_slugs(dry_run))


@router.post("/fix-athlete-coach-assignment")
def fix_athlete_coach_assignment(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    return _ran(current_user, "admin_fix_athlete_coach_assignment", maintenance.fix_athlete_coach_assignment(dry_run))


@router.post("/repair-roles")
def repair_roles(dry_run: bool = Query(False), current_user: dict = Depends(require_admin)):
    return _ran(current_user, "admin_repair_roles", maintenance.repair_roles(dry_run))
