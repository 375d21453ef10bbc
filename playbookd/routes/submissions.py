# playbookd/routes/submissions.py
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ASCENDING, DESCENDING

from playbookd import db as store
from playbookd import storage
from playbookd.auth import get_current_user, new_uid
from playbookd.authz import ensure_owner_or_admin, require_role
from playbookd.roles import COACH_ROLES, is_admin, is_athlete, is_coach
from playbookd.schemas.submission import ReviewCreate, SubmissionCreate, SubmissionPatch, UploadUrlRequest
from playbookd.services.billing import can_submit_video
from playbookd.utils.dates import as_utc, utcnow as _utcnow
from playbookd.utils.logger import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/submissions", tags=["submissions"])
SLA = timedelta(hours=48)

UPLOADING, PENDING, CLAIMED, REVIEWED, COMPLETE = "uploading", "pending", "claimed", "reviewed", "complete"


def _out(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _participants(sub: dict) -> list:
    return [sub.get("athleteUid"), sub.get("coachId"), sub.get("assignedCoachId"), sub.get("claimedBy")]


def _load_accessible(submission_id: str, user: dict) -> dict:
    sub = store.submissions.find_one({"_id": submission_id})
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    ensure_owner_or_admin(user, _participants(sub), detail="You do not have access to this submission")
    return sub


def _require_athlete(user: dict) -> None:
    if not is_athlete(user):
        raise HTTPException(status_code=403, detail="Only athletes can submit videos")


def _check_video_key(athlete_uid: str, key: Optional[str]) -> None:
    if key and not storage.owns_key(athlete_uid, key):
        raise HTTPException(status_code=400, detail="videoStoragePath must come from /submissions/upload-url")


# ---------- Upload ----------
@router.post("/upload-url")
def create_upload_url(body: UploadUrlRequest, current_user: dict = Depends(get_current_user)):
    _require_athlete(current_user)
    upload_id = new_uid()
    key = storage.video_key(current_user["uid"], upload_id, body.videoFileName)
    url = storage.presigned_upload_url(key)
    return {"uploadId": upload_id, "uploadUrl": url, "videoStoragePath": key}


# ---------- Create / list ----------
@router.post("", status_code=201)
def create_submission(body: SubmissionCreate, current_user: dict = Depends(get_current_user)):
    _require_athlete(current_user)
    _check_video_key(current_user["uid"], body.videoStoragePath)
    if not can_submit_video(current_user):
        raise HTTPException(status_code=403, detail="Your plan does not include more video submissions this month")

    coach_id = current_user.get("coachId") or current_user.get("assignedCoachId")
    if coach_id:
        coach = store.users.find_one({"_id": coach_id})
        if not coach or not is_coach(coach):
            logger.warning("assigned coach missing or inactive", extra={"uid": current_user["uid"], "coachId": coach_id})

    now = _utcnow()
    submission_id = new_uid()
    doc = {
        "_id": submission_id,
        "athleteUid": current_user["uid"],
        "athleteName": current_user.get("displayName") or (current_user.get("email") or "").split("@")[0] or "Athlete",
        "teamId": body.teamId or current_user["uid"],
        "coachId": coach_id,
        "videoFileName": body.videoFileName,
        "videoFileSize": body.videoFileSize,
        "videoDuration": body.videoDuration,
        "videoStoragePath": body.videoStoragePath,
        "status": PENDING if body.videoStoragePath else UPLOADING,
        "athleteContext": body.athleteContext,
        "athleteGoals": body.athleteGoals,
        "specificQuestions": body.specificQuestions,
        "claimedBy": None,
        "claimedAt": None,
        "reviewId": None,
        "slaBreach": False,
        "viewCount": 0,
        "commentCount": 0,
        "createdAt": now,
        "updatedAt": now,
        "submittedAt": now,
        "slaDeadline": now + SLA,
    }
    store.submissions.insert_one(doc)
    log_activity(user_id=current_user["uid"], action="submission_create", metadata={"submissionId": submission_id})
    return {"submissionId": submission_id, "status": doc["status"], "slaDeadline": doc["slaDeadline"]}


@router.get("")
def list_submissions(
    athleteUid: Optional[str] = Query(None),
    teamId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
):
    filters = {}
    if athleteUid:
        filters["athleteUid"] = athleteUid
    if teamId:
        filters["teamId"] = teamId
    if status:
        filters["status"] = status

    if not is_admin(current_user):
        uid = current_user["uid"]
        scope = [{"athleteUid": uid}, {"coachId": uid}, {"claimedBy": uid}]
        if is_coach(current_user):
            # unassigned work sits in the shared queue
            scope.append({"coachId": None, "status": PENDING})
        filters = {"$and": [filters, {"$or": scope}]} if filters else {"$or": scope}

    docs = [_out(d) for d in store.submissions.find(filters).sort("createdAt", DESCENDING).limit(limit)]
    return {"submissions": docs, "total": len(docs), "hasMore": len(docs) == limit}


# ---------- Single ----------
@router.get("/{submission_id}")
def get_submission(submission_id: str, current_user: dict = Depends(get_current_user)):
    sub = _load_accessible(submission_id, current_user)

    review = None
    if sub.get("reviewId"):
        review = store.reviews.find_one({"_id": sub["reviewId"]})
    if review is None:
        review = store.reviews.find_one({"submissionId": submission_id, "status": "published"})

    comments = [
        _out(c) for c in store.comments.find({"submissionId": submission_id}).sort("createdAt", ASCENDING)
    ]
    return {"submission": _out(sub), "review": _out(review), "comments": comments}


@router.patch("/{submission_id}")
def update_submission(submission_id: str, body: SubmissionPatch, current_user: dict = Depends(get_current_user)):
    sub = _load_accessible(submission_id, current_user)
    changes = body.model_dump(exclude_unset=True)
    upload_complete = changes.pop("uploadComplete", None)
    if "videoStoragePath" in changes:
        _check_video_key(sub["athleteUid"], changes["videoStoragePath"])

    update = {**changes, "updatedAt": _utcnow()}
    if upload_complete and sub.get("status") == UPLOADING:
        if current_user["uid"] != sub["athleteUid"] and not is_admin(current_user):
            raise HTTPException(status_code=403, detail="Only the athlete can finish the upload")
        update["status"] = PENDING

    store.submissions.update_one({"_id": submission_id}, {"$set": update})
    return {"success": True, "submission": _out(store.submissions.find_one({"_id": submission_id}))}


@router.get("/{submission_id}/playback-url")
def playback_url(submission_id: str, current_user: dict = Depends(get_current_user)):
    sub = _load_accessible(submission_id, current_user)
    if not sub.get("videoStoragePath"):
        raise HTTPException(status_code=404, detail="Video has not been uploaded")
    if not storage.owns_key(sub["athleteUid"], sub["videoStoragePath"]):
        raise HTTPException(status_code=403, detail="Video does not belong to this submission")
    store.submissions.update_one({"_id": submission_id}, {"$inc": {"viewCount": 1}})
    return {"url": storage.presigned_playback_url(sub["videoStoragePath"])}


# ---------- Workflow ----------
@router.post("/{submission_id}/claim")
def claim_submission(submission_id: str, current_user: dict = Depends(require_role(*COACH_ROLES))):
    sub = store.submissions.find_one({"_id": submission_id})
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    if sub.get("status") != PENDING:
        raise HTTPException(status_code=400, detail=f"Only pending submissions can be claimed (status is {sub.get('status')})")
    if sub.get("coachId") and sub["coachId"] != current_user["uid"] and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Submission is assigned to another coach")

    now = _utcnow()
    res = store.submissions.update_one(
        {"_id": submission_id, "status": PENDING},
        {"$set": {"status": CLAIMED, "claimedBy": current_user["uid"], "claimedAt": now, "updatedAt": now}},
    )
    if not res.modified_count:
        raise HTTPException(status_code=400, detail="Submission was claimed by someone else")

    log_activity(user_id=current_user["uid"], action="submission_claim", metadata={"submissionId": submission_id})
    return {"success": True, "status": CLAIMED, "claimedBy": current_user["uid"], "claimedAt": now}


@router.post("/{submission_id}/review")
def review_submission(submission_id: str, body: ReviewCreate, current_user: dict = Depends(get_current_user)):
    sub = store.submissions.find_one({"_id": submission_id})
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    if sub.get("claimedBy") != current_user["uid"]:
        raise HTTPException(status_code=403, detail="Only the coach who claimed this submission can review it")
    if sub.get("status") != CLAIMED:
        raise HTTPException(status_code=400, detail="Submission is not awaiting review")

    now = _utcnow()
    review_id = new_uid()
    review = {
        "_id": review_id,
        "submissionId": submission_id,
        "athleteUid": sub["athleteUid"],
        "coachId": current_user["uid"],
        "coachName": current_user.get("displayName") or "",
        **body.model_dump(),
        "status": "published",
        "createdAt": now,
        "updatedAt": now,
        "publishedAt": now,
    }
    with store.transaction() as session:
        store.reviews.insert_one(review, session=session)
        store.submissions.update_one(
            {"_id": submission_id},
            {"$set": {
                "status": REVIEWED,
                "reviewId": review_id,
                "reviewedAt": now,
                "updatedAt": now,
                "slaBreach": now > (as_utc(sub.get("slaDeadline")) or now),
            }},
            session=session,
        )

    store.notifications.insert_one({
        "_id": new_uid(),
        "userId": sub["athleteUid"],
        "type": "submission_reviewed",
        "title": "Your video has been reviewed",
        "message": f"{review['coachName'] or 'Your coach'} reviewed {sub.get('videoFileName', 'your video')}",
        "data": {"submissionId": submission_id, "reviewId": review_id},
        "read": False,
        "createdAt": now,
    })
    log_activity(user_id=current_user["uid"], action="submission_review", metadata={"submissionId": submission_id})
    return {"success": True, "reviewId": review_id, "status": REVIEWED}


@router.post("/{submission_id}/complete")
def complete_submission(submission_id: str, current_user: dict = Depends(get_current_user)):
    sub = store.submissions.find_one({"_id": submission_id})
    if not sub:
        raise HTTPException(status_code=404, detail="Submission not found")
    ensure_owner_or_admin(current_user, [sub.get("athleteUid")], detail="Only the athlete can close this submission")
    if sub.get("status") != REVIEWED:
        raise HTTPException(status_code=400, detail="Only reviewed submissions can be completed")

    now = _utcnow()
    store.submissions.update_one(
        {"_id": submission_id},
        {"$set": {"status": COMPLETE, "completedAt": now, "updatedAt": now}},
    )
    return {"success": True, "status": COMPLETE}
