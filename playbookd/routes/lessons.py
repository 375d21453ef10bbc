# playbookd/routes/lessons.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pymongo import DESCENDING

from playbookd import db as store
from playbookd.auth import new_uid
from playbookd.authz import ensure_owner_or_admin, require_role
from playbookd.roles import COACH_ROLES
from playbookd.services.lessons import clean_fields, validate_lesson
from playbookd.utils.audit import Actor, write_audit_event
from playbookd.utils.dates import utcnow as _utcnow
from playbookd.utils.logger import log_activity

router = APIRouter(prefix="/coach/lessons", tags=["lessons"])

coach_only = require_role(*COACH_ROLES)


def _out(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _validation_failed(errors, user: dict, action: str) -> HTTPException:
    write_audit_event(
        action=action, ok=False, actor=Actor.from_user(user),
        meta={"validationErrors": errors}, source="api",
    )
    return HTTPException(status_code=400, detail={"error": "Validation failed", "details": errors})


def _load_owned(lesson_id: str, user: dict) -> dict:
    lesson = store.lessons.find_one({"_id": lesson_id})
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    ensure_owner_or_admin(user, [lesson.get("coachId")], detail="You can only manage your own lessons")
    return lesson


@router.post("", status_code=201)
def create_lesson(data: Dict[str, Any] = Body(...), current_user: dict = Depends(coach_only)):
    errors = validate_lesson(data)
    if errors:
        raise _validation_failed(errors, current_user, "lesson_create_validation_failed")

    now = _utcnow()
    status = data.get("status") or "published"
    lesson = {
        "_id": new_uid(),
        "type": "lesson",
        "level": data["level"],
        "duration": data.get("duration") or 60,
        "objectives": [],
        "sections": [],
        "tags": [],
        "visibility": "athletes_only",
        **clean_fields(data),
        # attribution is set once here and never rewritten
        "coachId": current_user["uid"],
        "coachName": current_user.get("displayName") or "Unknown Coach",
        "coachEmail": current_user.get("email") or "",
        "status": status,
        "viewCount": 0,
        "completionCount": 0,
        "createdAt": now,
        "updatedAt": now,
        "publishedAt": now if status == "published" else None,
    }

    with store.transaction() as session:
        store.lessons.insert_one(lesson, session=session)
        store.users.update_one(
            {"_id": current_user["uid"]},
            {"$inc": {"lessonCount": 1}, "$set": {"updatedAt": now}},
            session=session,
        )

    write_audit_event(
        action="lesson_created", ok=True, actor=Actor.from_user(current_user),
        meta={"lessonId": lesson["_id"], "title": lesson["title"], "sport": lesson["sport"]}, source="api",
    )
    log_activity(user_id=current_user["uid"], action="lesson_create", metadata={"lessonId": lesson["_id"]})
    return {"success": True, "lessonId": lesson["_id"], "status": status}


@router.get("")
def list_lessons(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(coach_only),
):
    query = {"coachId": current_user["uid"]}
    if status:
        query["status"] = status
    lessons = [_out(d) for d in store.lessons.find(query).sort("createdAt", DESCENDING).limit(limit)]
    return {"lessons": lessons, "total": len(lessons)}


@router.get("/{lesson_id}")
def get_lesson(lesson_id: str, current_user: dict = Depends(coach_only)):
    return _out(_load_owned(lesson_id, current_user))


@router.put("/{lesson_id}")
def update_lesson(lesson_id: str, data: Dict[str, Any] = Body(...), current_user: dict = Depends(coach_only)):
    _load_owned(lesson_id, current_user)
    errors = validate_lesson(data, partial=True)
    if errors:
        raise _validation_failed(errors, current_user, "lesson_update_validation_failed")

    changes = clean_fields(data)
    if not changes:
        raise HTTPException(status_code=400, detail="No lesson fields provided")
    changes["updatedAt"] = _utcnow()
    changes["lastModifiedBy"] = current_user["uid"]

    store.lessons.update_one({"_id": lesson_id}, {"$set": changes})
    log_activity(user_id=current_user["uid"], action="lesson_update", metadata={"lessonId": lesson_id})
    return {"success": True, "lesson": _out(store.lessons.find_one({"_id": lesson_id}))}


@router.delete("/{lesson_id}")
def delete_lesson(lesson_id: str, current_user: dict = Depends(coach_only)):
    lesson = _load_owned(lesson_id, current_user)
    store.lessons.delete_one({"_id": lesson_id})
    store.users.update_one({"_id": lesson["coachId"], "lessonCount": {"$gt": 0}}, {"$inc": {"lessonCount": -1}})
    write_audit_event(
        action="lesson_deleted", ok=True, actor=Actor.from_user(current_user),
        meta={"lessonId": lesson_id, "coachId": lesson["coachId"]}, source="api",
    )
    log_activity(user_id=current_user["uid"], action="lesson_delete", metadata={"lessonId": lesson_id})
    return {"success": True}


@router.post("/{lesson_id}/publish")
def publish_lesson(lesson_id: str, current_user: dict = Depends(coach_only)):
    _load_owned(lesson_id, current_user)
    now = _utcnow()
    store.lessons.update_one(
        {"_id": lesson_id},
        {"$set": {"status": "published", "publishedAt": now, "updatedAt": now}},
    )
    log_activity(user_id=current_user["uid"], action="lesson_publish", metadata={"lessonId": lesson_id})
    return {"success": True, "status": "published", "publishedAt": now}
