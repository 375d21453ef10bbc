# playbookd/routes/messages.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING

from playbookd import db as store
from playbookd import settings
from playbookd.auth import get_current_user, new_uid
from playbookd.roles import is_admin, is_athlete, is_coach
from playbookd.schemas.message import ContactCoach, ReplyMessage
from playbookd.services import mailer
from playbookd.utils.logger import log_activity
from playbookd.utils.moderation import calculate_severity, moderate_content

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])

UTC = timezone.utc


def _notify(user_id: str, kind: str, title: str, message: str, data: dict) -> None:
    store.notifications.insert_one({
        "_id": new_uid(),
        "userId": user_id,
        "type": kind,
        "title": title,
        "message": message,
        "data": data,
        "read": False,
        "createdAt": datetime.now(UTC),
    })


@router.post("/athlete/contact-coach")
def contact_coach(body: ContactCoach, current_user: dict = Depends(get_current_user)):
    if not is_athlete(current_user):
        raise HTTPException(status_code=403, detail="Only athletes can contact coaches")

    coach = store.users.find_one({"_id": body.coachId})
    if not coach:
        raise HTTPException(status_code=404, detail="Coach not found")
    if not is_coach(coach):
        raise HTTPException(status_code=403, detail="User is not a coach")

    moderation = moderate_content(f"{body.subject}\n{body.message}")
    severity = calculate_severity(moderation["score"]) if moderation["flagged"] else None
    # phone numbers move minors off-platform; everything else is delivered and reviewed
    blocked = "phone_number_exchange" in moderation["reasons"]
    now = datetime.now(UTC)
    message_id = f"msg_{new_uid()}"

    if moderation["flagged"]:
        store.moderation_alerts.insert_one({
            "_id": new_uid(),
            "messageId": message_id,
            "athleteId": current_user["uid"],
            "coachId": body.coachId,
            "reasons": moderation["reasons"],
            "score": moderation["score"],
            "severity": severity,
            "blocked": blocked,
            "status": "blocked" if blocked else "pending_review",
            "createdAt": now,
        })
        logger.warning(
            "message flagged by moderation",
            extra={"messageId": message_id, "severity": severity, "reasons": moderation["reasons"]},
        )
        if blocked:
            raise HTTPException(
                status_code=400,
                detail="Message blocked: sharing phone numbers is not allowed",
            )

    athlete_name = current_user.get("displayName") or current_user.get("email") or "Unknown Athlete"
    doc = {
        "_id": message_id,
        "athleteId": current_user["uid"],
        "athleteName": athlete_name,
        "athleteEmail": current_user.get("email") or "",
        "coachId": body.coachId,
        "coachName": coach.get("displayName") or coach.get("email") or "Unknown Coach",
        "coachEmail": coach.get("email") or "",
        "subject": body.subject,
        "message": body.message,
        "status": "unread",
        "createdAt": now,
        "readAt": None,
        "repliedAt": None,
    }
    if moderation["flagged"]:
        doc["moderation"] = {**moderation, "severity": severity}
    store.messages.insert_one(doc)

    _notify(
        body.coachId, "new_message", "New Message from Athlete",
        f'{athlete_name} sent you a message: "{body.subject}"',
        {"messageId": message_id, "athleteId": current_user["uid"], "athleteName": athlete_name},
    )
    if coach.get("email"):
        mailer.try_send_template(
            coach["email"], "new_message",
            name=doc["coachName"], sender_name=athlete_name, subject=body.subject,
            body=body.message, url=f"{settings.BASE_URL}/dashboard/coach/messages",
        )

    log_activity(user_id=current_user["uid"], action="contact_coach", metadata={"messageId": message_id})
    return {
        "success": True,
        "messageId": message_id,
        "message": "Message sent successfully",
        "flagged": moderation["flagged"],
    }


@router.post("/coach/reply-message")
def reply_message(body: ReplyMessage, current_user: dict = Depends(get_current_user)):
    msg = store.messages.find_one({"_id": body.messageId})
    if not msg:
        raise HTTPException(status_code=404, detail="Message not found")
    if msg.get("coachId") != current_user["uid"]:
        raise HTTPException(status_code=403, detail="You can only reply to your own messages")

    now = datetime.now(UTC)
    store.messages.update_one(
        {"_id": body.messageId},
        {"$set": {"status": "replied", "reply": body.reply, "repliedAt": now, "readAt": msg.get("readAt") or now}},
    )

    coach_name = current_user.get("displayName") or "Your coach"
    _notify(
        msg["athleteId"], "message_reply", "Your coach replied",
        f'{coach_name} replied to "{msg.get("subject", "")}"',
        {"messageId": body.messageId, "coachId": current_user["uid"]},
    )
    if msg.get("athleteEmail"):
        mailer.try_send_template(
            msg["athleteEmail"], "new_message",
            name=msg.get("athleteName") or "there", sender_name=coach_name,
            subject=f"Re: {msg.get('subject', '')}", body=body.reply,
            url=f"{settings.BASE_URL}/dashboard/messages",
        )

    log_activity(user_id=current_user["uid"], action="reply_message", metadata={"messageId": body.messageId})
    return {"success": True, "messageId": body.messageId, "repliedAt": now}


@router.get("/messages")
def list_messages(
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
):
    if is_coach(current_user) or is_admin(current_user):
        query = {"coachId": current_user["uid"]}
    else:
        query = {"athleteId": current_user["uid"]}
    if status:
        query["status"] = status

    items = []
    for doc in store.messages.find(query).sort("createdAt", DESCENDING).limit(limit):
        doc["id"] = doc.pop("_id")
        items.append(doc)
    return {"messages": items, "total": len(items)}
