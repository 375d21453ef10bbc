# playbookd/routes/ai.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from playbookd.authz import require_role
from playbookd.roles import COACH_ROLES
from playbookd.schemas.ai import AssistRequest, GenerateLessonRequest
from playbookd.services import ai
from playbookd.utils.logger import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/assist")
def ai_assist(body: AssistRequest, current_user: dict = Depends(require_role(*COACH_ROLES))):
    try:
        text = ai.assist(body.text, body.action, body.context)
    except ai.AINotConfigured:
        raise HTTPException(status_code=503, detail="AI service not configured")
    except ai.AIClientError as e:
        logger.error("assist failed", extra={"uid": current_user["uid"], "error": str(e)})
        raise HTTPException(status_code=502, detail="Failed to process text with AI")

    log_activity(user_id=current_user["uid"], action="ai_assist",
                 metadata={"action": body.action, "context": body.context})
    return {"success": True, "text": text}


@router.post("/generate-lesson")
def ai_generate_lesson(body: GenerateLessonRequest, current_user: dict = Depends(require_role(*COACH_ROLES))):
    try:
        lesson, source = ai.generate_lesson(
            body.topic, body.sport, body.level, body.duration, body.detailedInstructions,
        )
    except ai.AIClientError as e:
        logger.error("lesson generation failed", extra={"uid": current_user["uid"], "error": str(e)})
        raise HTTPException(status_code=502, detail="Failed to generate lesson")

    log_activity(user_id=current_user["uid"], action="ai_generate_lesson",
                 metadata={"topic": body.topic, "sport": body.sport, "source": source})
    return {"success": True, "lesson": lesson, "source": source}
