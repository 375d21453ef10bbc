"""
Keyword/regex moderation for athlete <-> coach messages.

Athletes may be minors, so any attempt to move the conversation off-platform
(phone numbers, email addresses, social handles) is flagged alongside the
usual abuse categories.
"""
import re
from typing import Dict, List

PROFANITY_WORDS = ("fuck", "shit", "bitch", "damn", "ass", "bastard")
THREAT_WORDS = ("kill", "hurt", "harm", "attack", "destroy", "murder", "weapon")
INAPPROPRIATE_WORDS = ("sexy", "hot", "beautiful", "attractive", "date", "relationship", "love you")
BULLYING_WORDS = ("stupid", "worthless", "loser", "idiot", "useless", "hate you")

PHONE_PATTERNS = (
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),              # 123-456-7890 / 1234567890
    re.compile(r"\(\d{3}\)\s?\d{3}[-.]?\d{4}"),                 # (123) 456-7890
    re.compile(r"\b\d{3}\s\d{3}\s\d{4}\b"),                     # 123 456 7890
    re.compile(r"\+\d{1,3}[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}\b"),  # international
)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
HANDLE_PATTERN = re.compile(r"@[A-Za-z0-9_]+")


def contains_phone_number(text: str) -> bool:
    return any(p.search(text or "") for p in PHONE_PATTERNS)


def contains_email(text: str) -> bool:
    return EMAIL_PATTERN.search(text or "") is not None


def contains_social_handle(text: str) -> bool:
    return HANDLE_PATTERN.search(text or "") is not None


def _word_pattern(words) -> "re.Pattern":
    alts = "|".join(re.escape(w) for w in words)
    return re.compile(rf"\b(?:{alts})(?:s|es|ed|ing|er|ers)?\b", re.IGNORECASE)


_PROFANITY = _word_pattern(PROFANITY_WORDS)
_THREATS = _word_pattern(THREAT_WORDS)
_INAPPROPRIATE = _word_pattern(INAPPROPRIATE_WORDS)
_BULLYING = _word_pattern(BULLYING_WORDS)


def moderate_content(text: str) -> Dict:
    """Return {flagged, reasons, score} for one message body."""
    text = text or ""
    reasons: List[str] = []
    score = {"toxicity": 0.0, "profanity": 0.0, "threat": 0.0, "inappropriate": 0.0}

    if _PROFANITY.search(text):
        reasons.append("profanity")
        score["profanity"] = 0.8
    if _THREATS.search(text):
        reasons.append("potential_threat")
        score["threat"] = 0.9
    if _INAPPROPRIATE.search(text):
        reasons.append("potentially_inappropriate")
        score["inappropriate"] = 0.7
    if _BULLYING.search(text):
        reasons.append("potential_bullying")
        score["toxicity"] = 0.8

    phone = contains_phone_number(text)
    email = contains_email(text)
    # an email address always contains an @handle; only count bare handles
    handle = contains_social_handle(EMAIL_PATTERN.sub("", text or ""))

    if phone:
        reasons.append("phone_number_exchange")
        score["threat"] = max(score["threat"], 0.9)
    if email:
        reasons.append("email_sharing")
        score["inappropriate"] = max(score["inappropriate"], 0.7)
    if handle:
        reasons.append("social_media_handle")
        score["inappropriate"] = max(score["inappropriate"], 0.6)
    if phone or email or handle:
        reasons.append("contact_info_sharing")

    return {"flagged": bool(reasons), "reasons": reasons, "score": score}


def calculate_severity(score: Dict[str, float]) -> str:
    top = max(score.values()) if score else 0.0
    if score.get("threat", 0) > 0.7:
        return "critical"
    if top > 0.8:
        return "high"
    if top > 0.5:
        return "medium"
    return "low"
