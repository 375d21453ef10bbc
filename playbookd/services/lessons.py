"""
Lesson validation and document shaping.

Validation collects every problem rather than stopping at the first, so the
editor can show them all at once.
"""
from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import urlparse

MAX_TITLE_LENGTH = 200
MIN_DURATION = 5
MAX_DURATION = 240
MAX_OBJECTIVES = 20
MAX_SECTIONS = 50
MAX_TAGS = 15
MAX_URL_LENGTH = 2048
VALID_LEVELS = ("beginner", "intermediate", "advanced")
VALID_VISIBILITY = ("public", "athletes_only", "specific_athletes")
VALID_STATUSES = ("draft", "published")

# fields a PUT may change; attribution (coachId/coachName/coachEmail) is fixed at create
UPDATABLE_FIELDS = (
    "title", "sport", "level", "duration", "objectives", "sections", "tags",
    "visibility", "content", "videoUrl", "thumbnailUrl", "allowedAthletes",
)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_string_list(data: dict, key: str, label: str, limit: int, errors: List[str]) -> None:
    if key not in data:
        return
    value = data[key]
    if not isinstance(value, list):
        errors.append(f"{label} must be an array")
    elif len(value) > limit:
        errors.append(f"Maximum {limit} {label.lower()} allowed")
    elif any(not isinstance(v, str) for v in value):
        errors.append(f"All {label.lower()} must be strings")


def _check_url(data: dict, key: str, label: str, errors: List[str]) -> None:
    value = data.get(key)
    if value in (None, ""):
        return
    if not isinstance(value, str):
        errors.append(f"{label} must be a string")
    elif len(value) > MAX_URL_LENGTH:
        errors.append(f"{label} must not exceed {MAX_URL_LENGTH} characters")
    elif not _is_http_url(value):
        errors.append(f"{label} must be a valid http(s) URL")


def validate_lesson(data: Dict[str, Any], partial: bool = False) -> List[str]:
    """
    Return a list of human-readable problems; empty means valid.

    With ``partial`` (updates), required fields are only checked when present.
    """
    errors: List[str] = []

    if "title" in data or not partial:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append("Title is required and must be a string")
        elif len(title.strip()) > MAX_TITLE_LENGTH:
            errors.append(f"Title must not exceed {MAX_TITLE_LENGTH} characters")

    if "sport" in data or not partial:
        sport = data.get("sport")
        if not isinstance(sport, str) or not sport.strip():
            errors.append("Sport is required and must be a string")

    if "level" in data or not partial:
        if data.get("level") not in VALID_LEVELS:
            errors.append(f"Level must be one of: {', '.join(VALID_LEVELS)}")

    duration = data.get("duration")
    if duration is not None and (
        isinstance(duration, bool) or not isinstance(duration, (int, float))
        or not MIN_DURATION <= duration <= MAX_DURATION
    ):
        errors.append(f"Duration must be a number between {MIN_DURATION} and {MAX_DURATION} minutes")

    _check_string_list(data, "objectives", "Objectives", MAX_OBJECTIVES, errors)
    _check_string_list(data, "tags", "Tags", MAX_TAGS, errors)

    if "sections" in data:
        if not isinstance(data["sections"], list):
            errors.append("Sections must be an array")
        elif len(data["sections"]) > MAX_SECTIONS:
            errors.append(f"Maximum {MAX_SECTIONS} sections allowed")

    if "visibility" in data and data["visibility"] not in VALID_VISIBILITY:
        errors.append(f"Visibility must be one of: {', '.join(VALID_VISIBILITY)}")
    if "status" in data and data["status"] not in VALID_STATUSES:
        errors.append(f"Status must be one of: {', '.join(VALID_STATUSES)}")

    _check_url(data, "videoUrl", "Video URL", errors)
    _check_url(data, "thumbnailUrl", "Thumbnail URL", errors)

    if "content" in data and data["content"] is not None and not isinstance(data["content"], str):
        errors.append("Content must be a string")

    return errors


def clean_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize the updatable fields present in ``data``."""
    out = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
    if "title" in out:
        out["title"] = out["title"].strip()
    if "sport" in out:
        out["sport"] = out["sport"].strip().lower()
    for key in ("videoUrl", "thumbnailUrl", "content"):
        if out.get(key) in (None, ""):
            out.pop(key, None)
    return out
