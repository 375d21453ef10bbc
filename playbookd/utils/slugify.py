import logging
import re
from datetime import datetime, timezone
from typing import Optional

from playbookd import db as store

logger = logging.getLogger(__name__)


def generate_slug(display_name: str, uid: str) -> str:
    """
    Readable, collision-resistant slug: 'first-last-<6 id chars>' for two or
    more name parts, otherwise '<name>-<8 id chars>'.
    """
    label = (display_name or "").strip().lower()
    label = re.sub(r"[^a-z0-9\s-]", "", label)
    label = re.sub(r"\s+", "-", label)
    label = re.sub(r"-+", "-", label).strip("-")

    parts = [p for p in label.split("-") if p]
    uid = str(uid or "")
    if len(parts) >= 2:
        return f"{parts[0]}-{parts[-1]}-{uid[-6:]}"
    return f"{parts[0] if parts else 'coach'}-{uid[-8:]}"


def get_slug_for(uid: str) -> Optional[str]:
    mapping = store.slug_mappings.find_one({"originalId": uid})
    return mapping["slug"] if mapping else None


def create_slug_mapping(uid: str, display_name: str) -> str:
    """
    Ensure the coach has a slug; existing mappings are reused. A slug already
    owned by someone else gets a numeric suffix (-2, -3, ...).
    """
    existing = get_slug_for(uid)
    if existing:
        return existing

    base = generate_slug(display_name, uid)
    now = datetime.now(timezone.utc)
    slug = base
    attempt = 1
    while True:
        # never take over a slug owned by another coach
        store.slug_mappings.update_one(
            {"_id": slug},
            {"$setOnInsert": {
                "slug": slug, "originalId": uid, "displayName": display_name, "createdAt": now, "lastUsed": now,
            }},
            upsert=True,
        )
        owner = store.slug_mappings.find_one({"_id": slug})
        if owner and owner.get("originalId") == uid:
            break
        attempt += 1
        slug = f"{base}-{attempt}"
    store.creators_index.update_one({"_id": uid}, {"$set": {"slug": slug}})
    logger.info("slug mapping created", extra={"uid": uid, "slug": slug})
    return slug


def resolve_slug(slug_or_id: str) -> str:
    """
    Map a public slug back to the coach id; unknown values are treated as ids.
    """
    mapping = store.slug_mappings.find_one({"_id": slug_or_id})
    if not mapping:
        return slug_or_id
    store.slug_mappings.update_one(
        {"_id": slug_or_id},
        {"$set": {"lastUsed": datetime.now(timezone.utc)}},
    )
    return mapping["originalId"]
