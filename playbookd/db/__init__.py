# playbookd/db/__init__.py
from contextlib import contextmanager

from pymongo import MongoClient

from playbookd.settings import MONGO_URI, MONGO_DB, MONGO_TRANSACTIONS

client = MongoClient(MONGO_URI)
db = client[MONGO_DB]

# --- Collections (one source of truth) ---
users = db["users"]
revoked_tokens = db["revoked_tokens"]
activity_logs = db["activity_logs"]
audit_events = db["audit_events"]

# coach profile + its denormalized copies
creator_profiles = db["creator_profiles"]
coach_profiles = db["coach_profiles"]
creators_index = db["creators_index"]
creator_public = db["creatorPublic"]
baked_profiles = db["baked_profiles"]
slug_mappings = db["slug_mappings"]
system_cache = db["system_cache"]

invitations = db["invitations"]

messages = db["messages"]
notifications = db["notifications"]
moderation_alerts = db["moderation_alerts"]

coach_followers = db["coach_followers"]

submissions = db["submissions"]
reviews = db["reviews"]
comments = db["comments"]

lessons = db["lessons"]


@contextmanager
def transaction():
    """
    Yield a session with an open transaction, or None when transactions are off.

    Pass the yielded value as ``session=`` to every write inside the block:

        with transaction() as session:
            users.update_one(..., session=session)
            lessons.insert_one(..., session=session)
    """
    if not MONGO_TRANSACTIONS:
        yield None
        return

    with client.start_session() as session:
        with session.start_transaction():
            yield session
