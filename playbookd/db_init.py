from playbookd.db import db


def ensure_indexes():
    # auth
    db.users.create_index("email", unique=True, sparse=True)
    db.users.create_index("role")
    db.revoked_tokens.create_index("jti", unique=True)
    db.revoked_tokens.create_index("exp")

    # activity / audit
    db.activity_logs.create_index([("user_id", 1), ("timestamp", -1)])
    db.audit_events.create_index([("ts", 1)])
    db.audit_events.create_index([("action", 1)])

    # browse listing
    db.creators_index.create_index("slug", sparse=True)
    db.creators_index.create_index([("sport", 1), ("isActive", 1), ("status", 1)])
    db.slug_mappings.create_index("originalId")
    db.baked_profiles.create_index("targetEmail")

    # invitations
    db.invitations.create_index([("status", 1), ("expiresAt", 1)])
    db.invitations.create_index("email")

    # messaging
    db.messages.create_index([("coachId", 1), ("createdAt", -1)])
    db.messages.create_index([("athleteId", 1), ("createdAt", -1)])
    db.notifications.create_index([("userId", 1), ("read", 1)])

    # coach relationships
    db.coach_followers.create_index("athleteId")
    db.coach_followers.create_index("coachId")
    db.users.create_index("coachId", sparse=True)
    db.users.create_index("assignedCoachId", sparse=True)

    # submissions
    db.submissions.create_index([("athleteUid", 1), ("createdAt", -1)])
    db.submissions.create_index([("coachId", 1), ("status", 1)])
    db.reviews.create_index("submissionId")
    db.comments.create_index([("submissionId", 1), ("createdAt", 1)])

    # lessons
    db.lessons.create_index([("coachId", 1), ("createdAt", -1)])
