import logging
from datetime import datetime, timezone

from playbookd import db as store
from playbookd.settings import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def log_activity(user_id: str, action: str, metadata: dict | None = None):
    store.activity_logs.insert_one({
        "user_id": user_id,
        "action": action,
        "timestamp": datetime.now(timezone.utc),
        "metadata": metadata or {},
    })
