# playbookd/storage.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from minio import Minio

from playbookd import settings

UPLOAD_URL_TTL = timedelta(hours=1)
PLAYBACK_URL_TTL = timedelta(hours=2)

s3: Optional[Minio] = None


def storage_startup() -> Minio:
    """
    Create the MinIO/S3 client once and make sure the video bucket exists.
    Call from FastAPI startup, or lazily through ``get_client``.
    """
    global s3
    # Minio wants host:port (no scheme)
    endpoint = settings.S3_ENDPOINT.replace("http://", "").replace("https://", "").strip("/")
    s3 = Minio(
        endpoint=endpoint,
        access_key=settings.S3_ACCESS_KEY,
        secret_key=settings.S3_SECRET_KEY,
        secure=settings.S3_ENDPOINT.startswith("https"),
    )
    if not s3.bucket_exists(settings.S3_BUCKET_VIDEOS):
        s3.make_bucket(settings.S3_BUCKET_VIDEOS)
    return s3


def get_client() -> Minio:
    return s3 if s3 is not None else storage_startup()


def video_key(athlete_uid: str, upload_id: str, filename: str) -> str:
    safe = "".join(c if c.isalnum() or c in "._-" else "_" for c in filename) or "video"
    return f"submissions/{athlete_uid}/{upload_id}/{safe}"


def owns_key(athlete_uid: str, key: Optional[str]) -> bool:
    """True when key lives under the athlete's own upload prefix."""
    if not key or ".." in key:
        return False
    return key.startswith(f"submissions/{athlete_uid}/")


def presigned_upload_url(key: str) -> str:
    return get_client().presigned_put_object(settings.S3_BUCKET_VIDEOS, key, expires=UPLOAD_URL_TTL)


def presigned_playback_url(key: str) -> str:
    return get_client().presigned_get_object(settings.S3_BUCKET_VIDEOS, key, expires=PLAYBACK_URL_TTL)
