import logging
import time
from typing import Optional

from edusocial.config import MAX_UPLOAD_BYTES, STORAGE_BUCKETS
from edusocial.exceptions import ValidationFailed
from edusocial.repositories import db_service

logger = logging.getLogger(__name__)


def build_object_path(user_id: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """Objects live under a per-user prefix: ``{user_id}/{epoch_ms}.{ext}``."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    ext = filename.rsplit(".", 1)[-1] if "." in filename else "bin"
    return f"{user_id}/{timestamp_ms}.{ext}"


def upload_file(user_id: str, bucket: str, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
    """
    Upload a file and return its public URL.

    Raises:
        ValidationFailed: Unknown bucket, missing user, or file over the size cap
    """
    if not user_id:
        raise ValidationFailed("Dosya yüklemek için giriş yapmanız gerekiyor")
    if bucket not in STORAGE_BUCKETS:
        raise ValidationFailed(f"Geçersiz depolama alanı: {bucket}")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationFailed(f"Dosya boyutu {MAX_UPLOAD_BYTES // (1024 * 1024)}MB'dan büyük olamaz")

    path = build_object_path(user_id, filename)
    url = db_service.upload_file(bucket, path, data, content_type)
    logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
    return url
