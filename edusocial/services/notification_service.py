"""
Notification Service
Per-user view of broadcast and targeted notifications with read markers.
"""
import logging
from datetime import datetime, UTC
from typing import List

from edusocial.config import NOTIFICATIONS_LIMIT
from edusocial.exceptions import DataUnavailable
from edusocial.models.schemas import Notification
from edusocial.repositories import db_service

logger = logging.getLogger(__name__)


def list_for_user(user_id: str) -> List[Notification]:
    """
    Notifications visible to a user, newest first, with ``read_at`` merged in.

    A failure reading the read markers leaves every notification unread.

    Raises:
        DataUnavailable: If the notifications cannot be read
    """
    try:
        rows = db_service.get_notifications_for_user(user_id, NOTIFICATIONS_LIMIT)
    except Exception as e:
        logger.error(f"Error fetching notifications: {e}")
        raise DataUnavailable("Bildirimler yüklenemedi")

    try:
        markers = db_service.get_user_notifications(user_id, [row["id"] for row in rows])
    except Exception as e:
        logger.error(f"Error fetching user notifications: {e}")
        markers = []
    read_at = {m["notification_id"]: m.get("read_at") for m in markers}

    return [
        Notification(**{k: v for k, v in row.items() if k != "read_at"}, read_at=read_at.get(row["id"]))
        for row in rows
    ]


def unread_count(notifications: List[Notification]) -> int:
    return sum(1 for n in notifications if n.read_at is None)


def mark_as_read(user_id: str, notification_id: str) -> None:
    db_service.upsert_user_notifications([{
        "user_id": user_id,
        "notification_id": notification_id,
        "read_at": datetime.now(UTC).isoformat(),
    }])
    logger.debug(f"Notification {notification_id} read by {user_id}")


def mark_all_as_read(user_id: str) -> int:
    """Mark every currently unread notification as read; returns how many were marked."""
    unread = [n for n in list_for_user(user_id) if n.read_at is None]
    if not unread:
        return 0
    now = datetime.now(UTC).isoformat()
    db_service.upsert_user_notifications([
        {"user_id": user_id, "notification_id": n.id, "read_at": now} for n in unread
    ])
    logger.info(f"Marked {len(unread)} notifications read for {user_id}")
    return len(unread)
