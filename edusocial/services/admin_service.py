"""
Admin Service
Handles role checks, moderation (blocking, roles), admin settings and
broadcast notifications.
"""
import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from edusocial.exceptions import DataUnavailable, Unauthorized, ValidationFailed
from edusocial.repositories import db_service

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
VALID_ROLES = ("admin", "moderator", "user")


def is_admin(user_id: Optional[str]) -> bool:
    """Check the admin role; a failed lookup counts as not admin."""
    if not user_id:
        return False
    try:
        return db_service.has_role(user_id, ADMIN_ROLE)
    except Exception as e:
        logger.error(f"Error checking admin role for {user_id}: {e}")
        return False


def require_admin(user_id: Optional[str]) -> None:
    """
    Raises:
        Unauthorized: If the user does not hold the admin role
    """
    if not is_admin(user_id):
        logger.warning(f"Admin action denied for user {user_id}")
        raise Unauthorized("Bu işlem için yönetici yetkisi gerekiyor")


# Settings -----------------------------------------------------------------

def get_settings() -> Dict[str, Any]:
    """
    Get admin settings as a key/value map.

    Raises:
        DataUnavailable: If the settings table cannot be read
    """
    try:
        rows = db_service.get_admin_settings()
    except Exception as e:
        logger.error(f"Error fetching settings: {e}")
        raise DataUnavailable("Ayarlar yüklenemedi")
    return {row["key"]: row["value"] for row in rows}


def get_setting(key: str, default: Any = None) -> Any:
    """Read a single setting, falling back to ``default`` when unreadable or unset."""
    try:
        return get_settings().get(key, default)
    except DataUnavailable:
        return default


def update_setting(admin_id: str, key: str, value: Any) -> None:
    require_admin(admin_id)
    if not key:
        raise ValidationFailed("Ayar anahtarı gerekli")
    db_service.upsert_admin_setting(key, value)
    logger.info(f"Admin setting '{key}' updated by {admin_id}")


def save_settings(admin_id: str, settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Save several settings, one independent write per field.

    A failing field does not stop the others; there is no multi-field
    transaction.

    Returns:
        Dict with the keys that were saved and the per-key error messages
    """
    require_admin(admin_id)
    saved: List[str] = []
    failed: Dict[str, str] = {}

    for key, value in settings.items():
        try:
            db_service.upsert_admin_setting(key, value)
            saved.append(key)
        except Exception as e:
            logger.error(f"Setting update error for '{key}': {e}")
            failed[key] = str(e)

    logger.info(f"Admin settings saved by {admin_id}: {len(saved)} ok, {len(failed)} failed")
    return {"saved": saved, "failed": failed}


# Moderation ---------------------------------------------------------------

def block_user(admin_id: str, user_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
    require_admin(admin_id)
    if user_id == admin_id:
        raise ValidationFailed("Kendinizi engelleyemezsiniz")
    db_service.insert_blocked_user({
        "user_id": user_id,
        "blocked_by": admin_id,
        "reason": reason,
        "blocked_at": datetime.now(UTC).isoformat(),
    })
    logger.info(f"User {user_id} blocked by {admin_id}. Reason: {reason}")
    return {"user_id": user_id, "blocked": True}


def unblock_user(admin_id: str, user_id: str) -> Dict[str, Any]:
    require_admin(admin_id)
    db_service.delete_blocked_user(user_id)
    logger.info(f"User {user_id} unblocked by {admin_id}")
    return {"user_id": user_id, "blocked": False}


def is_user_blocked(user_id: str) -> tuple:
    """
    Returns:
        Tuple of (is_blocked, reason)
    """
    row = db_service.get_blocked_user(user_id)
    if row is None:
        return False, None
    return True, row.get("reason")


def assign_role(admin_id: str, user_id: str, role: str) -> None:
    require_admin(admin_id)
    if role not in VALID_ROLES:
        raise ValidationFailed(f"Geçersiz rol: {role}")
    db_service.upsert_user_role(user_id, role)
    logger.info(f"Role '{role}' assigned to {user_id} by {admin_id}")


def get_blocked_users(admin_id: str) -> List[Dict[str, Any]]:
    """Blocked users, most recent first, each with an optional ``profiles`` summary."""
    require_admin(admin_id)
    try:
        blocked = db_service.get_blocked_users()
    except Exception as e:
        logger.error(f"Error fetching blocked users: {e}")
        raise DataUnavailable("Engellenen kullanıcılar yüklenemedi")

    if not blocked:
        return []

    try:
        profiles = db_service.get_profiles(b["user_id"] for b in blocked)
    except Exception as e:
        logger.warning(f"Blocked users listed without profiles: {e}")
        profiles = []
    by_user = {p["user_id"]: {"display_name": p.get("display_name")} for p in profiles}

    return [{**b, "profiles": by_user.get(b["user_id"])} for b in blocked]


def get_all_users(admin_id: str) -> List[Dict[str, Any]]:
    """All profiles with their roles; a roles failure degrades to empty role lists."""
    require_admin(admin_id)
    try:
        profiles = db_service.get_all_profiles()
    except Exception as e:
        logger.error(f"Error fetching users: {e}")
        raise DataUnavailable("Kullanıcılar yüklenemedi")

    if not profiles:
        return []

    try:
        roles = db_service.get_user_roles(p["user_id"] for p in profiles)
    except Exception as e:
        logger.error(f"Error fetching roles: {e}")
        return [{**profile, "user_roles": []} for profile in profiles]

    return [
        {**profile, "user_roles": [r for r in roles if r["user_id"] == profile["user_id"]]}
        for profile in profiles
    ]


def send_notification(admin_id: str, title: str, message: str, target_users: Optional[List[str]] = None) -> Dict[str, Any]:
    """Create a broadcast (target_users=None) or targeted notification."""
    require_admin(admin_id)
    title = (title or "").strip()
    message = (message or "").strip()
    if not title or not message:
        raise ValidationFailed("Lütfen tüm alanları doldurun")
    row = db_service.insert_notification({
        "title": title,
        "message": message,
        "target_users": target_users or None,
        "created_by": admin_id,
    })
    logger.info(f"Notification '{title}' sent by {admin_id} to {'all users' if not target_users else len(target_users)}")
    return row
