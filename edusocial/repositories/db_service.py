import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from edusocial.db.db_factory import DatabaseFactory
from edusocial.utils.retry import retry_read

logger = logging.getLogger(__name__)


def _provider():
    """Get the configured database provider instance."""
    return DatabaseFactory.get_provider()


def init_db():
    """Initialize the configured database."""
    _provider().init_db()


# Categories ---------------------------------------------------------------

def get_exam_categories() -> List[Dict[str, Any]]:
    """Retrieve all category rows, retrying once on transient failure."""
    rows = retry_read(lambda: _provider().get_exam_categories(), "Loading exam categories")
    logger.debug(f"Retrieved {len(rows)} exam categories")
    return rows


def insert_exam_category(main_category: str, sub_category: str, created_by: Optional[str] = None) -> Dict[str, Any]:
    try:
        row = _provider().insert_exam_category(main_category, sub_category, created_by)
        logger.info(f"Exam category created: {main_category} / {sub_category}")
        return row
    except Exception as e:
        logger.error(f"Error creating exam category: {e}")
        raise


def update_exam_category(category_id: str, main_category: str, sub_category: str) -> Dict[str, Any]:
    try:
        row = _provider().update_exam_category(category_id, main_category, sub_category)
        logger.info(f"Exam category {category_id} updated")
        return row
    except Exception as e:
        logger.error(f"Error updating exam category {category_id}: {e}")
        raise


def delete_exam_category(category_id: str) -> None:
    try:
        _provider().delete_exam_category(category_id)
        logger.info(f"Exam category {category_id} deleted")
    except Exception as e:
        logger.error(f"Error deleting exam category {category_id}: {e}")
        raise


# Posts --------------------------------------------------------------------

def get_posts() -> List[Dict[str, Any]]:
    """Retrieve all posts newest first, retrying once on transient failure."""
    rows = retry_read(lambda: _provider().get_posts(), "Loading posts")
    logger.debug(f"Retrieved {len(rows)} posts")
    return rows


def get_posts_by_user(user_id: str) -> List[Dict[str, Any]]:
    """Retrieve one author's posts newest first, retrying once on transient failure."""
    rows = retry_read(lambda: _provider().get_posts_by_user(user_id), f"Loading posts of {user_id}")
    logger.debug(f"Retrieved {len(rows)} posts for {user_id}")
    return rows


def get_post(post_id: str) -> Optional[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_post(post_id), f"Loading post {post_id}")


def insert_post(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        row = _provider().insert_post(data)
        logger.debug(f"Post {row.get('id') if row else None} created by {data.get('user_id')}")
        return row
    except Exception as e:
        logger.error(f"Error creating post: {e}")
        raise


def update_post(post_id: str, data: Dict[str, Any], owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    try:
        return _provider().update_post(post_id, data, owner_id)
    except Exception as e:
        logger.error(f"Error updating post {post_id}: {e}")
        raise


# Profiles -----------------------------------------------------------------

def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_profile(user_id), f"Loading profile {user_id}")


def get_profiles(user_ids: Iterable[str]) -> List[Dict[str, Any]]:
    ids = list(user_ids)
    return retry_read(lambda: _provider().get_profiles(ids), "Loading profiles")


def get_all_profiles() -> List[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_all_profiles(), "Loading all profiles")


def insert_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return _provider().insert_profile(data)
    except Exception as e:
        logger.error(f"Error creating profile for {data.get('user_id')}: {e}")
        raise


def update_profile(user_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        row = _provider().update_profile(user_id, data)
        logger.debug(f"Profile updated for {user_id}: {sorted(data)}")
        return row
    except Exception as e:
        logger.error(f"Error updating profile {user_id}: {e}")
        raise


# Likes --------------------------------------------------------------------

def get_liked_post_ids(user_id: str, post_ids: Iterable[str]) -> Set[str]:
    ids = list(post_ids)
    return retry_read(lambda: _provider().get_liked_post_ids(user_id, ids), "Loading likes")


def insert_like(user_id: str, post_id: str) -> None:
    _provider().insert_like(user_id, post_id)
    logger.debug(f"Like added: user={user_id} post={post_id}")


def delete_like(user_id: str, post_id: str) -> None:
    _provider().delete_like(user_id, post_id)
    logger.debug(f"Like removed: user={user_id} post={post_id}")


# Comments -----------------------------------------------------------------

def get_comments(post_id: str) -> List[Dict[str, Any]]:
    rows = retry_read(lambda: _provider().get_comments(post_id), f"Loading comments of post {post_id}")
    logger.debug(f"Retrieved {len(rows)} comments for post {post_id}")
    return rows


def get_comment(comment_id: str) -> Optional[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_comment(comment_id), f"Loading comment {comment_id}")


def insert_comment(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return _provider().insert_comment(data)
    except Exception as e:
        logger.error(f"Error creating comment on post {data.get('post_id')}: {e}")
        raise


def update_comment(comment_id: str, data: Dict[str, Any], author_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    try:
        return _provider().update_comment(comment_id, data, author_id)
    except Exception as e:
        logger.error(f"Error updating comment {comment_id}: {e}")
        raise


# Notifications ------------------------------------------------------------

def get_notifications_for_user(user_id: str, limit: int) -> List[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_notifications_for_user(user_id, limit), "Loading notifications")


def get_user_notifications(user_id: str, notification_ids: Iterable[str]) -> List[Dict[str, Any]]:
    ids = list(notification_ids)
    return retry_read(lambda: _provider().get_user_notifications(user_id, ids), "Loading notification read markers")


def upsert_user_notifications(rows: List[Dict[str, Any]]) -> None:
    _provider().upsert_user_notifications(rows)


def insert_notification(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return _provider().insert_notification(data)
    except Exception as e:
        logger.error(f"Error creating notification: {e}")
        raise


# Roles / moderation -------------------------------------------------------

def get_user_roles(user_ids: Iterable[str]) -> List[Dict[str, Any]]:
    ids = list(user_ids)
    return retry_read(lambda: _provider().get_user_roles(ids), "Loading user roles")


def has_role(user_id: str, role: str) -> bool:
    return retry_read(lambda: _provider().has_role(user_id, role), f"Checking role {role} for {user_id}")


def upsert_user_role(user_id: str, role: str) -> None:
    _provider().upsert_user_role(user_id, role)


def get_blocked_users() -> List[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_blocked_users(), "Loading blocked users")


def get_blocked_user(user_id: str) -> Optional[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_blocked_user(user_id), f"Checking block status of {user_id}")


def insert_blocked_user(data: Dict[str, Any]) -> None:
    _provider().insert_blocked_user(data)


def delete_blocked_user(user_id: str) -> None:
    _provider().delete_blocked_user(user_id)


# Admin settings -----------------------------------------------------------

def get_admin_settings() -> List[Dict[str, Any]]:
    return retry_read(lambda: _provider().get_admin_settings(), "Loading admin settings")


def upsert_admin_setting(key: str, value: Any) -> None:
    _provider().upsert_admin_setting(key, value)


# Storage ------------------------------------------------------------------

def upload_file(bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
    try:
        return _provider().upload_file(bucket, path, data, content_type)
    except Exception as e:
        logger.error(f"Error uploading {bucket}/{path}: {e}")
        raise
