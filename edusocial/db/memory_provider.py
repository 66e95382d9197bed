import copy
import logging
import threading
import uuid
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Optional, Set

from edusocial.db.db_interface import DatabaseProvider
from edusocial.exceptions import ConflictIgnored

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class MemoryProvider(DatabaseProvider):
    """In-process implementation of the database provider for local development and tests.

    Enforces the same uniqueness constraints as the hosted schema and keeps
    the post counters in step the way the database triggers do.
    """

    def __init__(self, public_url_base: str = "http://localhost/storage/v1/object/public"):
        self.public_url_base = public_url_base.rstrip("/")
        self._lock = threading.RLock()
        self.exam_categories: List[Dict[str, Any]] = []
        self.posts: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.likes: Set[tuple] = set()
        self.comments: Dict[str, Dict[str, Any]] = {}
        self.notifications: Dict[str, Dict[str, Any]] = {}
        self.user_notifications: Dict[tuple, Dict[str, Any]] = {}
        self.user_roles: Dict[str, Dict[str, Any]] = {}
        self.blocked_users: Dict[str, Dict[str, Any]] = {}
        self.admin_settings: Dict[str, Any] = {}
        self.storage: Dict[str, Dict[str, bytes]] = {}

    def init_db(self) -> None:
        logger.info("Using in-memory database provider")

    # Categories -------------------------------------------------------------

    def get_exam_categories(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(self.exam_categories, key=lambda r: (r["main_category"], r["sub_category"]))
            return copy.deepcopy(rows)

    def _category_exists(self, main_category: str, sub_category: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            r["main_category"] == main_category and r["sub_category"] == sub_category and r["id"] != exclude_id
            for r in self.exam_categories
        )

    def insert_exam_category(self, main_category: str, sub_category: str, created_by: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            if self._category_exists(main_category, sub_category):
                raise ConflictIgnored(f"Kategori zaten mevcut: {main_category} / {sub_category}")
            row = {
                "id": str(uuid.uuid4()),
                "main_category": main_category,
                "sub_category": sub_category,
                "created_by": created_by,
                "created_at": _now(),
            }
            self.exam_categories.append(row)
            return dict(row)

    def update_exam_category(self, category_id: str, main_category: str, sub_category: str) -> Dict[str, Any]:
        with self._lock:
            if self._category_exists(main_category, sub_category, exclude_id=category_id):
                raise ConflictIgnored(f"Kategori zaten mevcut: {main_category} / {sub_category}")
            for row in self.exam_categories:
                if row["id"] == category_id:
                    row.update(main_category=main_category, sub_category=sub_category)
                    return dict(row)
            return None

    def delete_exam_category(self, category_id: str) -> None:
        with self._lock:
            self.exam_categories = [r for r in self.exam_categories if r["id"] != category_id]

    # Posts ------------------------------------------------------------------

    def get_posts(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(self.posts.values(), key=lambda r: r.get("created_at") or "", reverse=True)
            return copy.deepcopy(rows)

    def get_posts_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        return [row for row in self.get_posts() if row["user_id"] == user_id]

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.posts.get(post_id)
            return copy.deepcopy(row) if row else None

    def insert_post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            row = {
                "id": str(uuid.uuid4()),
                "content": "",
                "image_url": None,
                "video_url": None,
                "exam_categories": [],
                "post_type": "text",
                "is_correct_answer": False,
                "correct_comment_id": None,
                "likes_count": 0,
                "comments_count": 0,
                "shares_count": 0,
                "created_at": _now(),
            }
            row.update(copy.deepcopy(data))
            row["updated_at"] = row["created_at"]
            self.posts[row["id"]] = row
            return copy.deepcopy(row)

    def update_post(self, post_id: str, data: Dict[str, Any], owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.posts.get(post_id)
            if row is None or (owner_id is not None and row["user_id"] != owner_id):
                return None
            row.update(copy.deepcopy(data))
            row["updated_at"] = _now()
            return copy.deepcopy(row)

    # Profiles ---------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.profiles.get(user_id)
            return copy.deepcopy(row) if row else None

    def get_profiles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {k: self.profiles[uid].get(k) for k in ("user_id", "display_name", "avatar_url")}
                for uid in set(user_ids) if uid in self.profiles
            ]

    def get_all_profiles(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(self.profiles.values(), key=lambda r: r.get("created_at") or "", reverse=True)
            return copy.deepcopy(rows)

    def insert_profile(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if data["user_id"] in self.profiles:
                raise ConflictIgnored(f"Profile already exists: {data['user_id']}")
            row = {"display_name": None, "avatar_url": None, "bio": None, "exam_categories": {}, "created_at": _now()}
            row.update(copy.deepcopy(data))
            self.profiles[row["user_id"]] = row
            return copy.deepcopy(row)

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.profiles.get(user_id)
            if row is None:
                return None
            row.update(copy.deepcopy(data))
            return copy.deepcopy(row)

    # Likes ------------------------------------------------------------------

    def get_liked_post_ids(self, user_id: str, post_ids: Iterable[str]) -> Set[str]:
        with self._lock:
            wanted = set(post_ids)
            return {post_id for (uid, post_id) in self.likes if uid == user_id and post_id in wanted}

    def insert_like(self, user_id: str, post_id: str) -> None:
        with self._lock:
            if (user_id, post_id) in self.likes:
                raise ConflictIgnored(f"Post {post_id} already liked by {user_id}")
            self.likes.add((user_id, post_id))
            if post_id in self.posts:
                self.posts[post_id]["likes_count"] = (self.posts[post_id].get("likes_count") or 0) + 1

    def delete_like(self, user_id: str, post_id: str) -> None:
        with self._lock:
            if (user_id, post_id) not in self.likes:
                return
            self.likes.discard((user_id, post_id))
            if post_id in self.posts:
                self.posts[post_id]["likes_count"] = max(0, (self.posts[post_id].get("likes_count") or 0) - 1)

    # Comments ---------------------------------------------------------------

    def get_comments(self, post_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(
                (c for c in self.comments.values() if c["post_id"] == post_id),
                key=lambda r: r.get("created_at") or "",
            )
            result = []
            for row in rows:
                row = copy.deepcopy(row)
                profile = self.profiles.get(row["user_id"])
                row["profiles"] = (
                    {"display_name": profile.get("display_name"), "avatar_url": profile.get("avatar_url")}
                    if profile else None
                )
                result.append(row)
            return result

    def get_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.comments.get(comment_id)
            return copy.deepcopy(row) if row else None

    def insert_comment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            row = {
                "id": str(uuid.uuid4()),
                "attachment_url": None,
                "parent_id": None,
                "proposed_as_correct": False,
                "created_at": _now(),
            }
            row.update(copy.deepcopy(data))
            self.comments[row["id"]] = row
            post = self.posts.get(row["post_id"])
            if post is not None:
                post["comments_count"] = (post.get("comments_count") or 0) + 1
            return copy.deepcopy(row)

    def update_comment(self, comment_id: str, data: Dict[str, Any], author_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.comments.get(comment_id)
            if row is None or (author_id is not None and row["user_id"] != author_id):
                return None
            row.update(copy.deepcopy(data))
            return copy.deepcopy(row)

    # Notifications ----------------------------------------------------------

    def get_notifications_for_user(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [
                n for n in self.notifications.values()
                if n.get("target_users") is None or user_id in n["target_users"]
            ]
            rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
            return copy.deepcopy(rows[:limit])

    def get_user_notifications(self, user_id: str, notification_ids: Iterable[str]) -> List[Dict[str, Any]]:
        with self._lock:
            wanted = set(notification_ids)
            return [
                dict(row) for (uid, nid), row in self.user_notifications.items()
                if uid == user_id and nid in wanted
            ]

    def upsert_user_notifications(self, rows: List[Dict[str, Any]]) -> None:
        with self._lock:
            for row in rows:
                self.user_notifications[(row["user_id"], row["notification_id"])] = dict(row)

    def insert_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            row = {"id": str(uuid.uuid4()), "target_users": None, "created_at": _now()}
            row.update(copy.deepcopy(data))
            self.notifications[row["id"]] = row
            return copy.deepcopy(row)

    # Roles / moderation -----------------------------------------------------

    def get_user_roles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(self.user_roles[uid]) for uid in set(user_ids) if uid in self.user_roles]

    def has_role(self, user_id: str, role: str) -> bool:
        with self._lock:
            row = self.user_roles.get(user_id)
            return bool(row and row["role"] == role)

    def upsert_user_role(self, user_id: str, role: str) -> None:
        with self._lock:
            existing = self.user_roles.get(user_id)
            self.user_roles[user_id] = {
                "id": existing["id"] if existing else str(uuid.uuid4()),
                "user_id": user_id,
                "role": role,
                "created_at": existing["created_at"] if existing else _now(),
            }

    def get_blocked_users(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(self.blocked_users.values(), key=lambda r: r.get("blocked_at") or "", reverse=True)
            return copy.deepcopy(rows)

    def get_blocked_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.blocked_users.get(user_id)
            return dict(row) if row else None

    def insert_blocked_user(self, data: Dict[str, Any]) -> None:
        with self._lock:
            if data["user_id"] in self.blocked_users:
                raise ConflictIgnored(f"User already blocked: {data['user_id']}")
            row = {"id": str(uuid.uuid4()), "reason": None, "blocked_at": _now()}
            row.update(data)
            self.blocked_users[data["user_id"]] = row

    def delete_blocked_user(self, user_id: str) -> None:
        with self._lock:
            self.blocked_users.pop(user_id, None)

    # Admin settings ---------------------------------------------------------

    def get_admin_settings(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [{"key": k, "value": copy.deepcopy(v)} for k, v in self.admin_settings.items()]

    def upsert_admin_setting(self, key: str, value: Any) -> None:
        with self._lock:
            self.admin_settings[key] = copy.deepcopy(value)

    # Storage ----------------------------------------------------------------

    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        with self._lock:
            objects = self.storage.setdefault(bucket, {})
            if path in objects:
                raise ConflictIgnored(f"Object already exists: {bucket}/{path}")
            objects[path] = data
            return f"{self.public_url_base}/{bucket}/{path}"
