from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set


class DatabaseProvider(ABC):
    """Abstract base class for backend providers.

    Rows are exchanged as plain dicts keyed by column name, mirroring the
    shape PostgREST returns.
    """

    @abstractmethod
    def init_db(self) -> None:
        """Verify connectivity / prepare the backing store."""
        pass

    # Categories -------------------------------------------------------------

    @abstractmethod
    def get_exam_categories(self) -> List[Dict[str, Any]]:
        """Retrieve all category rows ordered by main_category, then sub_category."""
        pass

    @abstractmethod
    def insert_exam_category(self, main_category: str, sub_category: str, created_by: Optional[str] = None) -> Dict[str, Any]:
        """Insert a category row. Raises ConflictIgnored on a duplicate pair."""
        pass

    @abstractmethod
    def update_exam_category(self, category_id: str, main_category: str, sub_category: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def delete_exam_category(self, category_id: str) -> None:
        pass

    # Posts ------------------------------------------------------------------

    @abstractmethod
    def get_posts(self) -> List[Dict[str, Any]]:
        """Retrieve all posts, newest first."""
        pass

    @abstractmethod
    def get_posts_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Retrieve one author's posts, newest first."""
        pass

    @abstractmethod
    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def insert_post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_post(self, post_id: str, data: Dict[str, Any], owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Update a post; when owner_id is given only a post owned by it is touched."""
        pass

    # Profiles ---------------------------------------------------------------

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_profiles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_all_profiles(self) -> List[Dict[str, Any]]:
        """Retrieve all profiles, newest first."""
        pass

    @abstractmethod
    def insert_profile(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_profile(self, user_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pass

    # Likes ------------------------------------------------------------------

    @abstractmethod
    def get_liked_post_ids(self, user_id: str, post_ids: Iterable[str]) -> Set[str]:
        pass

    @abstractmethod
    def insert_like(self, user_id: str, post_id: str) -> None:
        """Insert a like. Raises ConflictIgnored when (user_id, post_id) already exists."""
        pass

    @abstractmethod
    def delete_like(self, user_id: str, post_id: str) -> None:
        pass

    # Comments ---------------------------------------------------------------

    @abstractmethod
    def get_comments(self, post_id: str) -> List[Dict[str, Any]]:
        """Retrieve comments of a post, oldest first."""
        pass

    @abstractmethod
    def get_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def insert_comment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_comment(self, comment_id: str, data: Dict[str, Any], author_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        pass

    # Notifications ----------------------------------------------------------

    @abstractmethod
    def get_notifications_for_user(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        """Broadcast notifications plus those targeting user_id, newest first."""
        pass

    @abstractmethod
    def get_user_notifications(self, user_id: str, notification_ids: Iterable[str]) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def upsert_user_notifications(self, rows: List[Dict[str, Any]]) -> None:
        """Upsert read markers keyed by (user_id, notification_id)."""
        pass

    @abstractmethod
    def insert_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    # Roles / moderation -----------------------------------------------------

    @abstractmethod
    def get_user_roles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def has_role(self, user_id: str, role: str) -> bool:
        pass

    @abstractmethod
    def upsert_user_role(self, user_id: str, role: str) -> None:
        pass

    @abstractmethod
    def get_blocked_users(self) -> List[Dict[str, Any]]:
        """Retrieve blocked users, most recently blocked first."""
        pass

    @abstractmethod
    def get_blocked_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def insert_blocked_user(self, data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_blocked_user(self, user_id: str) -> None:
        pass

    # Admin settings ---------------------------------------------------------

    @abstractmethod
    def get_admin_settings(self) -> List[Dict[str, Any]]:
        """Retrieve key/value setting rows."""
        pass

    @abstractmethod
    def upsert_admin_setting(self, key: str, value: Any) -> None:
        pass

    # Storage ----------------------------------------------------------------

    @abstractmethod
    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload bytes and return the public URL of the stored object."""
        pass
