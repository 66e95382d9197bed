import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from supabase import create_client, Client, ClientOptions
from postgrest.exceptions import APIError
from edusocial.config import REQUEST_TIMEOUT_SECONDS
from edusocial.db.db_interface import DatabaseProvider
from edusocial.exceptions import ConflictIgnored

logger = logging.getLogger(__name__)

# Postgres error code for unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseProvider(DatabaseProvider):
    """Supabase implementation of the database provider."""

    def __init__(self, url: str, key: str):
        self.url = url
        self.key = key
        self.client: Client = create_client(
            url,
            key,
            options=ClientOptions(postgrest_client_timeout=REQUEST_TIMEOUT_SECONDS)
        )

    def init_db(self) -> None:
        """
        Check connectivity to Supabase.

        Note: Tables, RLS policies and storage buckets are managed through
        Supabase migrations; this method only verifies the connection.
        """
        logger.info("Connected to Supabase at %s", self.url)
        try:
            self.client.table('exam_categories').select('id').limit(1).execute()
            logger.info("Successfully connected to Supabase table 'exam_categories'")
        except Exception as e:
            logger.error(f"Failed to connect to Supabase: {e}")
            logger.warning("You may need to create the 'exam_categories' table in your Supabase dashboard")

    @staticmethod
    def _first(response) -> Optional[Dict[str, Any]]:
        data = response.data if response is not None else None
        return data[0] if data else None

    # Categories -------------------------------------------------------------

    def get_exam_categories(self) -> List[Dict[str, Any]]:
        response = self.client.table('exam_categories') \
            .select('*') \
            .order('main_category') \
            .order('sub_category') \
            .execute()
        return response.data or []

    def insert_exam_category(self, main_category: str, sub_category: str, created_by: Optional[str] = None) -> Dict[str, Any]:
        row = {"main_category": main_category, "sub_category": sub_category}
        if created_by:
            row["created_by"] = created_by
        try:
            response = self.client.table('exam_categories').insert(row).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictIgnored(f"Kategori zaten mevcut: {main_category} / {sub_category}")
            raise
        return self._first(response)

    def update_exam_category(self, category_id: str, main_category: str, sub_category: str) -> Dict[str, Any]:
        try:
            response = self.client.table('exam_categories') \
                .update({"main_category": main_category, "sub_category": sub_category}) \
                .eq('id', category_id) \
                .execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictIgnored(f"Kategori zaten mevcut: {main_category} / {sub_category}")
            raise
        return self._first(response)

    def delete_exam_category(self, category_id: str) -> None:
        self.client.table('exam_categories').delete().eq('id', category_id).execute()

    # Posts ------------------------------------------------------------------

    def get_posts(self) -> List[Dict[str, Any]]:
        response = self.client.table('posts') \
            .select('*') \
            .order('created_at', desc=True) \
            .execute()
        return response.data or []

    def get_posts_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        response = self.client.table('posts') \
            .select('*') \
            .eq('user_id', user_id) \
            .order('created_at', desc=True) \
            .execute()
        return response.data or []

    def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table('posts').select('*').eq('id', post_id).limit(1).execute()
        return self._first(response)

    def insert_post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.table('posts').insert(data).execute()
        return self._first(response)

    def update_post(self, post_id: str, data: Dict[str, Any], owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.client.table('posts').update(data).eq('id', post_id)
        if owner_id is not None:
            query = query.eq('user_id', owner_id)
        return self._first(query.execute())

    # Profiles ---------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table('profiles').select('*').eq('user_id', user_id).limit(1).execute()
        return self._first(response)

    def get_profiles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(user_ids)
        if not ids:
            return []
        response = self.client.table('profiles') \
            .select('user_id, display_name, avatar_url') \
            .in_('user_id', ids) \
            .execute()
        return response.data or []

    def get_all_profiles(self) -> List[Dict[str, Any]]:
        response = self.client.table('profiles').select('*').order('created_at', desc=True).execute()
        return response.data or []

    def insert_profile(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.table('profiles').insert(data).execute()
        return self._first(response)

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.client.table('profiles').update(data).eq('user_id', user_id).execute()
        return self._first(response)

    # Likes ------------------------------------------------------------------

    def get_liked_post_ids(self, user_id: str, post_ids: Iterable[str]) -> Set[str]:
        ids = list(post_ids)
        if not ids:
            return set()
        response = self.client.table('likes') \
            .select('post_id') \
            .eq('user_id', user_id) \
            .in_('post_id', ids) \
            .execute()
        return {row['post_id'] for row in (response.data or [])}

    def insert_like(self, user_id: str, post_id: str) -> None:
        try:
            self.client.table('likes').insert({"user_id": user_id, "post_id": post_id}).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictIgnored(f"Post {post_id} already liked by {user_id}")
            raise

    def delete_like(self, user_id: str, post_id: str) -> None:
        self.client.table('likes').delete().eq('user_id', user_id).eq('post_id', post_id).execute()

    # Comments ---------------------------------------------------------------

    def get_comments(self, post_id: str) -> List[Dict[str, Any]]:
        response = self.client.table('comments') \
            .select('*, profiles(display_name, avatar_url)') \
            .eq('post_id', post_id) \
            .order('created_at') \
            .execute()
        return response.data or []

    def get_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table('comments').select('*').eq('id', comment_id).limit(1).execute()
        return self._first(response)

    def insert_comment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.table('comments').insert(data).execute()
        return self._first(response)

    def update_comment(self, comment_id: str, data: Dict[str, Any], author_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.client.table('comments').update(data).eq('id', comment_id)
        if author_id is not None:
            query = query.eq('user_id', author_id)
        return self._first(query.execute())

    # Notifications ----------------------------------------------------------

    def get_notifications_for_user(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        response = self.client.table('notifications') \
            .select('*') \
            .or_(f"target_users.is.null,target_users.cs.{{{user_id}}}") \
            .order('created_at', desc=True) \
            .limit(limit) \
            .execute()
        return response.data or []

    def get_user_notifications(self, user_id: str, notification_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(notification_ids)
        if not ids:
            return []
        response = self.client.table('user_notifications') \
            .select('*') \
            .eq('user_id', user_id) \
            .in_('notification_id', ids) \
            .execute()
        return response.data or []

    def upsert_user_notifications(self, rows: List[Dict[str, Any]]) -> None:
        if not rows:
            return
        self.client.table('user_notifications').upsert(rows, on_conflict='user_id,notification_id').execute()

    def insert_notification(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.table('notifications').insert(data).execute()
        return self._first(response)

    # Roles / moderation -----------------------------------------------------

    def get_user_roles(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(user_ids)
        if not ids:
            return []
        response = self.client.table('user_roles').select('*').in_('user_id', ids).execute()
        return response.data or []

    def has_role(self, user_id: str, role: str) -> bool:
        response = self.client.table('user_roles') \
            .select('role') \
            .eq('user_id', user_id) \
            .eq('role', role) \
            .limit(1) \
            .execute()
        return bool(response.data)

    def upsert_user_role(self, user_id: str, role: str) -> None:
        self.client.table('user_roles').upsert({"user_id": user_id, "role": role}, on_conflict='user_id').execute()

    def get_blocked_users(self) -> List[Dict[str, Any]]:
        response = self.client.table('blocked_users').select('*').order('blocked_at', desc=True).execute()
        return response.data or []

    def get_blocked_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table('blocked_users').select('*').eq('user_id', user_id).limit(1).execute()
        return self._first(response)

    def insert_blocked_user(self, data: Dict[str, Any]) -> None:
        try:
            self.client.table('blocked_users').insert(data).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictIgnored(f"User already blocked: {data.get('user_id')}")
            raise

    def delete_blocked_user(self, user_id: str) -> None:
        self.client.table('blocked_users').delete().eq('user_id', user_id).execute()

    # Admin settings ---------------------------------------------------------

    def get_admin_settings(self) -> List[Dict[str, Any]]:
        response = self.client.table('admin_settings').select('*').execute()
        return response.data or []

    def upsert_admin_setting(self, key: str, value: Any) -> None:
        self.client.table('admin_settings').upsert({"key": key, "value": value}, on_conflict='key').execute()

    # Storage ----------------------------------------------------------------

    def upload_file(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        file_options = {"content-type": content_type} if content_type else None
        self.client.storage.from_(bucket).upload(path, data, file_options)
        return self.client.storage.from_(bucket).get_public_url(path)
