"""
Post Service
Feed assembly, post creation and likes.
"""
import logging
import re
from typing import Callable, Dict, List, Optional

from edusocial.exceptions import ConflictIgnored, DataUnavailable, NotFound, ValidationFailed
from edusocial.models.schemas import Post, ProfileSummary
from edusocial.repositories import db_service
from edusocial.services import admin_service, ai_service, category_service
from edusocial.utils.inflight import guard

logger = logging.getLogger(__name__)

IMAGE_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
VIDEO_PATTERN = re.compile(r"\.(mp4|webm|ogg|mov)$", re.IGNORECASE)


def classify_attachment(url: str) -> Dict[str, str]:
    """
    Map the first attachment URL to post columns.

    Images set image_url and post_type "image", videos set video_url and
    post_type "video"; anything else is kept as image_url on a text post.
    """
    if IMAGE_PATTERN.search(url):
        return {"image_url": url, "post_type": "image"}
    if VIDEO_PATTERN.search(url):
        return {"video_url": url, "post_type": "video"}
    return {"image_url": url, "post_type": "text"}


def to_post(row: Dict, profile: Optional[Dict] = None, user_liked: bool = False) -> Post:
    """Build a Post from a row; NULL columns take the model defaults."""
    if row.get("is_correct_answer") and not row.get("correct_comment_id"):
        logger.debug(f"Post {row.get('id')} flagged correct without an accepted comment; treated as unsolved")
    data = {
        k: v for k, v in row.items()
        if v is not None and k not in ("profile", "profiles", "user_liked", "is_correct_answer")
    }
    return Post(
        **data,
        profile=ProfileSummary(**profile) if profile else None,
        user_liked=user_liked,
    )


def fetch_feed(user_id: Optional[str] = None) -> List[Post]:
    """
    Fetch posts newest first with author profiles and the viewer's like state.

    Missing profiles leave ``profile`` as None; a failed like lookup leaves
    ``user_liked`` False.

    Raises:
        DataUnavailable: If posts cannot be read
    """
    try:
        rows = db_service.get_posts()
    except Exception as e:
        logger.error(f"Error fetching posts: {e}")
        raise DataUnavailable("Gönderiler yüklenemedi")
    return _assemble(rows, user_id)


def fetch_user_posts(author_id: str, viewer_id: Optional[str] = None) -> List[Post]:
    """
    Posts written by ``author_id``, newest first, assembled like the feed.

    Raises:
        DataUnavailable: If posts cannot be read
    """
    try:
        rows = db_service.get_posts_by_user(author_id)
    except Exception as e:
        logger.error(f"Error fetching posts of {author_id}: {e}")
        raise DataUnavailable("Gönderiler yüklenemedi")
    return _assemble(rows, viewer_id)


def _assemble(rows: List[Dict], user_id: Optional[str]) -> List[Post]:
    if not rows:
        return []

    author_ids = {row["user_id"] for row in rows}
    try:
        profiles = {p["user_id"]: p for p in db_service.get_profiles(author_ids)}
    except Exception as e:
        logger.warning(f"Feed assembled without profiles: {e}")
        profiles = {}

    liked = set()
    if user_id:
        try:
            liked = db_service.get_liked_post_ids(user_id, [row["id"] for row in rows])
        except Exception as e:
            logger.warning(f"Feed assembled without like state for {user_id}: {e}")

    posts = []
    for row in rows:
        profile = profiles.get(row["user_id"])
        summary = {"display_name": profile.get("display_name"), "avatar_url": profile.get("avatar_url")} if profile else None
        posts.append(to_post(row, summary, row["id"] in liked))
    return posts


def create_post(
    user_id: str,
    content: str,
    exam_categories: Optional[List[str]] = None,
    attachments: Optional[List[str]] = None,
    ai_response_enabled: bool = False,
    schedule: Optional[Callable] = None,
) -> Post:
    """
    Create a post and optionally request an AI answer.

    Args:
        user_id: Author
        content: Post text (required)
        exam_categories: Subcategory tags, validated against the taxonomy
        attachments: Uploaded file URLs; only the first one is used
        ai_response_enabled: Ask the AI responder for an answer
        schedule: Callable(func, *args) used to run the AI responder without
            blocking; runs inline when omitted

    Raises:
        ValidationFailed: Missing content or unknown tags
    """
    content = (content or "").strip()
    if not user_id or not content:
        raise ValidationFailed("Gönderi içeriği boş olamaz")

    tags = exam_categories or []
    if tags:
        tags = category_service.validate_tags(category_service.load_taxonomy(), tags)

    insert_data = {
        "content": content,
        "exam_categories": tags,
        "user_id": user_id,
        "post_type": "text",
        "ai_response_enabled": ai_response_enabled,
    }
    if attachments:
        insert_data.update(classify_attachment(attachments[0]))

    row = db_service.insert_post(insert_data)
    post = to_post(row)
    logger.info(f"Post {post.id} created by {user_id} ({post.post_type}, {len(tags)} tags)")

    if ai_response_enabled:
        if admin_service.get_setting("ai_enabled", True) is False:
            logger.info(f"AI responses are disabled; skipping post {post.id}")
        else:
            run = schedule or (lambda func, *args: func(*args))
            run(ai_service.respond_in_background, post.id, content, insert_data.get("image_url"))

    return post


def toggle_like(post_id: str, user_id: str) -> Dict[str, object]:
    """
    Like or unlike a post for a user.

    A duplicate like raced in by another request is reconciled by reading
    the stored state instead of failing.

    Returns:
        {"post_id", "liked", "likes_count"}
    """
    with guard.hold("like", user_id, post_id):
        post = db_service.get_post(post_id)
        if post is None:
            raise NotFound(f"Gönderi bulunamadı: {post_id}")

        liked = post_id in db_service.get_liked_post_ids(user_id, [post_id])
        if liked:
            db_service.delete_like(user_id, post_id)
        else:
            try:
                db_service.insert_like(user_id, post_id)
            except ConflictIgnored:
                logger.info(f"Like by {user_id} on {post_id} already stored")

        liked = post_id in db_service.get_liked_post_ids(user_id, [post_id])
        refreshed = db_service.get_post(post_id) or post
        return {"post_id": post_id, "liked": liked, "likes_count": refreshed.get("likes_count") or 0}
