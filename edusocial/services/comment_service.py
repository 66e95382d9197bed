"""
Comment Service
Comments, threaded replies, self-nomination and the accepted-answer state.

A post is either unresolved (no accepted comment) or resolved by exactly one
of its comments. Only the post owner moves it between those states, and the
accepted comment id and the ``is_correct_answer`` flag are always written
together.
"""
import logging
from typing import Dict, List, Optional

from edusocial.exceptions import DataUnavailable, NotFound, Unauthorized, ValidationFailed
from edusocial.models.schemas import Comment, Post, ProfileSummary
from edusocial.repositories import db_service
from edusocial.services.post_service import to_post
from edusocial.utils.inflight import guard

logger = logging.getLogger(__name__)


def to_comment(row: Dict) -> Comment:
    profile = row.get("profiles")
    data = {k: v for k, v in row.items() if v is not None and k not in ("profiles", "profile", "replies")}
    return Comment(**data, profile=ProfileSummary(**profile) if profile else None)


def list_comments(post_id: str) -> List[Comment]:
    """
    Comments of a post, oldest first.

    Raises:
        DataUnavailable: If the comments cannot be read
    """
    try:
        rows = db_service.get_comments(post_id)
    except Exception as e:
        logger.error(f"Error fetching comments for post {post_id}: {e}")
        raise DataUnavailable("Yorumlar yüklenemedi")
    return [to_comment(row) for row in rows]


def build_comment_tree(comments: List[Comment]) -> List[Comment]:
    """
    Nest replies under their parents, keeping chronological order.

    Replies whose parent is missing are shown as top-level comments.
    """
    nodes = {c.id: c.model_copy(update={"replies": []}) for c in comments}
    roots = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id else None
        if parent is not None and parent is not node:
            parent.replies.append(node)
        else:
            roots.append(node)
    return roots


def add_comment(
    post_id: str,
    user_id: str,
    content: str,
    attachment_url: Optional[str] = None,
    parent_id: Optional[str] = None,
) -> Comment:
    """
    Add a comment or a reply.

    Raises:
        ValidationFailed: Empty content, or a parent on another post
        NotFound: Unknown post or parent comment
    """
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Yorum boş olamaz")

    with guard.hold("comment", user_id, post_id):
        if db_service.get_post(post_id) is None:
            raise NotFound(f"Gönderi bulunamadı: {post_id}")

        if parent_id:
            parent = db_service.get_comment(parent_id)
            if parent is None:
                raise NotFound(f"Yorum bulunamadı: {parent_id}")
            if parent["post_id"] != post_id:
                raise ValidationFailed("Yanıtlanan yorum bu gönderiye ait değil")

        row = db_service.insert_comment({
            "post_id": post_id,
            "user_id": user_id,
            "content": content,
            "attachment_url": attachment_url,
            "parent_id": parent_id,
        })
    logger.info(f"Comment {row['id']} added to post {post_id} by {user_id}")
    return to_comment(row)


def propose_as_correct(comment_id: str, user_id: str, value: bool) -> Comment:
    """
    Set the author's own "proposed as correct" flag.

    Raises:
        NotFound: Unknown comment
        Unauthorized: If user_id is not the comment's author
    """
    comment = db_service.get_comment(comment_id)
    if comment is None:
        raise NotFound(f"Yorum bulunamadı: {comment_id}")
    if comment["user_id"] != user_id:
        raise Unauthorized("Sadece kendi yorumunuzu önerebilirsiniz")

    row = db_service.update_comment(comment_id, {"proposed_as_correct": value}, author_id=user_id)
    if row is None:
        raise Unauthorized("Sadece kendi yorumunuzu önerebilirsiniz")
    return to_comment(row)


def _load_owned_post(post_id: str, user_id: str) -> Dict:
    post = db_service.get_post(post_id)
    if post is None:
        raise NotFound(f"Gönderi bulunamadı: {post_id}")
    if post["user_id"] != user_id:
        logger.warning(f"User {user_id} tried to change the accepted answer of post {post_id}")
        raise Unauthorized("Sadece gönderi sahibi doğru cevabı belirleyebilir")
    return post


def _set_accepted(post_id: str, user_id: str, comment_id: Optional[str]) -> Post:
    row = db_service.update_post(
        post_id,
        {"correct_comment_id": comment_id, "is_correct_answer": comment_id is not None},
        owner_id=user_id,
    )
    if row is None:
        # Ownership changed or the post vanished between the check and the write
        raise Unauthorized("Sadece gönderi sahibi doğru cevabı belirleyebilir")
    return to_post(row)


def accept_answer(post_id: str, comment_id: str, user_id: str) -> Post:
    """
    Mark ``comment_id`` as the accepted answer, superseding any previous one.

    Raises:
        Unauthorized: If user_id does not own the post
        ValidationFailed: If the comment belongs to another post
        NotFound: Unknown post or comment
    """
    with guard.hold("accept", user_id, post_id):
        _load_owned_post(post_id, user_id)

        comment = db_service.get_comment(comment_id)
        if comment is None:
            raise NotFound(f"Yorum bulunamadı: {comment_id}")
        if comment["post_id"] != post_id:
            raise ValidationFailed("Yorum bu gönderiye ait değil")

        post = _set_accepted(post_id, user_id, comment_id)
    logger.info(f"Post {post_id} resolved with comment {comment_id}")
    return post


def revoke_answer(post_id: str, user_id: str) -> Post:
    """
    Return the post to the unresolved state.

    Raises:
        Unauthorized: If user_id does not own the post
    """
    with guard.hold("accept", user_id, post_id):
        _load_owned_post(post_id, user_id)
        post = _set_accepted(post_id, user_id, None)
    logger.info(f"Accepted answer of post {post_id} revoked")
    return post
