from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile
from typing import List, Optional
import logging

from edusocial.api.deps import current_user_id, optional_user_id, to_http_error
from edusocial.config import MAX_UPLOAD_BYTES
from edusocial.exceptions import DataUnavailable
from edusocial.models.schemas import (
    AcceptRequest, CategoryEntryInput, CreateCommentRequest, CreatePostRequest, FilterOptions,
    FilterStatus, ProfileUpdate, ProposeRequest, SelectionRequest, Timeframe, ToggleMainRequest,
    ToggleSubRequest,
)
from edusocial.services import (
    category_service, comment_service, notification_service, post_service, profile_service,
    storage_service,
)
from edusocial.services.post_filter import active_filter_count, filter_posts
from edusocial.services.realtime_service import feed_cache

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@router.get("/categories")
def get_categories():
    """Category taxonomy; an unreadable table yields an empty taxonomy and a warning"""
    taxonomy, warning = category_service.load_taxonomy_or_empty()
    return {"taxonomy": taxonomy, "warning": warning}


@router.post("/admin/categories")
def create_category(entry: CategoryEntryInput, user_id: str = Depends(current_user_id)):
    try:
        created = category_service.create_category(user_id, entry.main_category, entry.sub_category)
        return created.model_dump()
    except Exception as e:
        raise to_http_error(e, "Kategori ekleme")


@router.put("/admin/categories/{category_id}")
def update_category(category_id: str, entry: CategoryEntryInput, user_id: str = Depends(current_user_id)):
    try:
        updated = category_service.update_category(user_id, category_id, entry.main_category, entry.sub_category)
        return updated.model_dump()
    except Exception as e:
        raise to_http_error(e, "Kategori güncelleme")


@router.delete("/admin/categories/{category_id}")
def delete_category(category_id: str, user_id: str = Depends(current_user_id)):
    try:
        category_service.delete_category(user_id, category_id)
        return {"id": category_id, "deleted": True}
    except Exception as e:
        raise to_http_error(e, "Kategori silme")


def _selection_state(taxonomy, selection, warning=None):
    return {
        "selection": selection,
        "status": {
            main: {
                "selected": category_service.is_main_selected(selection, main),
                "fully_selected": category_service.is_fully_selected(taxonomy, selection, main),
            }
            for main in taxonomy
        },
        "warning": warning,
    }


@router.post("/categories/selection/toggle-main")
def toggle_main(request: ToggleMainRequest):
    taxonomy, warning = category_service.load_taxonomy_or_empty()
    selection = category_service.toggle_main_category(taxonomy, request.selection, request.main_category)
    return _selection_state(taxonomy, selection, warning)


@router.post("/categories/selection/toggle-sub")
def toggle_sub(request: ToggleSubRequest):
    taxonomy, warning = category_service.load_taxonomy_or_empty()
    selection = category_service.toggle_sub_category(request.selection, request.main_category, request.sub_category)
    return _selection_state(taxonomy, selection, warning)


@router.post("/categories/selection/status")
def selection_status(request: SelectionRequest):
    """Prune a selection against the current taxonomy and report per-category state"""
    taxonomy, warning = category_service.load_taxonomy_or_empty()
    selection = request.selection
    if warning is None:
        selection = category_service.prune_selection(taxonomy, selection)
    return _selection_state(taxonomy, selection, warning)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def _require_self(user_id: str, acting_user_id: str):
    if user_id != acting_user_id:
        raise HTTPException(status_code=403, detail="Sadece kendi profilinizi düzenleyebilirsiniz")


@router.get("/profiles/{user_id}")
def get_profile(user_id: str):
    try:
        taxonomy, warning = category_service.load_taxonomy_or_empty()
        # An unreadable taxonomy must not wipe the saved selection; an empty one prunes it
        profile = profile_service.get_profile(user_id, taxonomy if warning is None else None)
        return {**profile.model_dump(), "interests": profile_service.interest_keys(profile)}
    except Exception as e:
        raise to_http_error(e, "Profil yükleme")


@router.get("/profiles/{user_id}/posts")
def get_user_posts(user_id: str, viewer_id: Optional[str] = Depends(optional_user_id)):
    """Posts written by one user, newest first"""
    try:
        posts = post_service.fetch_user_posts(user_id, viewer_id)
        return {"posts": [p.model_dump() for p in posts], "total": len(posts)}
    except Exception as e:
        raise to_http_error(e, "Gönderi yükleme")


@router.put("/profiles/{user_id}")
def update_profile(user_id: str, update: ProfileUpdate, acting_user_id: str = Depends(current_user_id)):
    try:
        _require_self(user_id, acting_user_id)
        profile = profile_service.update_profile(user_id, update.display_name, update.bio, update.avatar_url)
        return profile.model_dump()
    except Exception as e:
        raise to_http_error(e, "Profil güncelleme")


@router.put("/profiles/{user_id}/categories")
def save_profile_categories(user_id: str, request: SelectionRequest, acting_user_id: str = Depends(current_user_id)):
    try:
        _require_self(user_id, acting_user_id)
        saved = profile_service.save_exam_categories(user_id, request.selection)
        return {"user_id": user_id, "exam_categories": saved}
    except Exception as e:
        raise to_http_error(e, "Kategori kaydetme")


# ---------------------------------------------------------------------------
# Feed and posts
# ---------------------------------------------------------------------------

@router.get("/posts")
def get_posts(
    categories: List[str] = Query(default=[]),
    status: FilterStatus = FilterStatus.ALL,
    timeframe: Timeframe = Timeframe.ALL,
    user_id: Optional[str] = Depends(optional_user_id),
):
    """
    Feed filtered by categories, solved status and timeframe.

    When posts cannot be read the last known feed is filtered instead and a
    warning is returned with it.
    """
    filters = FilterOptions(categories=categories, status=status, timeframe=timeframe)
    warning = None
    try:
        posts = post_service.fetch_feed(user_id)
        feed_cache.replace(posts)
    except DataUnavailable as e:
        logger.warning(f"Serving cached feed: {e.message}")
        posts = feed_cache.snapshot()
        warning = e.message
    except Exception as e:
        raise to_http_error(e, "Gönderi yükleme")

    visible = filter_posts(posts, filters)
    return {
        "posts": [p.model_dump() for p in visible],
        "total": len(posts),
        "active_filters": active_filter_count(filters),
        "warning": warning,
    }


@router.post("/posts")
def create_post(request: CreatePostRequest, background_tasks: BackgroundTasks, user_id: str = Depends(current_user_id)):
    try:
        post = post_service.create_post(
            user_id,
            request.content,
            exam_categories=request.exam_categories,
            attachments=request.attachments,
            ai_response_enabled=request.ai_response_enabled,
            schedule=background_tasks.add_task,
        )
        return post.model_dump()
    except Exception as e:
        raise to_http_error(e, "Gönderi oluşturma")


@router.post("/posts/{post_id}/like")
def toggle_like(post_id: str, user_id: str = Depends(current_user_id)):
    try:
        return post_service.toggle_like(post_id, user_id)
    except Exception as e:
        raise to_http_error(e, "Beğeni")


# ---------------------------------------------------------------------------
# Comments and accepted answer
# ---------------------------------------------------------------------------

@router.get("/posts/{post_id}/comments")
def get_comments(post_id: str):
    try:
        comments = comment_service.list_comments(post_id)
        tree = comment_service.build_comment_tree(comments)
        return {"comments": [c.model_dump() for c in tree], "count": len(comments)}
    except Exception as e:
        raise to_http_error(e, "Yorum yükleme")


@router.post("/posts/{post_id}/comments")
def add_comment(post_id: str, request: CreateCommentRequest, user_id: str = Depends(current_user_id)):
    try:
        comment = comment_service.add_comment(
            post_id, user_id, request.content,
            attachment_url=request.attachment_url,
            parent_id=request.parent_id,
        )
        return comment.model_dump()
    except Exception as e:
        raise to_http_error(e, "Yorum ekleme")


@router.post("/comments/{comment_id}/propose")
def propose_comment(comment_id: str, request: ProposeRequest, user_id: str = Depends(current_user_id)):
    try:
        return comment_service.propose_as_correct(comment_id, user_id, request.value).model_dump()
    except Exception as e:
        raise to_http_error(e, "Doğru cevap önerisi")


@router.put("/posts/{post_id}/accepted-comment")
def accept_answer(post_id: str, request: AcceptRequest, user_id: str = Depends(current_user_id)):
    try:
        return comment_service.accept_answer(post_id, request.comment_id, user_id).model_dump()
    except Exception as e:
        raise to_http_error(e, "Doğru cevap seçimi")


@router.delete("/posts/{post_id}/accepted-comment")
def revoke_answer(post_id: str, user_id: str = Depends(current_user_id)):
    try:
        return comment_service.revoke_answer(post_id, user_id).model_dump()
    except Exception as e:
        raise to_http_error(e, "Doğru cevap kaldırma")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@router.get("/notifications")
def get_notifications(user_id: str = Depends(current_user_id)):
    try:
        notifications = notification_service.list_for_user(user_id)
        return {
            "notifications": [n.model_dump() for n in notifications],
            "unread_count": notification_service.unread_count(notifications),
        }
    except Exception as e:
        raise to_http_error(e, "Bildirim yükleme")


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(notification_id: str, user_id: str = Depends(current_user_id)):
    try:
        notification_service.mark_as_read(user_id, notification_id)
        return {"notification_id": notification_id, "read": True}
    except Exception as e:
        raise to_http_error(e, "Bildirim güncelleme")


@router.post("/notifications/read-all")
def mark_all_notifications_read(user_id: str = Depends(current_user_id)):
    try:
        return {"marked": notification_service.mark_all_as_read(user_id)}
    except Exception as e:
        raise to_http_error(e, "Bildirim güncelleme")


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

@router.post("/uploads/{bucket}")
async def upload_file(bucket: str, file: UploadFile = File(...), user_id: str = Depends(current_user_id)):
    """Store a file under the caller's prefix and return its public URL"""
    try:
        # One byte past the cap is enough to reject an oversized file
        data = await file.read(MAX_UPLOAD_BYTES + 1)
        url = storage_service.upload_file(user_id, bucket, file.filename or "", data, file.content_type)
        return {"url": url}
    except Exception as e:
        raise to_http_error(e, "Dosya yükleme")
