from fastapi import APIRouter, Depends
import logging

from edusocial.api.deps import current_user_id, to_http_error
from edusocial.models.schemas import BlockUserRequest, NotificationCreate, RoleAssignment, SettingsSave, SettingUpdate
from edusocial.services import admin_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.get("/me")
def admin_status(user_id: str = Depends(current_user_id)):
    return {"user_id": user_id, "is_admin": admin_service.is_admin(user_id)}


@router.get("/settings")
def get_settings(user_id: str = Depends(current_user_id)):
    try:
        admin_service.require_admin(user_id)
        return {"settings": admin_service.get_settings()}
    except Exception as e:
        raise to_http_error(e, "Ayar yükleme")


@router.put("/settings")
def save_settings(request: SettingsSave, user_id: str = Depends(current_user_id)):
    """Save several settings; fields are written independently and failures reported per key"""
    try:
        return admin_service.save_settings(user_id, request.settings)
    except Exception as e:
        raise to_http_error(e, "Ayar kaydetme")


@router.put("/settings/{key}")
def update_setting(key: str, request: SettingUpdate, user_id: str = Depends(current_user_id)):
    try:
        admin_service.update_setting(user_id, key, request.value)
        return {"key": key, "value": request.value}
    except Exception as e:
        raise to_http_error(e, "Ayar güncelleme")


@router.get("/users")
def get_all_users(user_id: str = Depends(current_user_id)):
    try:
        return {"users": admin_service.get_all_users(user_id)}
    except Exception as e:
        raise to_http_error(e, "Kullanıcı yükleme")


@router.get("/blocked-users")
def get_blocked_users(user_id: str = Depends(current_user_id)):
    try:
        return {"blocked_users": admin_service.get_blocked_users(user_id)}
    except Exception as e:
        raise to_http_error(e, "Engellenen kullanıcı yükleme")


@router.post("/blocked-users")
def block_user(request: BlockUserRequest, user_id: str = Depends(current_user_id)):
    try:
        return admin_service.block_user(user_id, request.user_id, request.reason)
    except Exception as e:
        raise to_http_error(e, "Kullanıcı engelleme")


@router.delete("/blocked-users/{blocked_user_id}")
def unblock_user(blocked_user_id: str, user_id: str = Depends(current_user_id)):
    try:
        return admin_service.unblock_user(user_id, blocked_user_id)
    except Exception as e:
        raise to_http_error(e, "Engel kaldırma")


@router.put("/roles")
def assign_role(request: RoleAssignment, user_id: str = Depends(current_user_id)):
    try:
        admin_service.assign_role(user_id, request.user_id, request.role)
        return {"user_id": request.user_id, "role": request.role}
    except Exception as e:
        raise to_http_error(e, "Rol atama")


@router.post("/notifications")
def send_notification(request: NotificationCreate, user_id: str = Depends(current_user_id)):
    try:
        return admin_service.send_notification(user_id, request.title, request.message, request.target_users)
    except Exception as e:
        raise to_http_error(e, "Bildirim gönderme")
