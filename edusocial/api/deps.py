import logging
from typing import Optional

from fastapi import Header, HTTPException

from edusocial.exceptions import EduSocialError

logger = logging.getLogger(__name__)


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Acting user, as resolved by the auth gateway in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Giriş yapmanız gerekiyor")
    return x_user_id


def optional_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_user_id or None


def to_http_error(e: Exception, action: str) -> HTTPException:
    """Map an error raised by a service to the HTTPException returned to the client."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, EduSocialError):
        logger.info(f"{action} rejected: {type(e).__name__}: {e.message}")
        return HTTPException(status_code=e.status_code, detail=e.message)
    logger.error(f"Error during {action}: {e}")
    return HTTPException(status_code=500, detail=f"{action} başarısız: {str(e)}")
