"""
User Blocking Middleware
Rejects mutating requests from blocked users.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from edusocial.services import admin_service

logger = logging.getLogger(__name__)


class UserBlockingMiddleware(BaseHTTPMiddleware):
    """
    Blocked users can still read; any write they attempt is answered with 403.
    """

    MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")

    # Paths that don't carry a user action
    EXEMPT_PATH_PREFIXES = [
        "/realtime/",
    ]

    async def dispatch(self, request: Request, call_next):
        if request.method not in self.MUTATING_METHODS or self._is_exempt_path(request.url.path):
            return await call_next(request)

        user_id = request.headers.get("X-User-Id")
        if user_id:
            try:
                is_blocked, reason = await run_in_threadpool(admin_service.is_user_blocked, user_id)
                if is_blocked:
                    logger.warning(f"Blocked user {user_id} attempted {request.method} {request.url.path}")
                    return JSONResponse(
                        status_code=status.HTTP_403_FORBIDDEN,
                        content={
                            "error": "USER_BLOCKED",
                            "message": f"Hesabınız engellenmiştir. Sebep: {reason}",
                            "reason": reason,
                            "user_id": user_id,
                        },
                    )
            except Exception as e:
                # Fail open
                logger.error(f"Error checking user blocking status: {e}")

        return await call_next(request)

    def _is_exempt_path(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.EXEMPT_PATH_PREFIXES)
