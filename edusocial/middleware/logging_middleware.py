"""
Logging Middleware
Logs requests and responses when DEBUG_MODE is enabled.
"""
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.concurrency import iterate_in_threadpool
from edusocial.config import DEBUG_MODE

logger = logging.getLogger(__name__)

# Bodies of these content types are not logged
BINARY_CONTENT_PREFIXES = ("multipart/", "image/", "video/", "application/octet-stream")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log requests and responses when DEBUG_MODE is True.
    """

    def __init__(self, app, enabled: bool = DEBUG_MODE):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        logger.info(f"Request: {request.method} {request.url}")
        if not request.headers.get("content-type", "").startswith(BINARY_CONTENT_PREFIXES):
            try:
                body = await request.body()
                if body:
                    logger.info(f"Request Body: {body.decode('utf-8', errors='replace')}")

                # Hand the consumed body to the next handler
                async def receive():
                    return {"type": "http.request", "body": body}
                request._receive = receive
            except Exception as e:
                logger.error(f"Error logging request: {e}")

        response = await call_next(request)

        try:
            logger.info(f"Response Status: {response.status_code}")
            response_body = [chunk async for chunk in response.body_iterator]
            response.body_iterator = iterate_in_threadpool(iter(response_body))
            if response_body:
                full_body = b''.join(response_body)
                logger.info(f"Response Body: {full_body.decode('utf-8', errors='replace')}")
        except Exception as e:
            logger.error(f"Error logging response: {e}")

        return response
