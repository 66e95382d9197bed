"""
Serverless-function endpoints called by the web client (AI responder, model
listing) and the database webhook receiver feeding the realtime channel.

The function endpoints keep the client's contract: failures come back as
``{"error": ...}`` bodies rather than FastAPI's ``{"detail": ...}``.
"""
from fastapi import APIRouter, Body, Header
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import hmac
import logging

from edusocial.config import REALTIME_WEBHOOK_SECRET
from edusocial.exceptions import EduSocialError, NotFound, Unauthorized, ValidationFailed
from edusocial.models.schemas import AIResponseRequest, ModelListRequest
from edusocial.services import ai_service
from edusocial.services.realtime_service import ChangeEvent, change_channel

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/functions/ai-response")
def ai_response(request: AIResponseRequest, x_user_id: Optional[str] = Header(default=None)):
    if not x_user_id:
        return JSONResponse(status_code=401, content={"error": "Authentication required"})
    try:
        return ai_service.generate_ai_response(
            request.postId, request.content, request.imageUrl, requested_by=x_user_id,
        )
    except ValidationFailed as e:
        return JSONResponse(status_code=400, content={"error": e.message})
    except (Unauthorized, NotFound) as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except EduSocialError as e:
        logger.error(f"Error in ai-response function: {e.message}")
        return JSONResponse(status_code=500, content={"error": e.message})
    except Exception as e:
        logger.error(f"Error in ai-response function: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/functions/get-ai-models")
def get_ai_models(request: ModelListRequest):
    try:
        return ai_service.list_models(request.provider)
    except ValidationFailed as e:
        return JSONResponse(status_code=400, content={"error": e.message, "models": []})


def _webhook_authorized(secret: Optional[str]) -> bool:
    # No configured secret means no caller is trusted
    if not REALTIME_WEBHOOK_SECRET or not secret:
        return False
    return hmac.compare_digest(secret.encode(), REALTIME_WEBHOOK_SECRET.encode())


@router.post("/realtime/events")
async def receive_change_event(
    payload: Dict[str, Any] = Body(...),
    x_webhook_secret: Optional[str] = Header(default=None),
):
    """Database webhook receiver: publish the change to the realtime channel"""
    if not _webhook_authorized(x_webhook_secret):
        logger.warning("Rejected change event with a missing or wrong webhook secret")
        return JSONResponse(status_code=401, content={"error": "Invalid webhook secret"})

    try:
        event = ChangeEvent.from_payload(payload)
    except ValueError as e:
        logger.warning(f"Rejected change event: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})

    delivered = await change_channel.publish(event)
    logger.debug(f"Published {event.table} {event.event_type} to {delivered} subscribers")
    return {"accepted": True, "table": event.table, "event_type": event.event_type, "subscribers": delivered}
