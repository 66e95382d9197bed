"""
AI responder and model listing.

The responder turns a post into a Turkish tutoring prompt, asks the
configured LLM provider for an answer and stores it as a comment authored by
the fixed AI user. The model listing asks a provider for its chat models and
falls back to a built-in list when the provider cannot be reached.
"""
import logging
from typing import Any, Dict, List, Optional

import requests
from openai import OpenAI

from edusocial.config import (
    AI_USER_BIO, AI_USER_DISPLAY_NAME, AI_USER_ID, GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL,
    OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL, REQUEST_TIMEOUT_SECONDS,
)
from edusocial.exceptions import ConflictIgnored, NotFound, Unauthorized, UpstreamServiceError, ValidationFailed
from edusocial.repositories import db_service
from edusocial.services import admin_service
from edusocial.utils.retry import retry_read

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "Sen bir eğitim asistanısın. Aşağıdaki sınav sorusu veya eğitim içeriğine detaylı, "
    "açıklayıcı ve yardımcı bir yanıt ver. Yanıtın Türkçe olsun ve öğrencinin konuyu "
    "anlamasına yardımcı olacak şekilde olsun.\n\nİçerik: {content}"
)
IMAGE_NOTE = (
    "\n\nNot: Bu içerikte bir görsel de bulunmaktadır. Gerekiyorsa görselle ilgili "
    "açıklama da yapabilirsin."
)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1024,
}

SUPPORTED_PROVIDERS = ("openai", "google")

DEFAULT_MODELS = {
    "google": [
        {"id": "gemini-1.5-flash", "name": "Gemini 1.5 Flash", "provider": "google", "description": "Fast and versatile performance"},
        {"id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro", "provider": "google", "description": "Complex reasoning and advanced capabilities"},
        {"id": "gemma-2-2b", "name": "Gemma 2 2B", "provider": "google", "description": "Lightweight open model"},
        {"id": "gemma-2-9b", "name": "Gemma 2 9B", "provider": "google", "description": "Balanced performance open model"},
        {"id": "gemma-2-27b", "name": "Gemma 2 27B", "provider": "google", "description": "Large open model"},
    ],
    "openai": [
        {"id": "gpt-4o", "name": "gpt-4o", "provider": "openai", "description": "OpenAI gpt-4o"},
        {"id": "gpt-4o-mini", "name": "gpt-4o-mini", "provider": "openai", "description": "OpenAI gpt-4o-mini"},
        {"id": "gpt-4-turbo", "name": "gpt-4-turbo", "provider": "openai", "description": "OpenAI gpt-4-turbo"},
        {"id": "gpt-3.5-turbo", "name": "gpt-3.5-turbo", "provider": "openai", "description": "OpenAI gpt-3.5-turbo"},
    ],
}


def build_prompt(content: str, image_url: Optional[str] = None) -> str:
    prompt = PROMPT_TEMPLATE.format(content=content)
    if image_url:
        prompt += IMAGE_NOTE
    return prompt


def ensure_ai_profile() -> None:
    """Create the AI user's profile on first use."""
    if db_service.get_profile(AI_USER_ID):
        return
    try:
        db_service.insert_profile({
            "user_id": AI_USER_ID,
            "display_name": AI_USER_DISPLAY_NAME,
            "bio": AI_USER_BIO,
            "exam_categories": {},
        })
        logger.info("AI user profile created")
    except ConflictIgnored:
        # Created concurrently by another request
        pass


def _resolve_llm_settings() -> Dict[str, Any]:
    """Provider, model and keys from admin settings, environment as fallback."""
    try:
        settings = admin_service.get_settings()
    except Exception as e:
        logger.warning(f"Using environment AI settings, admin settings unavailable: {e}")
        settings = {}

    provider = settings.get("ai_provider") or "google"
    default_model = OPENAI_MODEL if provider == "openai" else GEMINI_MODEL
    return {
        "provider": provider,
        "model": settings.get("ai_model") or default_model,
        "openai_api_key": settings.get("openai_api_key") or OPENAI_API_KEY,
        "gemini_api_key": settings.get("gemini_api_key") or GEMINI_API_KEY,
    }


def _call_gemini(prompt: str, model: str, api_key: str) -> str:
    if not api_key:
        raise UpstreamServiceError("Gemini API key not configured")

    try:
        response = requests.post(
            f"{GEMINI_BASE_URL}/models/{model}:generateContent",
            params={"key": api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": GENERATION_CONFIG,
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"Gemini request failed: {e}")
        raise UpstreamServiceError(f"Gemini API error: {e}")

    if response.status_code != 200:
        logger.error(f"Gemini API error: {response.status_code} {response.text}")
        raise UpstreamServiceError(f"Gemini API error: {response.status_code}")

    data = response.json()
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise UpstreamServiceError("No response generated from Gemini API")


def _call_openai(prompt: str, model: str, api_key: str) -> str:
    if not api_key:
        raise UpstreamServiceError("OpenAI API key not configured")

    client = OpenAI(base_url=OPENAI_BASE_URL, api_key=api_key, timeout=REQUEST_TIMEOUT_SECONDS)
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=GENERATION_CONFIG["temperature"],
            max_tokens=GENERATION_CONFIG["maxOutputTokens"],
        )
    except Exception as e:
        logger.error(f"OpenAI request failed: {e}")
        raise UpstreamServiceError(f"OpenAI API error: {e}")

    text = completion.choices[0].message.content if completion.choices else None
    if not text:
        raise UpstreamServiceError("No response generated from OpenAI API")
    return text


def generate_answer(prompt: str) -> str:
    """
    Ask the configured LLM provider to answer ``prompt``.

    Raises:
        UpstreamServiceError: If the provider call fails or returns nothing
    """
    llm = _resolve_llm_settings()
    logger.debug(f"Calling {llm['provider']} model {llm['model']}")
    if llm["provider"] == "openai":
        return _call_openai(prompt, llm["model"], llm["openai_api_key"])
    return _call_gemini(prompt, llm["model"], llm["gemini_api_key"])


def generate_ai_response(
    post_id: Optional[str],
    content: Optional[str],
    image_url: Optional[str] = None,
    requested_by: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Answer a post with an AI-authored comment.

    Args:
        post_id: Post to answer
        content: Post text used in the prompt
        image_url: Optional image URL; only mentioned in the prompt
        requested_by: Caller of the public endpoint; must own the post or be
            an admin. Omitted for the responder scheduled at post creation.

    Returns:
        {"success": True, "aiResponse": <text>}

    Raises:
        ValidationFailed: If post_id or content is missing
        NotFound: If requested_by is given and the post does not exist
        Unauthorized: If requested_by neither owns the post nor is an admin
        UpstreamServiceError: If the LLM call fails
    """
    if not post_id or not content:
        raise ValidationFailed("Post ID and content are required")

    if requested_by is not None:
        post = db_service.get_post(post_id)
        if post is None:
            raise NotFound(f"Post not found: {post_id}")
        if post.get("user_id") != requested_by and not admin_service.is_admin(requested_by):
            logger.warning(f"User {requested_by} requested an AI answer for post {post_id} they do not own")
            raise Unauthorized("Only the post owner can request an AI answer")

    logger.info(f"Processing AI response for post: {post_id}")
    ensure_ai_profile()

    ai_text = generate_answer(build_prompt(content, image_url))

    db_service.insert_comment({
        "post_id": post_id,
        "user_id": AI_USER_ID,
        "content": ai_text,
        "proposed_as_correct": False,
    })
    logger.info(f"AI response created successfully for post {post_id}")
    return {"success": True, "aiResponse": ai_text}


def respond_in_background(post_id: str, content: str, image_url: Optional[str] = None) -> None:
    """Fire-and-forget wrapper used after post creation; failures are only logged."""
    try:
        generate_ai_response(post_id, content, image_url)
    except Exception as e:
        logger.error(f"AI response error for post {post_id}: {e}")


# ---------------------------------------------------------------------------
# Model listing
# ---------------------------------------------------------------------------

def _fetch_openai_models(api_key: str) -> List[Dict[str, Any]]:
    response = requests.get(
        "https://api.openai.com/v1/models",
        headers={"Authorization": f"Bearer {api_key}"},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    if response.status_code != 200:
        raise UpstreamServiceError(f"OpenAI API error: {response.status_code}")

    models = response.json().get("data", [])
    # Chat completion models only
    chat_models = [
        m for m in models
        if any(marker in m.get("id", "") for marker in ("gpt", "o1", "o3"))
    ]
    return [
        {"id": m["id"], "name": m["id"], "provider": "openai", "description": f"OpenAI {m['id']}"}
        for m in chat_models
    ]


def _fetch_google_models(api_key: str) -> List[Dict[str, Any]]:
    response = requests.get(
        f"{GEMINI_BASE_URL}/models",
        params={"key": api_key},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    if response.status_code != 200:
        raise UpstreamServiceError(f"Google API error: {response.status_code}")

    generative = [
        m for m in response.json().get("models", [])
        if "gemini" in m.get("name", "") or "gemma" in m.get("name", "")
    ]
    models = []
    for m in generative:
        model_id = m["name"].split("/")[-1]
        display_name = m.get("displayName") or model_id
        models.append({
            "id": model_id,
            "name": display_name,
            "provider": "google",
            "description": m.get("description") or f"Google {display_name}",
        })

    # Popular models the API did not return
    known_ids = {m["id"] for m in models}
    models.extend(dict(m) for m in DEFAULT_MODELS["google"] if m["id"] not in known_ids)
    return models


def list_models(provider: str) -> Dict[str, Any]:
    """
    List chat models of a provider.

    Returns:
        {"models": [...]} on success; {"models": <defaults>, "error": <message>}
        when the provider call fails

    Raises:
        ValidationFailed: For an unsupported provider
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationFailed(f"Unsupported provider: {provider}")

    llm = _resolve_llm_settings()
    try:
        if provider == "openai":
            if not llm["openai_api_key"]:
                raise UpstreamServiceError("OpenAI API key not configured")
            models = retry_read(lambda: _fetch_openai_models(llm["openai_api_key"]), "Listing OpenAI models")
        else:
            if not llm["gemini_api_key"]:
                raise UpstreamServiceError("Gemini API key not configured")
            models = retry_read(lambda: _fetch_google_models(llm["gemini_api_key"]), "Listing Google models")
    except Exception as e:
        message = e.message if isinstance(e, UpstreamServiceError) else str(e)
        logger.error(f"Error fetching AI models for {provider}: {message}")
        return {"models": [dict(m) for m in DEFAULT_MODELS[provider]], "error": message}

    logger.info(f"Listed {len(models)} {provider} models")
    return {"models": models}
