import pytest
import requests
from unittest.mock import patch, MagicMock

from edusocial.config import AI_USER_ID
from edusocial.exceptions import NotFound, Unauthorized, UpstreamServiceError, ValidationFailed
from edusocial.services import ai_service
from edusocial.services.ai_service import DEFAULT_MODELS, build_prompt, generate_ai_response, list_models


def _gemini_response(text="x = 2 çünkü 2x = 4.", status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    response.json.return_value = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return response


@pytest.mark.unit
class TestBuildPrompt:

    def test_prompt_contains_content(self):
        prompt = build_prompt("2x + 3 = 7 ise x kaçtır?")
        assert prompt.startswith("Sen bir eğitim asistanısın.")
        assert prompt.endswith("İçerik: 2x + 3 = 7 ise x kaçtır?")

    def test_image_note_added_for_images(self):
        assert "görsel" in build_prompt("Soru", "https://cdn/soru.png")
        assert "görsel" not in build_prompt("Soru")


@pytest.mark.unit
class TestGenerateAIResponse:

    def test_missing_fields_rejected(self, memory_db):
        with pytest.raises(ValidationFailed):
            generate_ai_response(None, "Soru")
        with pytest.raises(ValidationFailed):
            generate_ai_response("post-1", "")

    @patch("edusocial.services.ai_service.generate_answer")
    def test_requester_must_own_post(self, mock_generate, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        with pytest.raises(Unauthorized):
            generate_ai_response(post["id"], "Başka bir içerik", requested_by="user-2")
        mock_generate.assert_not_called()
        assert seeded_db.get_comments(post["id"]) == []

    @patch("edusocial.services.ai_service.generate_answer", return_value="Yanıt")
    def test_owner_and_admin_may_request(self, mock_generate, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        assert generate_ai_response(post["id"], "Soru", requested_by="user-1")["success"] is True
        assert generate_ai_response(post["id"], "Soru", requested_by="admin-1")["success"] is True
        assert mock_generate.call_count == 2

    @patch("edusocial.services.ai_service.generate_answer")
    def test_requested_post_must_exist(self, mock_generate, seeded_db):
        with pytest.raises(NotFound):
            generate_ai_response("missing", "Soru", requested_by="user-1")
        mock_generate.assert_not_called()

    @patch("edusocial.services.ai_service.GEMINI_API_KEY", "test-key")
    @patch("edusocial.services.ai_service.requests.post")
    def test_gemini_answer_stored_as_ai_comment(self, mock_post, seeded_db):
        mock_post.return_value = _gemini_response()
        post = seeded_db.insert_post({"user_id": "user-1", "content": "2x = 4 ise x?"})

        result = generate_ai_response(post["id"], "2x = 4 ise x?", None)

        assert result == {"success": True, "aiResponse": "x = 2 çünkü 2x = 4."}
        comments = seeded_db.get_comments(post["id"])
        assert len(comments) == 1
        assert comments[0]["user_id"] == AI_USER_ID
        assert comments[0]["proposed_as_correct"] is False
        assert seeded_db.get_profile(AI_USER_ID)["display_name"] == "AI Asistan"

        _, kwargs = mock_post.call_args
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["timeout"] > 0
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 1024

    @patch("edusocial.services.ai_service.GEMINI_API_KEY", "test-key")
    @patch("edusocial.services.ai_service.requests.post")
    def test_upstream_failure_stores_nothing(self, mock_post, seeded_db):
        mock_post.return_value = _gemini_response(status_code=500)
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})

        with pytest.raises(UpstreamServiceError):
            generate_ai_response(post["id"], "Soru")
        assert seeded_db.get_comments(post["id"]) == []

    @patch("edusocial.services.ai_service.GEMINI_API_KEY", "test-key")
    @patch("edusocial.services.ai_service.requests.post")
    def test_empty_candidates_is_upstream_error(self, mock_post, seeded_db):
        mock_post.return_value = _gemini_response()
        mock_post.return_value.json.return_value = {"candidates": []}
        with pytest.raises(UpstreamServiceError):
            generate_ai_response("post-1", "Soru")

    @patch("edusocial.services.ai_service.OpenAI")
    def test_openai_provider_from_admin_settings(self, mock_openai_class, seeded_db):
        seeded_db.upsert_admin_setting("ai_provider", "openai")
        seeded_db.upsert_admin_setting("ai_model", "gpt-4o")
        seeded_db.upsert_admin_setting("openai_api_key", "sk-test")
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value.choices = [MagicMock(message=MagicMock(content="Cevap"))]
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})

        result = generate_ai_response(post["id"], "Soru")

        assert result["aiResponse"] == "Cevap"
        assert mock_openai_class.call_args.kwargs["api_key"] == "sk-test"
        assert mock_client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o"

    def test_background_wrapper_swallows_failures(self, memory_db):
        with patch.object(ai_service, "generate_ai_response", side_effect=UpstreamServiceError("boom")):
            ai_service.respond_in_background("post-1", "Soru")


@pytest.mark.unit
class TestListModels:

    def test_unknown_provider_rejected(self, memory_db):
        with pytest.raises(ValidationFailed):
            list_models("anthropic")

    @patch("edusocial.services.ai_service.OPENAI_API_KEY", "sk-test")
    @patch("edusocial.services.ai_service.requests.get")
    def test_openai_keeps_chat_models(self, mock_get, memory_db):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {"data": [
            {"id": "gpt-4o"}, {"id": "whisper-1"}, {"id": "o1-mini"}, {"id": "text-embedding-3-small"}, {"id": "o3-mini"},
        ]}
        result = list_models("openai")
        assert [m["id"] for m in result["models"]] == ["gpt-4o", "o1-mini", "o3-mini"]
        assert "error" not in result

    @patch("edusocial.services.ai_service.GEMINI_API_KEY", "test-key")
    @patch("edusocial.services.ai_service.requests.get")
    def test_google_appends_missing_popular_models(self, mock_get, memory_db):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {"models": [
            {"name": "models/gemini-1.5-flash", "displayName": "Gemini 1.5 Flash", "description": "Hızlı"},
            {"name": "models/embedding-001", "displayName": "Embedding"},
            {"name": "models/gemini-2.0-flash", "displayName": "Gemini 2.0 Flash"},
        ]}
        ids = [m["id"] for m in list_models("google")["models"]]
        assert ids[:2] == ["gemini-1.5-flash", "gemini-2.0-flash"]
        assert "embedding-001" not in ids
        assert ids.count("gemini-1.5-flash") == 1
        assert "gemma-2-27b" in ids

    @patch("edusocial.services.ai_service.GEMINI_API_KEY", "test-key")
    @patch("edusocial.services.ai_service.requests.get")
    def test_failure_falls_back_to_defaults(self, mock_get, memory_db, fast_retry):
        mock_get.side_effect = requests.ConnectionError("unreachable")
        result = list_models("google")
        assert result["models"] == DEFAULT_MODELS["google"]
        assert "unreachable" in result["error"]
        # Listing is a read: retried once
        assert mock_get.call_count == 2

    @patch("edusocial.services.ai_service.OPENAI_API_KEY", "")
    def test_missing_key_falls_back_to_defaults(self, memory_db):
        result = list_models("openai")
        assert result["models"] == DEFAULT_MODELS["openai"]
        assert result["error"]
