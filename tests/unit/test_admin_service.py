import pytest
from unittest.mock import patch

from edusocial.exceptions import DataUnavailable, Unauthorized, ValidationFailed
from edusocial.services import admin_service


@pytest.mark.unit
class TestRoles:

    def test_is_admin(self, seeded_db):
        assert admin_service.is_admin("admin-1") is True
        assert admin_service.is_admin("user-1") is False
        assert admin_service.is_admin(None) is False

    def test_failed_role_lookup_is_not_admin(self, seeded_db, fast_retry):
        with patch.object(seeded_db, "has_role", side_effect=RuntimeError("down")):
            assert admin_service.is_admin("admin-1") is False

    def test_assign_role(self, seeded_db):
        admin_service.assign_role("admin-1", "user-1", "moderator")
        assert seeded_db.user_roles["user-1"]["role"] == "moderator"

    def test_assign_invalid_role(self, seeded_db):
        with pytest.raises(ValidationFailed):
            admin_service.assign_role("admin-1", "user-1", "owner")

    def test_non_admin_cannot_assign(self, seeded_db):
        with pytest.raises(Unauthorized):
            admin_service.assign_role("user-1", "user-1", "admin")
        assert "user-1" not in seeded_db.user_roles


@pytest.mark.unit
class TestSettings:

    def test_update_and_read_settings(self, seeded_db):
        admin_service.update_setting("admin-1", "ai_enabled", False)
        assert admin_service.get_settings() == {"ai_enabled": False}
        assert admin_service.get_setting("ai_enabled", True) is False
        assert admin_service.get_setting("missing", "varsayılan") == "varsayılan"

    def test_get_setting_defaults_when_unreadable(self, seeded_db, fast_retry):
        with patch.object(seeded_db, "get_admin_settings", side_effect=RuntimeError("down")):
            assert admin_service.get_setting("ai_enabled", True) is True
            with pytest.raises(DataUnavailable):
                admin_service.get_settings()

    def test_save_settings_is_per_field(self, seeded_db):
        original = seeded_db.upsert_admin_setting

        def flaky_upsert(key, value):
            if key == "openai_api_key":
                raise RuntimeError("permission denied")
            original(key, value)

        with patch.object(seeded_db, "upsert_admin_setting", side_effect=flaky_upsert):
            result = admin_service.save_settings("admin-1", {
                "ai_provider": "openai", "openai_api_key": "sk-x", "ai_model": "gpt-4o",
            })

        assert result["saved"] == ["ai_provider", "ai_model"]
        assert list(result["failed"]) == ["openai_api_key"]
        assert seeded_db.admin_settings == {"ai_provider": "openai", "ai_model": "gpt-4o"}

    def test_non_admin_cannot_save(self, seeded_db):
        with pytest.raises(Unauthorized):
            admin_service.save_settings("user-1", {"ai_enabled": False})
        assert seeded_db.admin_settings == {}


@pytest.mark.unit
class TestModeration:

    def test_block_and_unblock(self, seeded_db):
        admin_service.block_user("admin-1", "user-2", "Spam")
        assert admin_service.is_user_blocked("user-2") == (True, "Spam")

        blocked = admin_service.get_blocked_users("admin-1")
        assert blocked[0]["user_id"] == "user-2"
        assert blocked[0]["profiles"] == {"display_name": "Mehmet"}

        admin_service.unblock_user("admin-1", "user-2")
        assert admin_service.is_user_blocked("user-2") == (False, None)

    def test_cannot_block_self(self, seeded_db):
        with pytest.raises(ValidationFailed):
            admin_service.block_user("admin-1", "admin-1")

    def test_all_users_with_roles(self, seeded_db):
        users = {u["user_id"]: u for u in admin_service.get_all_users("admin-1")}
        assert [r["role"] for r in users["admin-1"]["user_roles"]] == ["admin"]
        assert users["user-1"]["user_roles"] == []

    def test_roles_failure_degrades_to_empty_roles(self, seeded_db, fast_retry):
        with patch.object(seeded_db, "get_user_roles", side_effect=RuntimeError("down")):
            users = admin_service.get_all_users("admin-1")
        assert len(users) == 3
        assert all(u["user_roles"] == [] for u in users)


@pytest.mark.unit
class TestSendNotification:

    def test_broadcast(self, seeded_db):
        row = admin_service.send_notification("admin-1", "Duyuru", "Deneme sınavı yarın")
        assert row["target_users"] is None
        assert row["created_by"] == "admin-1"

    def test_blank_fields_rejected(self, seeded_db):
        with pytest.raises(ValidationFailed):
            admin_service.send_notification("admin-1", "Duyuru", " ")
