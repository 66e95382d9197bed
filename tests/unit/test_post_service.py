import pytest
from unittest.mock import patch, MagicMock

from edusocial.exceptions import ConflictIgnored, DataUnavailable, NotFound, ValidationFailed
from edusocial.services import post_service
from edusocial.services.post_service import (
    classify_attachment, create_post, fetch_feed, fetch_user_posts, to_post, toggle_like,
)
from edusocial.utils.inflight import guard


@pytest.mark.unit
class TestClassifyAttachment:

    @pytest.mark.parametrize("url,expected", [
        ("https://cdn/a/1.png", {"image_url": "https://cdn/a/1.png", "post_type": "image"}),
        ("https://cdn/a/1.JPEG", {"image_url": "https://cdn/a/1.JPEG", "post_type": "image"}),
        ("https://cdn/a/1.mov", {"video_url": "https://cdn/a/1.mov", "post_type": "video"}),
        ("https://cdn/a/notes.pdf", {"image_url": "https://cdn/a/notes.pdf", "post_type": "text"}),
    ])
    def test_classification(self, url, expected):
        assert classify_attachment(url) == expected


@pytest.mark.unit
class TestToPost:

    def test_null_columns_take_defaults(self):
        post = to_post({"id": "p", "user_id": "u", "exam_categories": None, "likes_count": None, "content": None})
        assert post.exam_categories == []
        assert post.likes_count == 0
        assert post.content == ""
        assert post.profile is None

    def test_flag_follows_accepted_comment(self):
        assert to_post({"id": "p", "user_id": "u", "is_correct_answer": True}).is_correct_answer is False
        assert to_post({"id": "p", "user_id": "u", "correct_comment_id": "c"}).is_correct_answer is True


@pytest.mark.unit
class TestFetchFeed:

    def test_feed_with_profiles_and_likes(self, seeded_db):
        first = seeded_db.insert_post({"user_id": "user-1", "content": "İlk", "created_at": "2024-05-01T10:00:00+00:00"})
        second = seeded_db.insert_post({"user_id": "ghost", "content": "Profilsiz", "created_at": "2024-05-02T10:00:00+00:00"})
        seeded_db.insert_like("user-2", first["id"])

        posts = fetch_feed("user-2")

        assert [p.id for p in posts] == [second["id"], first["id"]]
        assert posts[0].profile is None
        assert posts[1].profile.display_name == "Ayşe"
        assert posts[1].user_liked is True
        assert posts[0].user_liked is False

    def test_anonymous_viewer_likes_nothing(self, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        seeded_db.insert_like("user-2", post["id"])
        assert fetch_feed(None)[0].user_liked is False

    def test_read_failure_raises_data_unavailable(self, memory_db, fast_retry):
        with patch.object(memory_db, "get_posts", side_effect=RuntimeError("down")):
            with pytest.raises(DataUnavailable):
                fetch_feed("user-1")

    def test_profile_failure_degrades(self, seeded_db, fast_retry):
        seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        with patch.object(seeded_db, "get_profiles", side_effect=RuntimeError("down")):
            posts = fetch_feed("user-2")
        assert len(posts) == 1
        assert posts[0].profile is None


@pytest.mark.unit
class TestFetchUserPosts:

    def test_only_the_authors_posts_newest_first(self, seeded_db):
        older = seeded_db.insert_post({"user_id": "user-1", "content": "Eski", "created_at": "2024-05-01T10:00:00+00:00"})
        seeded_db.insert_post({"user_id": "user-2", "content": "Başka", "created_at": "2024-05-02T10:00:00+00:00"})
        newer = seeded_db.insert_post({"user_id": "user-1", "content": "Yeni", "created_at": "2024-05-03T10:00:00+00:00"})
        seeded_db.insert_like("user-2", older["id"])

        posts = fetch_user_posts("user-1", "user-2")

        assert [p.id for p in posts] == [newer["id"], older["id"]]
        assert all(p.profile.display_name == "Ayşe" for p in posts)
        assert [p.user_liked for p in posts] == [False, True]

    def test_author_without_posts(self, seeded_db):
        seeded_db.insert_post({"user_id": "user-2", "content": "Soru"})
        assert fetch_user_posts("user-1") == []

    def test_read_failure_raises_data_unavailable(self, seeded_db, fast_retry):
        with patch.object(seeded_db, "get_posts_by_user", side_effect=RuntimeError("down")):
            with pytest.raises(DataUnavailable):
                fetch_user_posts("user-1")


@pytest.mark.unit
class TestCreatePost:

    def test_creates_image_post(self, seeded_db):
        post = create_post("user-1", "  Bu integral nasıl çözülür? ", ["Matematik"], ["https://cdn/x.png"])
        assert post.content == "Bu integral nasıl çözülür?"
        assert post.post_type == "image"
        assert post.image_url == "https://cdn/x.png"
        assert post.exam_categories == ["Matematik"]
        assert post.is_correct_answer is False

    def test_only_first_attachment_used(self, seeded_db):
        post = create_post("user-1", "Video", attachments=["https://cdn/v.mp4", "https://cdn/x.png"])
        assert post.post_type == "video"
        assert post.video_url == "https://cdn/v.mp4"
        assert post.image_url is None

    def test_empty_content_rejected(self, seeded_db):
        with pytest.raises(ValidationFailed):
            create_post("user-1", "   ")
        assert seeded_db.get_posts() == []

    def test_unknown_tag_rejected(self, seeded_db):
        with pytest.raises(ValidationFailed):
            create_post("user-1", "Soru", ["Geometri"])

    def test_ai_responder_scheduled(self, seeded_db):
        schedule = MagicMock()
        post = create_post("user-1", "Soru", attachments=["https://cdn/x.png"], ai_response_enabled=True, schedule=schedule)
        schedule.assert_called_once_with(post_service.ai_service.respond_in_background, post.id, "Soru", "https://cdn/x.png")

    def test_ai_disabled_by_admin_setting(self, seeded_db):
        seeded_db.upsert_admin_setting("ai_enabled", False)
        schedule = MagicMock()
        create_post("user-1", "Soru", ai_response_enabled=True, schedule=schedule)
        schedule.assert_not_called()

    def test_ai_failure_does_not_fail_creation(self, seeded_db):
        with patch("edusocial.services.ai_service.generate_answer", side_effect=RuntimeError("LLM down")):
            post = create_post("user-1", "Soru", ai_response_enabled=True)
        assert seeded_db.get_post(post.id) is not None
        assert seeded_db.get_comments(post.id) == []


@pytest.mark.unit
class TestToggleLike:

    def test_like_then_unlike(self, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        assert toggle_like(post["id"], "user-2") == {"post_id": post["id"], "liked": True, "likes_count": 1}
        assert toggle_like(post["id"], "user-2") == {"post_id": post["id"], "liked": False, "likes_count": 0}

    def test_duplicate_insert_is_reconciled(self, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})

        def racing_insert(user_id, post_id):
            # Another request stored the like first
            seeded_db.likes.add((user_id, post_id))
            raise ConflictIgnored("duplicate key value violates unique constraint")

        with patch.object(seeded_db, "get_liked_post_ids", side_effect=[set(), {post["id"]}]), \
             patch.object(seeded_db, "insert_like", side_effect=racing_insert):
            result = toggle_like(post["id"], "user-2")
        assert result["liked"] is True

    def test_in_flight_duplicate_rejected(self, seeded_db):
        post = seeded_db.insert_post({"user_id": "user-1", "content": "Soru"})
        with guard.hold("like", "user-2", post["id"]):
            with pytest.raises(ConflictIgnored):
                toggle_like(post["id"], "user-2")
        assert seeded_db.likes == set()

    def test_unknown_post(self, seeded_db):
        with pytest.raises(NotFound):
            toggle_like("missing", "user-2")
