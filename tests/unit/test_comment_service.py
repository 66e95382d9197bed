import pytest

from edusocial.exceptions import ConflictIgnored, NotFound, Unauthorized, ValidationFailed
from edusocial.models.schemas import Comment
from edusocial.services import comment_service
from edusocial.utils.inflight import guard


@pytest.fixture
def question(seeded_db):
    """A post by user-1 with one answer from user-2."""
    post = seeded_db.insert_post({"user_id": "user-1", "content": "2x + 3 = 7 ise x kaçtır?"})
    answer = comment_service.add_comment(post["id"], "user-2", "x = 2")
    return post, answer


@pytest.mark.unit
class TestAddComment:

    def test_adds_comment_with_profile(self, seeded_db, question):
        post, answer = question
        comments = comment_service.list_comments(post["id"])
        assert [c.id for c in comments] == [answer.id]
        assert comments[0].profile.display_name == "Mehmet"
        assert seeded_db.get_post(post["id"])["comments_count"] == 1

    def test_empty_content_rejected(self, question):
        post, _ = question
        with pytest.raises(ValidationFailed):
            comment_service.add_comment(post["id"], "user-2", "   ")

    def test_unknown_post(self, seeded_db):
        with pytest.raises(NotFound):
            comment_service.add_comment("missing", "user-2", "Merhaba")

    def test_reply_must_be_on_same_post(self, seeded_db, question):
        _, answer = question
        other = seeded_db.insert_post({"user_id": "user-2", "content": "Başka soru"})
        with pytest.raises(ValidationFailed):
            comment_service.add_comment(other["id"], "user-1", "Yanıt", parent_id=answer.id)

    def test_duplicate_while_in_flight_is_rejected(self, question):
        post, _ = question
        with guard.hold("comment", "user-2", post["id"]):
            with pytest.raises(ConflictIgnored):
                comment_service.add_comment(post["id"], "user-2", "Tekrar")
        assert not guard.is_held("comment", "user-2", post["id"])


@pytest.mark.unit
class TestCommentTree:

    def test_replies_nested_and_orphans_promoted(self):
        comments = [
            Comment(id="a", post_id="p", user_id="u", content="kök"),
            Comment(id="b", post_id="p", user_id="u", content="yanıt", parent_id="a"),
            Comment(id="c", post_id="p", user_id="u", content="yetim", parent_id="deleted"),
            Comment(id="d", post_id="p", user_id="u", content="yanıtın yanıtı", parent_id="b"),
        ]
        roots = comment_service.build_comment_tree(comments)
        assert [c.id for c in roots] == ["a", "c"]
        assert [r.id for r in roots[0].replies] == ["b"]
        assert [r.id for r in roots[0].replies[0].replies] == ["d"]
        # Input models are left untouched
        assert comments[0].replies == []


@pytest.mark.unit
class TestProposeAsCorrect:

    def test_author_can_propose(self, question):
        _, answer = question
        assert comment_service.propose_as_correct(answer.id, "user-2", True).proposed_as_correct is True

    def test_other_user_cannot_propose(self, seeded_db, question):
        _, answer = question
        with pytest.raises(Unauthorized):
            comment_service.propose_as_correct(answer.id, "user-1", True)
        assert seeded_db.get_comment(answer.id)["proposed_as_correct"] is False


@pytest.mark.unit
class TestAcceptedAnswer:

    def test_owner_accepts_answer(self, seeded_db, question):
        post, answer = question
        resolved = comment_service.accept_answer(post["id"], answer.id, "user-1")
        assert resolved.correct_comment_id == answer.id
        assert resolved.is_correct_answer is True

        stored = seeded_db.get_post(post["id"])
        assert stored["correct_comment_id"] == answer.id
        assert stored["is_correct_answer"] is True

    def test_non_owner_cannot_accept(self, seeded_db, question):
        post, answer = question
        with pytest.raises(Unauthorized):
            comment_service.accept_answer(post["id"], answer.id, "user-2")
        stored = seeded_db.get_post(post["id"])
        assert stored["correct_comment_id"] is None
        assert stored["is_correct_answer"] is False

    def test_accepting_another_comment_supersedes(self, question):
        post, answer = question
        better = comment_service.add_comment(post["id"], "admin-1", "2x = 4, x = 2")
        comment_service.accept_answer(post["id"], answer.id, "user-1")
        resolved = comment_service.accept_answer(post["id"], better.id, "user-1")
        assert resolved.correct_comment_id == better.id
        assert resolved.is_correct_answer is True

    def test_comment_from_other_post_rejected(self, seeded_db, question):
        post, _ = question
        other = seeded_db.insert_post({"user_id": "user-2", "content": "Başka soru"})
        foreign = comment_service.add_comment(other["id"], "user-1", "Cevap")
        with pytest.raises(ValidationFailed):
            comment_service.accept_answer(post["id"], foreign.id, "user-1")

    def test_revoke_returns_to_unresolved(self, seeded_db, question):
        post, answer = question
        comment_service.accept_answer(post["id"], answer.id, "user-1")
        revoked = comment_service.revoke_answer(post["id"], "user-1")
        assert revoked.correct_comment_id is None
        assert revoked.is_correct_answer is False
        assert seeded_db.get_post(post["id"])["is_correct_answer"] is False

    def test_non_owner_cannot_revoke(self, question):
        post, answer = question
        comment_service.accept_answer(post["id"], answer.id, "user-1")
        with pytest.raises(Unauthorized):
            comment_service.revoke_answer(post["id"], "user-2")

    def test_unknown_post(self, seeded_db):
        with pytest.raises(NotFound):
            comment_service.revoke_answer("missing", "user-1")
