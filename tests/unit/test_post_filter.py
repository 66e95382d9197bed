import copy
from datetime import datetime, timedelta

import pytest

from edusocial.models.schemas import FilterOptions, FilterStatus, Post, Timeframe
from edusocial.services.post_filter import active_filter_count, filter_posts, matches_filter


@pytest.mark.unit
class TestCategoryAxis:

    def test_case_insensitive_substring_match(self, make_post, fixed_now):
        post = make_post(exam_categories=["matematik-temel"])
        assert matches_filter(post, FilterOptions(categories=["Matematik"]), fixed_now)

    def test_unrelated_tag_excluded(self, make_post, fixed_now):
        post = make_post(exam_categories=["Fizik"])
        assert not matches_filter(post, FilterOptions(categories=["Matematik"]), fixed_now)

    def test_prefix_looseness_is_kept(self, make_post, fixed_now):
        post = make_post(exam_categories=["Tarih-1"])
        assert matches_filter(post, FilterOptions(categories=["Tarih"]), fixed_now)

    def test_untagged_post_excluded_when_filtering(self, make_post, fixed_now):
        post = make_post(exam_categories=[])
        assert not matches_filter(post, FilterOptions(categories=["Matematik"]), fixed_now)

    def test_any_filter_entry_matches(self, make_post, fixed_now):
        post = make_post(exam_categories=["Kimya"])
        assert matches_filter(post, FilterOptions(categories=["Fizik", "kim"]), fixed_now)

    def test_empty_filter_accepts_everything(self, make_post, fixed_now):
        assert matches_filter(make_post(exam_categories=[]), FilterOptions(), fixed_now)

    @pytest.mark.parametrize("tag,needle", [
        ("Tarih", "TARİH"),
        ("Isı ve Sıcaklık", "ISI"),
        ("İNKILAP TARİHİ", "inkılap"),
        ("Biyoloji", "BİYOLOJİ"),
    ])
    def test_turkish_dotted_and_dotless_i(self, make_post, fixed_now, tag, needle):
        post = make_post(exam_categories=[tag])
        assert matches_filter(post, FilterOptions(categories=[needle]), fixed_now)

    def test_dotless_i_does_not_match_dotted_i(self, make_post, fixed_now):
        post = make_post(exam_categories=["Işık"])
        assert not matches_filter(post, FilterOptions(categories=["iş"]), fixed_now)


@pytest.mark.unit
class TestStatusAxis:

    def test_solved(self, make_post, fixed_now):
        filters = FilterOptions(status=FilterStatus.SOLVED)
        assert not matches_filter(make_post(), filters, fixed_now)
        assert matches_filter(make_post(correct_comment_id="c-1"), filters, fixed_now)

    def test_unsolved(self, make_post, fixed_now):
        filters = FilterOptions(status=FilterStatus.UNSOLVED)
        assert matches_filter(make_post(), filters, fixed_now)
        assert not matches_filter(make_post(correct_comment_id="c-1"), filters, fixed_now)

    def test_flag_without_comment_reads_as_unsolved(self, fixed_now):
        post = Post(id="p", user_id="u", created_at=fixed_now, is_correct_answer=True)
        assert post.is_correct_answer is False
        assert matches_filter(post, FilterOptions(status=FilterStatus.UNSOLVED), fixed_now)


@pytest.mark.unit
class TestTimeframeAxis:

    @pytest.mark.parametrize("age,expected", [
        (timedelta(days=7), True),
        (timedelta(days=7, hours=23), True),
        (timedelta(days=8), False),
        (timedelta(hours=1), True),
    ])
    def test_week_boundary(self, make_post, fixed_now, age, expected):
        post = make_post(age=age)
        assert matches_filter(post, FilterOptions(timeframe=Timeframe.WEEK), fixed_now) is expected

    @pytest.mark.parametrize("age,expected", [
        (timedelta(days=30), True),
        (timedelta(days=31), False),
    ])
    def test_month_boundary(self, make_post, fixed_now, age, expected):
        post = make_post(age=age)
        assert matches_filter(post, FilterOptions(timeframe=Timeframe.MONTH), fixed_now) is expected

    def test_undated_post_fails_recent_axes(self, make_post, fixed_now):
        post = make_post(age=None)
        assert not matches_filter(post, FilterOptions(timeframe=Timeframe.WEEK), fixed_now)
        assert matches_filter(post, FilterOptions(timeframe=Timeframe.ALL), fixed_now)

    def test_naive_timestamp_treated_as_utc(self, make_post, fixed_now):
        naive = (fixed_now - timedelta(days=3)).replace(tzinfo=None)
        post = make_post(created_at=naive)
        assert matches_filter(post, FilterOptions(timeframe=Timeframe.WEEK), fixed_now)


@pytest.mark.unit
class TestFilterPosts:

    def test_all_axes_must_pass_and_order_is_kept(self, make_post, fixed_now):
        posts = [
            make_post(exam_categories=["Matematik"], correct_comment_id="c1", age=timedelta(days=2)),
            make_post(exam_categories=["Matematik"], age=timedelta(days=2)),
            make_post(exam_categories=["Matematik"], correct_comment_id="c2", age=timedelta(days=40)),
            make_post(exam_categories=["Fizik"], correct_comment_id="c3", age=timedelta(days=1)),
            make_post(exam_categories=["matematik"], correct_comment_id="c4", age=timedelta(days=5)),
        ]
        filters = FilterOptions(categories=["Matematik"], status=FilterStatus.SOLVED, timeframe=Timeframe.WEEK)
        result = filter_posts(posts, filters, fixed_now)
        assert [p.id for p in result] == [posts[0].id, posts[4].id]

    def test_pure_and_non_mutating(self, make_post, fixed_now):
        posts = [make_post(exam_categories=["Kimya"]), make_post(exam_categories=["Fizik"])]
        filters = FilterOptions(categories=["Kimya"])
        before_posts = copy.deepcopy(posts)
        before_filters = filters.model_copy(deep=True)

        first = filter_posts(posts, filters, fixed_now)
        second = filter_posts(posts, filters, fixed_now)

        assert first == second
        assert posts == before_posts
        assert filters == before_filters

    def test_default_now(self):
        post = Post(id="p", user_id="u", created_at=datetime.now() - timedelta(days=1))
        assert filter_posts([post], FilterOptions(timeframe=Timeframe.WEEK)) == [post]


@pytest.mark.unit
def test_active_filter_count():
    assert active_filter_count(FilterOptions()) == 0
    assert active_filter_count(FilterOptions(categories=["TYT"])) == 1
    assert active_filter_count(
        FilterOptions(categories=["TYT"], status=FilterStatus.SOLVED, timeframe=Timeframe.MONTH)
    ) == 3
