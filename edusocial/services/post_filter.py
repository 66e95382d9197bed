"""
Post filter predicate.

A post is shown iff it passes all three axes (category, status, timeframe).
Filtering never reorders the feed and never mutates its inputs.
"""
from datetime import datetime, UTC
from typing import Iterable, List, Optional

from edusocial.models.schemas import FilterOptions, FilterStatus, Post, Timeframe

# Maximum age in whole days for each timeframe
TIMEFRAME_DAYS = {
    Timeframe.WEEK: 7,
    Timeframe.MONTH: 30,
}


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def fold_case(text: str) -> str:
    """Lower-case with Turkish dotted and dotless I: "İ" -> "i", "I" -> "ı"."""
    return text.replace("İ", "i").replace("I", "ı").lower()


def matches_category(post: Post, categories: List[str]) -> bool:
    """Case-insensitive substring match of any filter entry inside any post tag."""
    if not categories:
        return True
    needles = [fold_case(c) for c in categories]
    for tag in post.exam_categories or []:
        tag = fold_case(tag)
        if any(needle in tag for needle in needles):
            return True
    return False


def matches_status(post: Post, status: FilterStatus) -> bool:
    if status == FilterStatus.SOLVED:
        return post.is_correct_answer
    if status == FilterStatus.UNSOLVED:
        return not post.is_correct_answer
    return True


def matches_timeframe(post: Post, timeframe: Timeframe, now: datetime) -> bool:
    max_days = TIMEFRAME_DAYS.get(timeframe)
    if max_days is None:
        return True
    # Undated posts are never "recent"
    if post.created_at is None:
        return False
    age_days = (_as_utc(now) - _as_utc(post.created_at)).days
    return age_days <= max_days


def matches_filter(post: Post, filters: FilterOptions, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(UTC)
    return (
        matches_category(post, filters.categories)
        and matches_status(post, filters.status)
        and matches_timeframe(post, filters.timeframe, now)
    )


def filter_posts(posts: Iterable[Post], filters: FilterOptions, now: Optional[datetime] = None) -> List[Post]:
    """Return the posts passing ``filters`` in their original order."""
    now = now or datetime.now(UTC)
    return [post for post in posts if matches_filter(post, filters, now)]


def active_filter_count(filters: FilterOptions) -> int:
    """Number of axes that differ from the default filter."""
    count = 0
    if filters.categories:
        count += 1
    if filters.status != FilterStatus.ALL:
        count += 1
    if filters.timeframe != Timeframe.ALL:
        count += 1
    return count
