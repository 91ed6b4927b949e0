"""Display helpers for feed entries."""
from datetime import datetime, timezone
from typing import Optional, Union

from feedsync.schemas import Post

MINUTE = 60
HOUR = 3600
DAY = 86400
WEEK = 604800


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def relative_age(post: Union[Post, datetime], now: Optional[datetime] = None) -> str:
    """
    Bucket the time since a post was created:
      < 1 min  → "just now"
      < 1 hour → "{m}m ago"
      < 1 day  → "{h}h ago"
      < 1 week → "{d}d ago"
      otherwise the calendar date in the current locale.

    Lower bounds are inclusive, so exactly 60s is "1m ago".
    """
    created_at = _aware(post.created_at if isinstance(post, Post) else post)
    now = _aware(now) if now is not None else datetime.now(timezone.utc)

    seconds = int((now - created_at).total_seconds() // 1)

    if seconds < MINUTE:
        return "just now"   # includes negative ages from clock skew
    if seconds < HOUR:
        return f"{seconds // MINUTE}m ago"
    if seconds < DAY:
        return f"{seconds // HOUR}h ago"
    if seconds < WEEK:
        return f"{seconds // DAY}d ago"
    return created_at.astimezone().strftime("%x")
