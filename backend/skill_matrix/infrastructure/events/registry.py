"""Process-wide change feed selection."""

from skill_matrix.core.config import settings

from .change_feed import ChangeFeed, InMemoryChangeFeed
from .supabase_feed import SupabaseChangeFeed

_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        if settings.USE_SUPABASE_REALTIME:
            _feed = SupabaseChangeFeed.from_settings()
        else:
            _feed = InMemoryChangeFeed()
    return _feed


def reset_change_feed(feed: ChangeFeed | None = None) -> None:
    """Replace the process feed (tests use a fresh in-memory feed)."""
    global _feed
    _feed = feed
