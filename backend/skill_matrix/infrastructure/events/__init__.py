"""
Change feed infrastructure.

Services publish row changes after committing; realtime views subscribe to
the tables they render and re-fetch on every matching change.
"""

from .change_feed import (
    ChangeEvent,
    ChangeFeed,
    ChangePublisher,
    ChangeType,
    ChannelStatus,
    InMemoryChangeFeed,
    TableBinding,
    change_event,
)
from .registry import get_change_feed, reset_change_feed
from .subscription import RealtimeSubscription, RetryPolicy, SubscriptionState

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "ChangePublisher",
    "ChangeType",
    "ChannelStatus",
    "InMemoryChangeFeed",
    "TableBinding",
    "change_event",
    "get_change_feed",
    "reset_change_feed",
    "RealtimeSubscription",
    "RetryPolicy",
    "SubscriptionState",
]
