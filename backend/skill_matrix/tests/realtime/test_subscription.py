import asyncio
from collections.abc import Sequence
from typing import Any

import pytest

from skill_matrix.infrastructure.events.change_feed import (
    ChangeEvent,
    ChangeType,
    ChannelStatus,
    InMemoryChangeFeed,
    TableBinding,
    change_event,
)
from skill_matrix.infrastructure.events.subscription import (
    RealtimeSubscription,
    RetryPolicy,
    SubscriptionState,
)

TEAM = "5b7d7c39-2f6c-4d0e-9d55-1f3a8f2d4c11"
BINDINGS = [TableBinding("employees", {"team_id": TEAM})]
NO_DELAY = RetryPolicy(max_attempts=2, delay_seconds=0)


class UnreachableFeed(InMemoryChangeFeed):
    async def open_channel(
        self,
        name: str,
        bindings: Sequence[TableBinding],
        on_change: Any,
        on_status: Any,
    ) -> Any:
        raise ConnectionError("unreachable")


class Recorder:
    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []
        self.states: list[SubscriptionState] = []

    async def on_refresh(self, event: ChangeEvent) -> None:
        self.events.append(event)

    async def on_state(self, state: SubscriptionState, message: str | None) -> None:
        self.states.append(state)


async def settle(subscription: RealtimeSubscription) -> None:
    for _ in range(5):
        await asyncio.sleep(0)
    await subscription.wait_idle()


def make(
    feed: InMemoryChangeFeed, recorder: Recorder, **kwargs: Any
) -> RealtimeSubscription:
    return RealtimeSubscription(
        feed,
        "matrix:test",
        BINDINGS,
        recorder.on_refresh,
        on_state=recorder.on_state,
        policy=NO_DELAY,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_connects_and_refreshes_on_matching_change() -> None:
    feed, recorder = InMemoryChangeFeed(), Recorder()
    subscription = make(feed, recorder)
    await subscription.open()
    await settle(subscription)
    assert subscription.state == SubscriptionState.CONNECTED

    feed.publish(change_event("employees", ChangeType.INSERT, team_id=TEAM))
    feed.publish(change_event("employees", ChangeType.INSERT, team_id="other"))
    feed.publish(change_event("stations", ChangeType.INSERT, team_id=TEAM))
    await settle(subscription)

    assert [e.table for e in recorder.events] == ["employees"]
    assert recorder.states == [SubscriptionState.CONNECTING, SubscriptionState.CONNECTED]
    await subscription.close()


@pytest.mark.asyncio
async def test_channel_error_is_retried() -> None:
    feed, recorder = InMemoryChangeFeed(), Recorder()
    subscription = make(feed, recorder)
    await subscription.open()
    await settle(subscription)

    feed.fail_channel(subscription._channel, ChannelStatus.CHANNEL_ERROR, "socket reset")
    await settle(subscription)

    assert subscription.state == SubscriptionState.CONNECTED
    assert subscription.attempts == 0
    assert feed.channel_count == 1
    assert SubscriptionState.RETRYING in recorder.states
    await subscription.close()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts() -> None:
    feed, recorder = UnreachableFeed(), Recorder()
    subscription = make(feed, recorder)
    await subscription.open()
    await settle(subscription)

    assert subscription.state == SubscriptionState.FAILED
    assert subscription.failure_message == (
        "Realtime connection failed after 2 attempts: unreachable"
    )
    assert recorder.states.count(SubscriptionState.RETRYING) == 2
    await subscription.close()


@pytest.mark.asyncio
async def test_hidden_view_defers_retry_until_visible() -> None:
    feed, recorder = InMemoryChangeFeed(), Recorder()
    subscription = make(feed, recorder, visible=False)
    await subscription.open()
    await settle(subscription)

    feed.fail_channel(subscription._channel, ChannelStatus.TIMED_OUT, None)
    await settle(subscription)
    assert subscription.state == SubscriptionState.RETRYING
    assert subscription.retry_pending
    assert subscription.attempts == 0
    assert feed.channel_count == 0

    subscription.set_visible(True)
    await settle(subscription)
    assert subscription.state == SubscriptionState.CONNECTED
    assert not subscription.retry_pending
    assert feed.channel_count == 1
    await subscription.close()


@pytest.mark.asyncio
async def test_refreshes_are_coalesced() -> None:
    feed = InMemoryChangeFeed()
    gate = asyncio.Event()
    seen: list[str] = []

    async def slow_refresh(event: ChangeEvent) -> None:
        seen.append(str(event.value("id")))
        await gate.wait()

    subscription = RealtimeSubscription(
        feed, "matrix:test", BINDINGS, slow_refresh, policy=NO_DELAY
    )
    await subscription.open()
    for _ in range(5):
        await asyncio.sleep(0)

    for n in (1, 2, 3):
        feed.publish(change_event("employees", ChangeType.UPDATE, id=n, team_id=TEAM))
        for _ in range(5):
            await asyncio.sleep(0)
    gate.set()
    await settle(subscription)

    assert seen == ["1", "3"]
    await subscription.close()


@pytest.mark.asyncio
async def test_close_releases_channel() -> None:
    feed, recorder = InMemoryChangeFeed(), Recorder()
    async with make(feed, recorder) as subscription:
        await settle(subscription)
        assert feed.channel_count == 1

    assert subscription.state == SubscriptionState.CLOSED
    assert feed.channel_count == 0
    feed.publish(change_event("employees", ChangeType.INSERT, team_id=TEAM))
    await asyncio.sleep(0)
    assert recorder.events == []


@pytest.mark.asyncio
async def test_refresh_callback_can_close_its_subscription() -> None:
    feed = InMemoryChangeFeed()
    subscription: RealtimeSubscription

    async def close_on_change(event: ChangeEvent) -> None:
        await subscription.close()

    subscription = RealtimeSubscription(
        feed, "matrix:test", BINDINGS, close_on_change, policy=NO_DELAY
    )
    await subscription.open()
    await settle(subscription)
    feed.publish(change_event("employees", ChangeType.DELETE, team_id=TEAM))
    await settle(subscription)

    assert subscription.state == SubscriptionState.CLOSED
    assert feed.channel_count == 0
