"""
Realtime Subscription

A scoped change-feed subscription with a small retry state machine::

    CONNECTING --subscribed--> CONNECTED
    CONNECTING/CONNECTED --error|timeout--> RETRYING --subscribed--> CONNECTED
    RETRYING --attempts exhausted--> FAILED
    any --close--> CLOSED

Retries use a fixed delay and a bounded attempt count. While the consuming
view is hidden, retries are deferred; when it becomes visible again a single
retry is flushed immediately. Every matching change triggers a full refresh
of the view; refreshes requested while one is running are coalesced.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from skill_matrix.core.config import settings
from skill_matrix.core.observability import (
    REALTIME_RECONNECTS,
    REALTIME_SUBSCRIPTIONS,
    get_logger,
)

from .change_feed import ChangeEvent, ChangeFeed, ChannelStatus, TableBinding

logger = get_logger(__name__)


class SubscriptionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry configuration."""

    max_attempts: int = 5
    delay_seconds: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.REALTIME_MAX_RETRIES,
            delay_seconds=settings.REALTIME_RETRY_DELAY_SECONDS,
        )


RefreshCallback = Callable[[ChangeEvent], Awaitable[None]]
StateCallback = Callable[[SubscriptionState, str | None], Awaitable[None]]


class RealtimeSubscription:
    def __init__(
        self,
        feed: ChangeFeed,
        name: str,
        bindings: Sequence[TableBinding],
        on_refresh: RefreshCallback,
        *,
        on_state: StateCallback | None = None,
        policy: RetryPolicy | None = None,
        visible: bool = True,
    ) -> None:
        self.feed = feed
        self.name = name
        self.bindings = tuple(bindings)
        self.policy = policy or RetryPolicy.from_settings()
        self.visible = visible
        self.state = SubscriptionState.CONNECTING
        self.attempts = 0
        self.retry_pending = False
        self.last_error: str | None = None

        self._on_refresh = on_refresh
        self._on_state = on_state
        self._channel: Any = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._refreshing = False
        self._refresh_queued: ChangeEvent | None = None

    async def __aenter__(self) -> "RealtimeSubscription":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def failure_message(self) -> str | None:
        if self.state != SubscriptionState.FAILED:
            return None
        return (
            f"Realtime connection failed after {self.policy.max_attempts} attempts: "
            f"{self.last_error or 'unknown error'}"
        )

    async def open(self) -> None:
        REALTIME_SUBSCRIPTIONS.inc()
        self._set_state(SubscriptionState.CONNECTING)
        await self._connect()

    async def close(self) -> None:
        """Unsubscribe and release the channel. Never raises on release errors."""
        if self.state == SubscriptionState.CLOSED:
            return
        self.state = SubscriptionState.CLOSED
        REALTIME_SUBSCRIPTIONS.dec()
        current = asyncio.current_task()
        for task in list(self._tasks):
            # A refresh callback may close its own subscription
            if task is not current:
                task.cancel()
        await self._release_channel()
        logger.info("Realtime subscription closed", channel=self.name)

    def set_visible(self, visible: bool) -> None:
        self.visible = visible
        if visible and self.retry_pending and self.state != SubscriptionState.CLOSED:
            self.retry_pending = False
            logger.info("View visible again, retrying deferred subscription", channel=self.name)
            self._spawn(self._reconnect())

    async def _connect(self) -> None:
        try:
            self._channel = await self.feed.open_channel(
                self.name, self.bindings, self._handle_change, self._handle_status
            )
        except Exception as e:
            logger.warning(
                "Realtime subscribe failed", channel=self.name, error=str(e)
            )
            self._handle_status(ChannelStatus.CHANNEL_ERROR, str(e))

    async def _reconnect(self) -> None:
        if self.state == SubscriptionState.CLOSED:
            return
        await self._release_channel()
        await self._connect()

    async def _retry_later(self) -> None:
        await asyncio.sleep(self.policy.delay_seconds)
        if self.state == SubscriptionState.CLOSED:
            return
        if not self.visible:
            self.retry_pending = True
            return
        await self._reconnect()

    async def _release_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await self.feed.close_channel(channel)
        except Exception as e:
            logger.error(
                "Error removing realtime channel", channel=self.name, error=str(e)
            )

    def _handle_status(self, status: ChannelStatus, message: str | None) -> None:
        if self.state == SubscriptionState.CLOSED:
            return
        if status == ChannelStatus.SUBSCRIBED:
            if self.attempts:
                REALTIME_RECONNECTS.labels(channel_kind=self.name, outcome="recovered").inc()
            self.attempts = 0
            self.retry_pending = False
            self.last_error = None
            self._set_state(SubscriptionState.CONNECTED)
            logger.info("Realtime channel subscribed", channel=self.name)
        elif status in (ChannelStatus.CHANNEL_ERROR, ChannelStatus.TIMED_OUT):
            self._handle_failure(message or status.value)
        else:
            logger.debug("Realtime channel closed by server", channel=self.name)

    def _handle_failure(self, message: str) -> None:
        self.last_error = message
        logger.warning(
            "Realtime subscription error",
            channel=self.name,
            error=message,
            attempts=self.attempts,
        )
        if not self.visible:
            self.retry_pending = True
            self._set_state(SubscriptionState.RETRYING, message)
            return
        if self.attempts < self.policy.max_attempts:
            self.attempts += 1
            REALTIME_RECONNECTS.labels(channel_kind=self.name, outcome="retry").inc()
            self._set_state(SubscriptionState.RETRYING, message)
            self._spawn(self._retry_later())
            return
        REALTIME_RECONNECTS.labels(channel_kind=self.name, outcome="exhausted").inc()
        self._set_state(SubscriptionState.FAILED, self.failure_message)
        self._spawn(self._release_channel())

    def _handle_change(self, event: ChangeEvent) -> None:
        if self.state == SubscriptionState.CLOSED:
            return
        if self._refreshing:
            self._refresh_queued = event
            return
        self._spawn(self._run_refresh(event))

    async def _run_refresh(self, event: ChangeEvent) -> None:
        self._refreshing = True
        try:
            next_event: ChangeEvent | None = event
            while next_event is not None and self.state != SubscriptionState.CLOSED:
                self._refresh_queued = None
                try:
                    await self._on_refresh(next_event)
                except Exception as e:
                    logger.error(
                        "Refresh after change failed",
                        channel=self.name,
                        table=next_event.table,
                        error=str(e),
                    )
                next_event = self._refresh_queued
        finally:
            self._refreshing = False

    def _set_state(self, state: SubscriptionState, message: str | None = None) -> None:
        self.state = state
        if self._on_state is not None:
            self._spawn(self._on_state(state, message))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for scheduled retries, refreshes and state callbacks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
