"""
Change feed primitives.

A change feed delivers insert/update/delete notifications per table, filtered
by equality predicates such as ``team_id``. Consumers open named channels
with a set of bindings and get two callbacks: one per matching change and one
per channel status transition.

``InMemoryChangeFeed`` is the in-process implementation: services publish to
it after committing, and it hands events to each subscriber's own event loop.
"""

import asyncio
import itertools
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from skill_matrix.core.observability import get_logger

logger = get_logger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChannelStatus(str, Enum):
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    change_type: ChangeType
    record: Mapping[str, Any] = field(default_factory=dict)
    old_record: Mapping[str, Any] = field(default_factory=dict)

    def value(self, column: str) -> Any:
        # Deletes only carry the old row
        if column in self.record:
            return self.record[column]
        return self.old_record.get(column)


@dataclass(frozen=True)
class TableBinding:
    table: str
    filters: Mapping[str, str] = field(default_factory=dict)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        for column, expected in self.filters.items():
            actual = event.value(column)
            if actual is None or str(actual) != expected:
                return False
        return True


ChangeHandler = Callable[[ChangeEvent], None]
StatusHandler = Callable[[ChannelStatus, str | None], None]


class ChangePublisher(Protocol):
    def publish(self, event: ChangeEvent) -> None: ...


class ChangeFeed(ChangePublisher, Protocol):
    async def open_channel(
        self,
        name: str,
        bindings: Sequence[TableBinding],
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> Any: ...

    async def close_channel(self, channel: Any) -> None: ...


def change_event(
    table: str,
    change_type: ChangeType,
    **values: UUID | str | int | None,
) -> ChangeEvent:
    """Build an event whose row carries ``values`` as strings."""
    row = {k: (str(v) if isinstance(v, UUID) else v) for k, v in values.items()}
    if change_type == ChangeType.DELETE:
        return ChangeEvent(table=table, change_type=change_type, old_record=row)
    return ChangeEvent(table=table, change_type=change_type, record=row)


@dataclass
class InMemoryChannel:
    id: int
    name: str
    bindings: tuple[TableBinding, ...]
    on_change: ChangeHandler
    on_status: StatusHandler
    loop: asyncio.AbstractEventLoop

    def wants(self, event: ChangeEvent) -> bool:
        return any(binding.matches(event) for binding in self.bindings)


class InMemoryChangeFeed:
    """Thread-safe in-process feed.

    ``publish`` may be called from any thread (sync routes run in a
    threadpool); handlers always run on the loop that opened the channel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[int, InMemoryChannel] = {}
        self._ids = itertools.count(1)

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    async def open_channel(
        self,
        name: str,
        bindings: Sequence[TableBinding],
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> InMemoryChannel:
        loop = asyncio.get_running_loop()
        channel = InMemoryChannel(
            id=next(self._ids),
            name=name,
            bindings=tuple(bindings),
            on_change=on_change,
            on_status=on_status,
            loop=loop,
        )
        with self._lock:
            self._channels[channel.id] = channel
        loop.call_soon(on_status, ChannelStatus.SUBSCRIBED, None)
        logger.debug("Channel opened", channel=name, channel_id=channel.id)
        return channel

    async def close_channel(self, channel: InMemoryChannel) -> None:
        with self._lock:
            self._channels.pop(channel.id, None)
        logger.debug("Channel closed", channel=channel.name, channel_id=channel.id)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [c for c in self._channels.values() if c.wants(event)]
        for channel in targets:
            try:
                channel.loop.call_soon_threadsafe(channel.on_change, event)
            except RuntimeError:
                # Subscriber loop already closed; its channel is going away
                logger.warning(
                    "Dropping change for closed loop",
                    channel=channel.name,
                    table=event.table,
                )

    def fail_channel(
        self, channel: InMemoryChannel, status: ChannelStatus, message: str | None
    ) -> None:
        """Report a channel failure to its subscriber and drop the channel."""
        with self._lock:
            self._channels.pop(channel.id, None)
        channel.loop.call_soon_threadsafe(channel.on_status, status, message)
