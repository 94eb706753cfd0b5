"""Change feed backed by Supabase Realtime ``postgres_changes``."""

from collections.abc import Mapping, Sequence
from typing import Any

from supabase import AsyncClient, acreate_client

from skill_matrix.core.config import settings
from skill_matrix.core.observability import get_logger

from .change_feed import (
    ChangeEvent,
    ChangeHandler,
    ChangeType,
    ChannelStatus,
    StatusHandler,
    TableBinding,
)

logger = get_logger(__name__)


def parse_postgres_change(payload: Mapping[str, Any]) -> ChangeEvent | None:
    """Turn a realtime payload into a ``ChangeEvent``; None if unrecognised."""
    data = payload.get("data", payload)
    raw_type = data.get("type") or data.get("eventType")
    table = data.get("table")
    if not raw_type or not table:
        return None
    try:
        change_type = ChangeType(str(raw_type).upper())
    except ValueError:
        return None
    return ChangeEvent(
        table=table,
        change_type=change_type,
        record=data.get("record") or data.get("new") or {},
        old_record=data.get("old_record") or data.get("old") or {},
    )


def postgres_filter(binding: TableBinding) -> str | None:
    # Realtime accepts a single equality filter per binding
    if not binding.filters:
        return None
    column, value = next(iter(binding.filters.items()))
    if len(binding.filters) > 1:
        logger.warning(
            "Only the first filter is sent to realtime",
            table=binding.table,
            filters=dict(binding.filters),
        )
    return f"{column}=eq.{value}"


class SupabaseChangeFeed:
    """Subscribes to database changes replicated by Supabase Realtime.

    Writes are broadcast by the database itself, so ``publish`` does nothing.
    """

    def __init__(self, url: str, key: str) -> None:
        self._url = url
        self._key = key
        self._client: AsyncClient | None = None

    @classmethod
    def from_settings(cls) -> "SupabaseChangeFeed":
        if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_PUBLISHABLE_KEY are required")
        return cls(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(self._url, self._key)
        return self._client

    async def open_channel(
        self,
        name: str,
        bindings: Sequence[TableBinding],
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> Any:
        client = await self._get_client()
        channel = client.channel(name)

        def _on_payload(payload: Mapping[str, Any]) -> None:
            event = parse_postgres_change(payload)
            if event is not None:
                on_change(event)

        for binding in bindings:
            channel.on_postgres_changes(
                "*",
                schema="public",
                table=binding.table,
                filter=postgres_filter(binding),
                callback=_on_payload,
            )

        def _on_subscribe(state: Any, error: Exception | None) -> None:
            raw = getattr(state, "value", state)
            try:
                status = ChannelStatus(str(raw))
            except ValueError:
                logger.warning("Unknown realtime status", channel=name, status=raw)
                return
            on_status(status, str(error) if error else None)

        await channel.subscribe(_on_subscribe)
        return channel

    async def close_channel(self, channel: Any) -> None:
        client = await self._get_client()
        await client.remove_channel(channel)

    def publish(self, event: ChangeEvent) -> None:
        logger.debug("Change left to database replication", table=event.table)
