"""Room and player directories on top of a KeyValueStore.

Records are stored as JSON under "room:<id>" and "player:<id>" keys with a
best-effort TTL that is refreshed on every write. Room activity lives in its
own "activity:<id>" key, so marking a room as active never rewrites the room
snapshot itself.

When the store is unavailable, writes and deletes are kept in a
process-local cache. Pending local entries win over whatever the store
holds and are written back once the store answers again, so an outage
degrades to single-process behaviour instead of losing operations.
"""

from __future__ import annotations

import contextlib
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field

from game.logic.state import RoomState, utc_now
from shared.storage import StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from shared.storage import KeyValueStore

logger = structlog.get_logger()

ROOM_KEY_PREFIX = "room:"
ACTIVITY_KEY_PREFIX = "activity:"
PLAYER_KEY_PREFIX = "player:"
DEFAULT_RECORD_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_IDLE_SECONDS = 60 * 60


class RoomRecord(BaseModel):
    """Stored envelope around a room snapshot."""

    model_config = ConfigDict(frozen=True)

    room: RoomState
    last_activity: datetime  # when the snapshot was written


class PlayerRecord(BaseModel):
    """Which room a player id belongs to."""

    model_config = ConfigDict(frozen=True)

    name: str
    room_id: str
    connected_at: datetime = Field(default_factory=utc_now)


class _FallbackStore:
    """Wraps a KeyValueStore with a local cache of writes the store could not take.

    A local value of None marks a delete that has not reached the store yet.
    """

    def __init__(self, store: KeyValueStore, ttl_seconds: int) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._pending: dict[str, str | None] = {}

    async def write(self, key: str, value: str) -> None:
        try:
            await self._store.set(key, value, ttl_seconds=self._ttl_seconds)
        except StoreUnavailableError:
            logger.warning("store write failed, keeping record in local cache", key=key, exc_info=True)
            self._pending[key] = value
            return
        self._pending.pop(key, None)

    async def read(self, key: str) -> str | None:
        try:
            value = await self._store.get(key)
        except StoreUnavailableError:
            logger.warning("store read failed, using local cache", key=key, exc_info=True)
            return self._pending.get(key)
        if key in self._pending:
            return await self._write_back(key)
        return value

    async def remove(self, key: str) -> None:
        try:
            await self._store.delete(key)
        except StoreUnavailableError:
            logger.warning("store delete failed, keeping tombstone in local cache", key=key, exc_info=True)
            self._pending[key] = None
            return
        self._pending.pop(key, None)

    async def refresh(self, key: str) -> None:
        """Push the key's expiry out by the record TTL."""
        try:
            await self._store.expire(key, self._ttl_seconds)
        except StoreUnavailableError:
            logger.warning("store expire failed", key=key, exc_info=True)

    async def keys(self, prefix: str) -> list[str]:
        pending = {key: value for key, value in self._pending.items() if key.startswith(prefix)}
        try:
            stored = await self._store.keys(prefix)
        except StoreUnavailableError:
            logger.warning("store scan failed, listing local cache only", prefix=prefix, exc_info=True)
            stored = []
        live = [key for key in stored if key not in pending]
        live.extend(key for key, value in pending.items() if value is not None)
        return list(dict.fromkeys(live))

    async def _write_back(self, key: str) -> str | None:
        """Replay a pending local write or delete against the store and return the local value."""
        value = self._pending[key]
        try:
            if value is None:
                await self._store.delete(key)
            else:
                await self._store.set(key, value, ttl_seconds=self._ttl_seconds)
        except StoreUnavailableError:
            logger.warning("store still unavailable, keeping local copy", key=key, exc_info=True)
            return value
        # A newer local write may have landed while we were awaiting the store.
        if key in self._pending and self._pending[key] is value:
            del self._pending[key]
        logger.info("local record written back to store", key=key)
        return value


class RoomDirectory:
    """Maps room id to the latest RoomState, with idle eviction."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: int = DEFAULT_RECORD_TTL_SECONDS,
        max_idle_seconds: int = DEFAULT_MAX_IDLE_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._records = _FallbackStore(store, ttl_seconds)
        self._max_idle = timedelta(seconds=max_idle_seconds)
        self._clock = clock

    @staticmethod
    def _key(room_id: str) -> str:
        return f"{ROOM_KEY_PREFIX}{room_id}"

    @staticmethod
    def _activity_key(room_id: str) -> str:
        return f"{ACTIVITY_KEY_PREFIX}{room_id}"

    async def _load(self, room_id: str) -> RoomRecord | None:
        raw = await self._records.read(self._key(room_id))
        if raw is None:
            return None
        return RoomRecord.model_validate_json(raw)

    async def _last_activity(self, room_id: str, record: RoomRecord) -> datetime:
        raw = await self._records.read(self._activity_key(room_id))
        if raw is None:
            return record.last_activity
        return max(record.last_activity, datetime.fromisoformat(raw))

    async def put(self, state: RoomState) -> None:
        now = self._clock()
        record = RoomRecord(room=state, last_activity=now)
        await self._records.write(self._key(state.room_id), record.model_dump_json())
        await self._records.write(self._activity_key(state.room_id), now.isoformat())

    async def touch(self, room_id: str) -> None:
        """Mark the room as active and refresh its TTL without rewriting the snapshot."""
        await self._records.write(self._activity_key(room_id), self._clock().isoformat())
        await self._records.refresh(self._key(room_id))

    async def get(self, room_id: str) -> RoomState | None:
        """Return the room and mark it as active."""
        record = await self._load(room_id)
        if record is None:
            return None
        await self.touch(room_id)
        return record.room

    async def peek(self, room_id: str) -> RoomState | None:
        """Return the room without refreshing its activity time."""
        record = await self._load(room_id)
        return record.room if record is not None else None

    async def exists(self, room_id: str) -> bool:
        return await self._records.read(self._key(room_id)) is not None

    async def delete(self, room_id: str) -> None:
        await self._records.remove(self._key(room_id))
        await self._records.remove(self._activity_key(room_id))

    async def list_all(self) -> list[tuple[str, RoomState]]:
        """Return every stored room without touching its activity time."""
        rooms: list[tuple[str, RoomState]] = []
        for key in await self._records.keys(ROOM_KEY_PREFIX):
            room_id = key.removeprefix(ROOM_KEY_PREFIX)
            record = await self._load(room_id)
            if record is not None:
                rooms.append((room_id, record.room))
        return rooms

    async def is_idle(self, room_id: str, max_age_seconds: int | None = None) -> bool:
        """True if the room exists and was last touched longer ago than the max age."""
        record = await self._load(room_id)
        if record is None:
            return False
        max_age = self._max_idle if max_age_seconds is None else timedelta(seconds=max_age_seconds)
        return self._clock() - await self._last_activity(room_id, record) > max_age

    async def idle_room_ids(self, max_age_seconds: int | None = None) -> list[str]:
        idle: list[str] = []
        for key in await self._records.keys(ROOM_KEY_PREFIX):
            room_id = key.removeprefix(ROOM_KEY_PREFIX)
            if await self.is_idle(room_id, max_age_seconds):
                idle.append(room_id)
        return idle

    async def sweep_idle(
        self,
        max_age_seconds: int | None = None,
        *,
        lock_for: Callable[[str], AbstractAsyncContextManager[object]] | None = None,
    ) -> list[RoomState]:
        """Delete rooms idle past the max age and return their last snapshots.

        With lock_for, each candidate is re-checked and deleted while holding
        the lock it returns, so a room touched in the meantime is kept.
        """
        evicted: list[RoomState] = []
        for room_id in await self.idle_room_ids(max_age_seconds):
            guard = lock_for(room_id) if lock_for is not None else contextlib.nullcontext()
            async with guard:
                if not await self.is_idle(room_id, max_age_seconds):
                    continue
                state = await self.peek(room_id)
                await self.delete(room_id)
            if state is not None:
                evicted.append(state)
            logger.info("room evicted", room_id=room_id)
        return evicted


class PlayerDirectory:
    """Maps player id to the room they joined."""

    def __init__(self, store: KeyValueStore, *, ttl_seconds: int = DEFAULT_RECORD_TTL_SECONDS) -> None:
        self._records = _FallbackStore(store, ttl_seconds)

    @staticmethod
    def _key(player_id: str) -> str:
        return f"{PLAYER_KEY_PREFIX}{player_id}"

    async def put(self, player_id: str, record: PlayerRecord) -> None:
        await self._records.write(self._key(player_id), record.model_dump_json())

    async def get(self, player_id: str) -> PlayerRecord | None:
        raw = await self._records.read(self._key(player_id))
        if raw is None:
            return None
        return PlayerRecord.model_validate_json(raw)

    async def delete(self, player_id: str) -> None:
        await self._records.remove(self._key(player_id))
