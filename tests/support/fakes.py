from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from storesync.domain.entities import EntityFamily
    from storesync.domain.ports import RemoteEntity


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async sleeper that records requested delays and advances a fake clock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)
        await asyncio.sleep(0)


class FakeRepository:
    """In-memory ``EntityRepository`` with scripted failures.

    ``fail_on`` maps ``(operation, key)`` to errors raised on successive
    calls; once the list is exhausted the call succeeds. ``delays`` suspends
    the matching calls for real seconds and records a ``"done <operation>"``
    call once they resume.
    """

    def __init__(
        self,
        family: EntityFamily,
        existing: Iterable[Mapping[str, object]] = (),
        *,
        fail_on: Mapping[tuple[str, str], list[Exception]] | None = None,
        delays: Mapping[tuple[str, str], float] | None = None,
    ) -> None:
        self.family = family
        self.entities: dict[str, dict[str, object]] = {}
        self.calls: list[tuple[str, str]] = []
        self._delays = dict(delays or {})
        self._failures: dict[tuple[str, str], list[Exception]] = defaultdict(list)
        for (operation, key), errors in (fail_on or {}).items():
            self._failures[operation, key].extend(errors)
        self._next_id = 1
        for entity in existing:
            self._store(dict(entity))

    async def list_existing(self) -> list[RemoteEntity]:
        self._record("list", "*")
        await self._suspend("list", "*")
        return [dict(entity) for entity in self.entities.values()]

    async def find_by_key(self, key: str) -> RemoteEntity | None:
        self._record("find", key)
        entity = self.entities.get(key)
        return dict(entity) if entity is not None else None

    async def create(self, entity: Mapping[str, object]) -> RemoteEntity:
        key = self.family.key_of(entity)
        self._record("create", key)
        await self._suspend("create", key)
        return dict(self._store(dict(entity)))

    async def update(self, entity_id: str, entity: Mapping[str, object]) -> RemoteEntity:
        key = self._key_for_id(entity_id)
        self._record("update", key)
        merged = {**self.entities[key], **entity, "id": entity_id}
        self.entities[key] = merged
        return dict(merged)

    async def delete(self, entity_id: str) -> None:
        key = self._key_for_id(entity_id)
        self._record("delete", key)
        del self.entities[key]

    def operations(self, operation: str) -> list[str]:
        return [key for name, key in self.calls if name == operation]

    async def _suspend(self, operation: str, key: str) -> None:
        delay = self._delays.get((operation, key))
        if delay is not None:
            await asyncio.sleep(delay)
            self.calls.append((f"done {operation}", key))

    def _record(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        pending = self._failures.get((operation, key))
        if pending:
            raise pending.pop(0)

    def _store(self, entity: dict[str, object]) -> dict[str, object]:
        if "id" not in entity:
            entity["id"] = f"{self.family.entity_type}-{self._next_id}"
            self._next_id += 1
        self.entities[self.family.key_of(entity)] = entity
        return entity

    def _key_for_id(self, entity_id: str) -> str:
        for key, entity in self.entities.items():
            if entity.get("id") == entity_id:
                return key
        raise LookupError(f"No entity with id {entity_id}")
