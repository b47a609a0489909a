"""Ports for reading and mutating entities on the commerce platform."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

type RemoteEntity = Mapping[str, object]
"""An entity as the platform returns it; carries an ``id`` next to its fields."""


@runtime_checkable
class EntityRepository(Protocol):
    """Remote store for one entity family.

    Implementations never retry; retrying and adaptive throttling are left
    to the caller.
    """

    async def list_existing(self) -> list[RemoteEntity]: ...

    async def find_by_key(self, key: str) -> RemoteEntity | None: ...

    async def create(self, entity: Mapping[str, object]) -> RemoteEntity: ...

    async def update(self, entity_id: str, entity: Mapping[str, object]) -> RemoteEntity: ...

    async def delete(self, entity_id: str) -> None: ...


def entity_id_of(entity: RemoteEntity) -> str:
    entity_id = entity.get("id")
    if not isinstance(entity_id, str) or not entity_id:
        raise ValueError("Remote entity is missing its platform id")
    return entity_id
