"""Domain port definitions for adapters."""

from __future__ import annotations

from .platform import EntityRepository, RemoteEntity, entity_id_of

__all__ = [
    "EntityRepository",
    "RemoteEntity",
    "entity_id_of",
]
