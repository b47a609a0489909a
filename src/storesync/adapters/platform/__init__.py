"""Public interface for the commerce platform adapter."""

from __future__ import annotations

from .client import GraphQLClient, GraphQLResponseError
from .operations import OPERATIONS, EntityOperations, operations_for
from .repository import GraphQLEntityRepository, build_repositories

__all__ = [
    "OPERATIONS",
    "EntityOperations",
    "GraphQLClient",
    "GraphQLEntityRepository",
    "GraphQLResponseError",
    "build_repositories",
    "operations_for",
]
