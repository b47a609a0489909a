"""Generic GraphQL repository for one entity family."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from storesync.domain.entities import FAMILIES
from storesync.errors import GraphQLApplicationError, GraphQLErrorDetail

from .operations import OPERATIONS
from .schema import Connection, MutationPayload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from storesync.domain.entities import EntityFamily, EntityType
    from storesync.domain.ports import RemoteEntity

    from .client import GraphQLClient
    from .operations import EntityOperations

log = getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class GraphQLEntityRepository:
    """``EntityRepository`` backed by the platform's GraphQL API.

    ``list_existing`` follows ``pageInfo`` cursors until the last page, so a
    retry of the call restarts from the first page.
    """

    def __init__(
        self,
        client: GraphQLClient,
        operations: EntityOperations,
        family: EntityFamily,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._operations = operations
        self._family = family
        self._page_size = page_size

    @property
    def entity_type(self) -> EntityType:
        return self._operations.entity_type

    async def list_existing(self) -> list[RemoteEntity]:
        operations = self._operations
        if not operations.paginated:
            data = await self._client.execute(operations.list_query)
            return _node_list(data.get(operations.list_root))

        nodes: list[RemoteEntity] = []
        cursor: str | None = None
        while True:
            variables: dict[str, object] = {"first": self._page_size}
            if cursor is not None:
                variables["after"] = cursor
            data = await self._client.execute(operations.list_query, variables)
            connection = Connection.model_validate(data.get(operations.list_root) or {})
            nodes.extend(connection.nodes)
            if not connection.page_info.has_next_page or not connection.page_info.end_cursor:
                break
            cursor = connection.page_info.end_cursor
        log.debug("Listed %s %s", len(nodes), self.entity_type)
        return nodes

    async def find_by_key(self, key: str) -> RemoteEntity | None:
        operations = self._operations
        lookup = operations.lookup_query
        if lookup is not None and self._family.key_field == "slug":
            data = await self._client.execute(lookup, {"slug": key})
            node = data.get(operations.lookup_root or "")
            return node if isinstance(node, dict) else None

        if operations.paginated:
            data = await self._client.execute(
                operations.search_query, {"first": self._page_size, "search": key}
            )
            candidates = Connection.model_validate(data.get(operations.list_root) or {}).nodes
        else:
            data = await self._client.execute(operations.list_query)
            candidates = _node_list(data.get(operations.list_root))
        # search filters match loosely; only an exact key counts
        for node in candidates:
            if node.get(self._family.key_field) == key:
                return node
        return None

    async def create(self, entity: Mapping[str, object]) -> RemoteEntity:
        operations = self._operations
        data = await self._client.execute(operations.create_mutation, {"input": dict(entity)})
        return self._mutation_result(data, operations.create_root, "create", entity)

    async def update(self, entity_id: str, entity: Mapping[str, object]) -> RemoteEntity:
        operations = self._operations
        data = await self._client.execute(
            operations.update_mutation, {"id": entity_id, "input": dict(entity)}
        )
        return self._mutation_result(data, operations.update_root, "update", entity)

    async def delete(self, entity_id: str) -> None:
        data = await self._client.execute(self._operations.delete_mutation, {"id": entity_id})
        payload = data.get(self._operations.delete_root)
        self._raise_for_errors(payload, "delete", entity_id)

    def _mutation_result(
        self,
        data: Mapping[str, object],
        root: str,
        action: str,
        entity: Mapping[str, object],
    ) -> RemoteEntity:
        payload = data.get(root)
        label = str(entity.get(self._family.key_field, "?"))
        self._raise_for_errors(payload, action, label)
        result = payload.get(self._operations.result_field) if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise GraphQLApplicationError(
                f"Failed to {action} {self.entity_type} {label}: no entity returned"
            )
        return result

    def _raise_for_errors(self, payload: object, action: str, label: str) -> None:
        if payload is None:
            raise GraphQLApplicationError(
                f"Failed to {action} {self.entity_type} {label}: empty mutation payload"
            )
        errors = MutationPayload.model_validate(payload).errors
        if not errors:
            return
        details = [
            GraphQLErrorDetail(
                message=error.message or "unknown error",
                code=error.code,
                path=(error.field,) if error.field else (),
            )
            for error in errors
        ]
        raise GraphQLApplicationError(
            f"Failed to {action} {self.entity_type} {label}", errors=details
        )


def _node_list(value: object) -> list[RemoteEntity]:
    if not isinstance(value, list):
        return []
    return [node for node in value if isinstance(node, dict)]


def build_repositories(
    client: GraphQLClient,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> dict[EntityType, GraphQLEntityRepository]:
    return {
        entity_type: GraphQLEntityRepository(
            client, operations, FAMILIES[entity_type], page_size=page_size
        )
        for entity_type, operations in OPERATIONS.items()
    }
