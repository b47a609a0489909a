from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from storesync.adapters.http_resilience import ResilientClient
from storesync.adapters.platform import (
    GraphQLClient,
    GraphQLEntityRepository,
    build_repositories,
    operations_for,
)
from storesync.config.http_resilience import ResilienceConfig
from storesync.domain.entities import EntityType, family_for
from storesync.domain.ports import EntityRepository
from storesync.errors import GraphQLApplicationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

type Responder = Callable[[str, dict[str, object]], dict[str, object]]


class _Platform:
    """Record GraphQL calls and answer each with ``respond(query, variables)``."""

    def __init__(self, respond: Responder) -> None:
        self.respond = respond
        self.calls: list[tuple[str, dict[str, object]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        variables = body.get("variables", {})
        self.calls.append((body["query"], variables))
        return httpx.Response(200, json={"data": self.respond(body["query"], variables)})

    def run[T](
        self,
        entity_type: EntityType,
        action: Callable[[GraphQLEntityRepository], Awaitable[T]],
        *,
        page_size: int = 100,
    ) -> T:
        async def scenario() -> T:
            resilience = ResilienceConfig(name="platform", base_url="https://store.example.com/")
            transport = httpx.MockTransport(self)
            async with GraphQLClient(
                resilience,
                client_factory=lambda config: ResilientClient(config, transport=transport),
            ) as client:
                repository = GraphQLEntityRepository(
                    client,
                    operations_for(entity_type),
                    family_for(entity_type),
                    page_size=page_size,
                )
                return await action(repository)

        return asyncio.run(scenario())


def _page(nodes: list[dict[str, object]], cursor: str | None) -> dict[str, object]:
    return {
        "edges": [{"node": node} for node in nodes],
        "pageInfo": {"hasNextPage": cursor is not None, "endCursor": cursor},
    }


def test_list_existing_follows_cursors() -> None:
    pages = {
        None: _page([{"id": "1", "slug": "berlin"}, {"id": "2", "slug": "paris"}], "c2"),
        "c2": _page([{"id": "3", "slug": "rome"}], None),
    }
    platform = _Platform(lambda query, variables: {"warehouses": pages[variables.get("after")]})

    nodes = platform.run(EntityType.WAREHOUSES, lambda repo: repo.list_existing(), page_size=2)

    assert [node["slug"] for node in nodes] == ["berlin", "paris", "rome"]
    assert [variables for _, variables in platform.calls] == [
        {"first": 2},
        {"first": 2, "after": "c2"},
    ]


def test_unpaginated_list() -> None:
    platform = _Platform(lambda query, variables: {"channels": [{"id": "1", "slug": "web"}]})

    nodes = platform.run(EntityType.CHANNELS, lambda repo: repo.list_existing())

    assert nodes == [{"id": "1", "slug": "web"}]
    assert platform.calls[0][1] == {}


def test_find_by_slug_uses_lookup_query() -> None:
    platform = _Platform(lambda query, variables: {"category": {"id": "9", "slug": "shoes"}})

    found = platform.run(EntityType.CATEGORIES, lambda repo: repo.find_by_key("shoes"))

    assert found == {"id": "9", "slug": "shoes"}
    query, variables = platform.calls[0]
    assert query.startswith("query Lookup")
    assert variables == {"slug": "shoes"}


def test_find_by_slug_returns_none_when_missing() -> None:
    platform = _Platform(lambda query, variables: {"product": None})

    assert platform.run(EntityType.PRODUCTS, lambda repo: repo.find_by_key("tee")) is None


def test_find_by_name_requires_exact_match() -> None:
    platform = _Platform(
        lambda query, variables: {
            "attributes": _page(
                [{"id": "1", "name": "Color Family"}, {"id": "2", "name": "Color"}], None
            )
        }
    )

    found = platform.run(EntityType.ATTRIBUTES, lambda repo: repo.find_by_key("Color"))

    assert found == {"id": "2", "name": "Color"}
    query, variables = platform.calls[0]
    assert "filter: { search: $search }" in query
    assert variables == {"first": 100, "search": "Color"}


def test_create_returns_result_entity() -> None:
    platform = _Platform(
        lambda query, variables: {
            "productTypeCreate": {"productType": {"id": "pt-1", "name": "Shirt"}, "errors": []}
        }
    )

    created = platform.run(
        EntityType.PRODUCT_TYPES, lambda repo: repo.create({"name": "Shirt"})
    )

    assert created == {"id": "pt-1", "name": "Shirt"}
    assert platform.calls[0][1] == {"input": {"name": "Shirt"}}


def test_mutation_errors_raise_application_error() -> None:
    platform = _Platform(
        lambda query, variables: {
            "categoryUpdate": {
                "category": None,
                "errors": [{"field": "slug", "message": "Slug taken", "code": "UNIQUE"}],
            }
        }
    )

    with pytest.raises(GraphQLApplicationError) as excinfo:
        platform.run(
            EntityType.CATEGORIES,
            lambda repo: repo.update("c-1", {"slug": "shoes", "name": "Shoes"}),
        )

    assert str(excinfo.value) == "Failed to update categories shoes: [slug] Slug taken"
    assert excinfo.value.errors[0].code == "UNIQUE"
    assert platform.calls[0][1] == {"id": "c-1", "input": {"slug": "shoes", "name": "Shoes"}}


def test_delete_checks_payload() -> None:
    platform = _Platform(lambda query, variables: {"deleteWarehouse": None})

    with pytest.raises(GraphQLApplicationError, match="empty mutation payload"):
        platform.run(EntityType.WAREHOUSES, lambda repo: repo.delete("w-1"))


def test_build_repositories_covers_every_family() -> None:
    async def scenario() -> None:
        async with GraphQLClient(ResilienceConfig(name="platform")) as client:
            repositories = build_repositories(client)
            assert set(repositories) == set(EntityType)
            assert all(isinstance(repo, EntityRepository) for repo in repositories.values())

    asyncio.run(scenario())
