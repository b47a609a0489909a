"""Pydantic models describing GraphQL response envelopes of the platform."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PlatformBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GraphQLErrorPayload(PlatformBaseModel):
    message: str = ""
    path: list[str | int] | None = None
    extensions: dict[str, object] | None = None


class GraphQLEnvelope(PlatformBaseModel):
    data: dict[str, object] | None = None
    errors: list[GraphQLErrorPayload] = Field(default_factory=list)


class PageInfo(PlatformBaseModel):
    has_next_page: bool = Field(default=False, alias="hasNextPage")
    end_cursor: str | None = Field(default=None, alias="endCursor")


class Edge(PlatformBaseModel):
    node: dict[str, object]


class Connection(PlatformBaseModel):
    edges: list[Edge] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")

    @property
    def nodes(self) -> list[dict[str, object]]:
        return [edge.node for edge in self.edges]


class MutationError(PlatformBaseModel):
    """Field-level error returned inside a mutation payload."""

    field: str | None = None
    message: str | None = None
    code: str | None = None


class MutationPayload(PlatformBaseModel):
    errors: list[MutationError] = Field(default_factory=list)
