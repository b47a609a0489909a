"""GraphQL client for the commerce platform API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from storesync.adapters.http_resilience import ResilientClient

from .schema import GraphQLEnvelope, GraphQLErrorPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from types import TracebackType

    import httpx

    from storesync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class GraphQLResponseError(RuntimeError):
    """Raised when the platform answers with top-level GraphQL errors.

    ``graphql_errors`` keeps the raw ``{message, path, extensions}`` items so
    the error classifier can spot throttling codes among them.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[Mapping[str, object]] = (),
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.graphql_errors = tuple(errors)
        self.response = response


class GraphQLClient:
    """Send one GraphQL document per call; no retries, no caching."""

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = resilience
        self._http = (client_factory or ResilientClient)(resilience)

    async def __aenter__(self) -> GraphQLClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def execute(
        self,
        query: str,
        variables: Mapping[str, object] | None = None,
    ) -> dict[str, object]:
        body: dict[str, object] = {"query": query}
        if variables:
            body["variables"] = dict(variables)

        response = await self._http.post("", json=body)
        response.raise_for_status()

        try:
            envelope = GraphQLEnvelope.model_validate(response.json())
        except ValueError as exc:
            raise GraphQLResponseError(
                f"Unexpected response from {self._resilience.name} API", response=response
            ) from exc

        if envelope.errors:
            message = "; ".join(_render_error(error) for error in envelope.errors)
            log.debug("GraphQL errors from %s: %s", self._resilience.name, message)
            raise GraphQLResponseError(
                message,
                errors=[error.model_dump() for error in envelope.errors],
                response=response,
            )
        if envelope.data is None:
            raise GraphQLResponseError(
                f"Empty response from {self._resilience.name} API", response=response
            )
        return envelope.data


def _render_error(error: GraphQLErrorPayload) -> str:
    if error.path:
        return f"[{'.'.join(str(part) for part in error.path)}] {error.message}"
    return error.message
