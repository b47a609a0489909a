"""Classify raised values into a closed set of failure variants.

``classify_error`` is the single place that probes error shapes. It
understands:

- storesync's own exceptions (``RateLimitError``, ``NetworkError``,
  ``GraphQLApplicationError``)
- anything with ``response.status_code``/``response.status`` and
  ``response.headers.get`` (``httpx.HTTPStatusError`` and look-alikes)
- anything with a ``graphql_errors`` sequence of ``{message, extensions.code}``
- anything with a non-empty ``network_error`` attribute, ``httpx.TransportError``
  and the builtin connection/timeout errors
- exception messages, as a last resort

Everything else is ``Unclassified``. The function never raises.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

import httpx

from storesync.errors import (
    GraphQLApplicationError,
    GraphQLErrorDetail,
    NetworkError,
    RateLimitError,
)

RATE_LIMIT_STATUS = 429
RETRYABLE_SERVER_STATUSES = frozenset({500, 502, 503, 504})
RATE_LIMIT_EXTENSION_CODES = frozenset({"TOO_MANY_REQUESTS", "THROTTLED", "RATE_LIMITED"})
RATE_LIMIT_MESSAGE_PATTERNS = ("429", "rate limit", "too many requests", "throttl")
NETWORK_ERROR_PATTERNS = (
    "network",
    "econnrefused",
    "etimedout",
    "enotfound",
    "econnreset",
    "connection refused",
    "connection reset",
    "timed out",
    "name or service not known",
    "fetch failed",
)


class ErrorKind(StrEnum):
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    GRAPHQL = "graphql"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True, slots=True, kw_only=True)
class RateLimited:
    message: str
    retry_after_ms: int | None = None
    kind: Literal[ErrorKind.RATE_LIMITED] = ErrorKind.RATE_LIMITED

    @property
    def retryable(self) -> bool:
        return True


@dataclass(frozen=True, slots=True, kw_only=True)
class NetworkFailure:
    message: str
    status: int | None = None
    kind: Literal[ErrorKind.NETWORK] = ErrorKind.NETWORK

    @property
    def retryable(self) -> bool:
        return True


@dataclass(frozen=True, slots=True, kw_only=True)
class GraphQLFailure:
    message: str
    errors: tuple[GraphQLErrorDetail, ...] = field(default_factory=tuple)
    kind: Literal[ErrorKind.GRAPHQL] = ErrorKind.GRAPHQL

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True, slots=True, kw_only=True)
class Unclassified:
    message: str
    kind: Literal[ErrorKind.UNCLASSIFIED] = ErrorKind.UNCLASSIFIED

    @property
    def retryable(self) -> bool:
        return False


type ClassifiedError = RateLimited | NetworkFailure | GraphQLFailure | Unclassified


def parse_retry_after(header: str | None) -> int | None:
    """Parse a ``Retry-After`` header given in seconds into milliseconds.

    Missing, blank, negative or non-numeric values (including the HTTP-date
    form) yield ``None``, meaning "no hint".
    """

    if header is None:
        return None
    value = header.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return int(seconds * 1000)


def extract_retry_after_ms(error: object) -> int | None:
    """Return the ``Retry-After`` hint carried by ``error``'s response, if any."""

    if isinstance(error, RateLimitError):
        return error.retry_after_ms
    response = _safe_getattr(error, "response")
    if response is None:
        return None
    headers = _safe_getattr(response, "headers")
    getter = _safe_getattr(headers, "get")
    if not callable(getter):
        return None
    try:
        raw = getter("Retry-After") or getter("retry-after")
    except Exception:  # noqa: BLE001
        return None
    return parse_retry_after(raw) if isinstance(raw, str) else None


def classify_error(error: object) -> ClassifiedError:
    """Map any raised value onto one ``ClassifiedError`` variant."""

    try:
        return _classify(error)
    except Exception:  # noqa: BLE001
        return Unclassified(message=_describe(error))


def is_rate_limit_error(error: object) -> bool:
    return isinstance(classify_error(error), RateLimited)


def is_network_error(error: object) -> bool:
    return isinstance(classify_error(error), NetworkFailure)


def is_retryable(error: object) -> bool:
    return classify_error(error).retryable


def _classify(error: object) -> ClassifiedError:
    message = _describe(error)

    if isinstance(error, RateLimitError):
        return RateLimited(message=message, retry_after_ms=error.retry_after_ms)
    if isinstance(error, NetworkError):
        return NetworkFailure(message=message)
    if isinstance(error, GraphQLApplicationError):
        return GraphQLFailure(message=message, errors=error.errors)

    status = _response_status(error)
    if status == RATE_LIMIT_STATUS:
        return RateLimited(message=message, retry_after_ms=extract_retry_after_ms(error))
    if status in RETRYABLE_SERVER_STATUSES:
        return NetworkFailure(message=message, status=status)

    graphql_errors = _graphql_error_details(error)
    if graphql_errors is not None:
        if any(_is_rate_limit_detail(detail) for detail in graphql_errors):
            return RateLimited(message=message, retry_after_ms=extract_retry_after_ms(error))
        return GraphQLFailure(message=message, errors=graphql_errors)

    if _has_network_error(error):
        return NetworkFailure(message=message, status=status)

    lowered = message.lower()
    if isinstance(error, BaseException):
        if any(pattern in lowered for pattern in RATE_LIMIT_MESSAGE_PATTERNS):
            return RateLimited(message=message)
        if any(pattern in lowered for pattern in NETWORK_ERROR_PATTERNS):
            return NetworkFailure(message=message, status=status)

    return Unclassified(message=message)


def _response_status(error: object) -> int | None:
    response = _safe_getattr(error, "response")
    if response is None:
        return None
    for attribute in ("status_code", "status"):
        status = _safe_getattr(response, attribute)
        if isinstance(status, int) and not isinstance(status, bool):
            return status
    return None


def _graphql_error_details(error: object) -> tuple[GraphQLErrorDetail, ...] | None:
    raw = _safe_getattr(error, "graphql_errors")
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence) or not raw:
        return None
    return tuple(_to_detail(item) for item in raw)


def _to_detail(item: object) -> GraphQLErrorDetail:
    if isinstance(item, GraphQLErrorDetail):
        return item
    if isinstance(item, Mapping):
        message = item.get("message")
        extensions = item.get("extensions")
        path = item.get("path")
    else:
        message = _safe_getattr(item, "message")
        extensions = _safe_getattr(item, "extensions")
        path = _safe_getattr(item, "path")
    code = extensions.get("code") if isinstance(extensions, Mapping) else None
    path_parts = (
        tuple(str(part) for part in path)
        if isinstance(path, Sequence) and not isinstance(path, str)
        else ()
    )
    return GraphQLErrorDetail(
        message=message if isinstance(message, str) else "",
        code=code if isinstance(code, str) else None,
        path=path_parts,
    )


def _is_rate_limit_detail(detail: GraphQLErrorDetail) -> bool:
    if detail.code is not None and detail.code.upper() in RATE_LIMIT_EXTENSION_CODES:
        return True
    return "too many requests" in detail.message.lower()


def _has_network_error(error: object) -> bool:
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    return bool(_safe_getattr(error, "network_error"))


def _safe_getattr(value: object, name: str) -> object:
    try:
        return getattr(value, name, None)
    except Exception:  # noqa: BLE001
        return None


def _describe(error: object) -> str:
    try:
        text = str(error)
    except Exception:  # noqa: BLE001
        return type(error).__name__
    return text or type(error).__name__
