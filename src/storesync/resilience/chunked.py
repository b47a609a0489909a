"""Sequential chunked batch processing with per-chunk failure isolation.

Chunks run strictly one after another. Bulk mutation endpoints are the
most rate-limit sensitive calls the platform offers, so no two chunks are
ever in flight at once, and a pause separates consecutive chunks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, cast

from storesync.errors import OperationCancelledError

from .cancellation import pause

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .cancellation import CancellationToken, Sleeper

log = getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10
DEFAULT_CHUNK_DELAY_SECONDS = 0.5


@dataclass(frozen=True, slots=True)
class ChunkSuccess[T, R]:
    item: T
    result: R


@dataclass(frozen=True, slots=True)
class ChunkFailure[T]:
    item: T
    error: Exception


@dataclass(slots=True)
class ChunkedProcessorResult[T, R]:
    successes: list[ChunkSuccess[T, R]] = field(default_factory=list)
    failures: list[ChunkFailure[T]] = field(default_factory=list)
    chunks_processed: int = 0

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def items_processed(self) -> int:
        return len(self.successes) + len(self.failures)


type BatchOperation[T, R] = Callable[[list[T]], Awaitable[R | Sequence[R]]]
type DelayAdjuster = Callable[[float], float]


def split_into_chunks[T](items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of at most ``chunk_size``."""

    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    return [list(items[start : start + chunk_size]) for start in range(0, len(items), chunk_size)]


async def process_in_chunks[T, R](
    items: Sequence[T],
    batch_operation: BatchOperation[T, R],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS,
    entity_type: str = "items",
    cancellation: CancellationToken | None = None,
    adjust_delay: DelayAdjuster | None = None,
    sleeper: Sleeper = asyncio.sleep,
) -> ChunkedProcessorResult[T, R]:
    """Drive ``batch_operation`` over ``items`` one chunk at a time.

    A chunk's result is mapped back onto its items positionally when the
    operation returns a list at least as long as the chunk. A shorter (or
    empty) list, or any non-list value, is handed to every item of the chunk
    unchanged. A chunk that raises marks each of its items as failed with
    that error; later chunks still run.

    ``adjust_delay`` lets a caller stretch the inter-chunk pause, e.g. with
    the adaptive rate limiter. A fired ``cancellation`` stops before the next
    chunk with ``OperationCancelledError``.
    """

    result: ChunkedProcessorResult[T, R] = ChunkedProcessorResult()
    if not items:
        log.debug("No %s to process in chunks", entity_type)
        return result

    chunks = split_into_chunks(items, chunk_size)
    total_chunks = len(chunks)
    log.info(
        "Processing %s %s in %s chunks of %s with %ss delay",
        len(items),
        entity_type,
        total_chunks,
        chunk_size,
        delay_seconds,
    )

    for index, chunk in enumerate(chunks):
        chunk_number = index + 1
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        log.debug("Processing chunk %s/%s (%s items)", chunk_number, total_chunks, len(chunk))
        try:
            outcome = await batch_operation(chunk)
        except OperationCancelledError:
            raise
        except Exception as exc:
            log.error(  # noqa: TRY400
                "Failed to process chunk %s/%s of %s: %s",
                chunk_number,
                total_chunks,
                entity_type,
                exc,
            )
            result.failures.extend(ChunkFailure(item=item, error=exc) for item in chunk)
        else:
            result.successes.extend(_pair_results(chunk, outcome, entity_type=entity_type))
            log.debug("Completed chunk %s/%s", chunk_number, total_chunks)
        result.chunks_processed += 1

        if index < total_chunks - 1 and delay_seconds > 0:
            delay = adjust_delay(delay_seconds) if adjust_delay is not None else delay_seconds
            log.debug("Waiting %.2fs before chunk %s", delay, chunk_number + 1)
            await pause(delay, cancellation=cancellation, sleeper=sleeper)

    if result.failures:
        log.warning(
            "Chunked processing of %s completed with %s failures (%s successes, %s chunks)",
            entity_type,
            len(result.failures),
            len(result.successes),
            result.chunks_processed,
        )
    else:
        log.info(
            "Chunked processing of %s completed: %s items in %s chunks",
            entity_type,
            len(result.successes),
            result.chunks_processed,
        )
    return result


def _pair_results[T, R](
    chunk: list[T],
    outcome: R | Sequence[R],
    *,
    entity_type: str,
) -> list[ChunkSuccess[T, R]]:
    if isinstance(outcome, (list, tuple)):
        values = cast("Sequence[R]", outcome)
        if len(values) >= len(chunk):
            pairs = zip(chunk, values, strict=False)
            return [ChunkSuccess(item=item, result=value) for item, value in pairs]
        if values:
            log.warning(
                "Batch operation for %s returned %s results for %s items; "
                "sharing the whole result with every item",
                entity_type,
                len(values),
                len(chunk),
            )
    shared = cast("R", outcome)
    return [ChunkSuccess(item=item, result=shared) for item in chunk]
