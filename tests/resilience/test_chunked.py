from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from storesync.errors import OperationCancelledError
from storesync.resilience import (
    CancellationToken,
    ChunkSuccess,
    process_in_chunks,
    split_into_chunks,
)

if TYPE_CHECKING:
    from storesync.resilience import ResilienceContext
    from tests.support.fakes import SleepRecorder


@pytest.mark.parametrize(
    ("count", "size", "expected"),
    [(0, 3, []), (5, 2, [2, 2, 1]), (4, 4, [4]), (3, 10, [3])],
)
def test_split_into_chunks(count: int, size: int, expected: list[int]) -> None:
    chunks = split_into_chunks(list(range(count)), size)

    assert [len(chunk) for chunk in chunks] == expected
    assert [item for chunk in chunks for item in chunk] == list(range(count))


def test_split_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        split_into_chunks([1], 0)


def test_failing_chunk_is_isolated(sleeper: SleepRecorder) -> None:
    seen: list[list[str]] = []

    async def upsert(chunk: list[str]) -> list[str]:
        seen.append(chunk)
        if "c" in chunk:
            raise RuntimeError("bulk create failed")
        return [item.upper() for item in chunk]

    result = asyncio.run(
        process_in_chunks(
            ["a", "b", "c", "d", "e", "f"],
            upsert,
            chunk_size=2,
            delay_seconds=0.25,
            entity_type="products",
            sleeper=sleeper,
        )
    )

    assert seen == [["a", "b"], ["c", "d"], ["e", "f"]]
    assert [success.result for success in result.successes] == ["A", "B", "E", "F"]
    assert [failure.item for failure in result.failures] == ["c", "d"]
    assert str(result.failures[0].error) == "bulk create failed"
    assert result.chunks_processed == 3
    assert result.items_processed == 6
    assert result.has_failures
    # no pause after the last chunk
    assert sleeper.calls == [0.25, 0.25]


def test_short_result_list_is_shared_with_every_item(sleeper: SleepRecorder) -> None:
    async def bulk(chunk: list[int]) -> list[str]:
        return [f"{len(chunk)} items"]

    result = asyncio.run(process_in_chunks([1, 2, 3], bulk, chunk_size=3, sleeper=sleeper))

    assert result.successes == [
        ChunkSuccess(item=1, result=["3 items"]),
        ChunkSuccess(item=2, result=["3 items"]),
        ChunkSuccess(item=3, result=["3 items"]),
    ]


def test_scalar_result_is_shared_with_every_item(sleeper: SleepRecorder) -> None:
    async def bulk(chunk: list[int]) -> int:
        return sum(chunk)

    result = asyncio.run(process_in_chunks([1, 2, 3, 4], bulk, chunk_size=2, sleeper=sleeper))

    assert [success.result for success in result.successes] == [3, 3, 7, 7]


def test_empty_input_never_calls_operation(sleeper: SleepRecorder) -> None:
    async def bulk(chunk: list[int]) -> list[int]:
        raise AssertionError(chunk)

    result = asyncio.run(process_in_chunks([], bulk, sleeper=sleeper))

    assert result.chunks_processed == 0
    assert not result.has_failures


def test_cancellation_stops_before_next_chunk(sleeper: SleepRecorder) -> None:
    token = CancellationToken()
    processed: list[list[int]] = []

    async def bulk(chunk: list[int]) -> list[int]:
        processed.append(chunk)
        token.cancel("deploy aborted")
        return chunk

    with pytest.raises(OperationCancelledError, match="deploy aborted"):
        asyncio.run(
            process_in_chunks(
                [1, 2, 3, 4], bulk, chunk_size=2, cancellation=token, sleeper=sleeper
            )
        )

    assert processed == [[1, 2]]


def test_context_stretches_delay_after_rate_limits(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    context.rate_limiter.track_rate_limit()

    async def bulk(chunk: list[int]) -> list[int]:
        return chunk

    asyncio.run(
        context.process_in_chunks([1, 2, 3], bulk, chunk_size=1, delay_seconds=0.5)
    )

    assert sleeper.calls == [1.0, 1.0]
