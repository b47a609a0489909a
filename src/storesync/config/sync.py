"""Synchronization defaults for deploy runs."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .env import optional_float_env, optional_int_env
from .errors import ConfigurationError

DEFAULT_CHUNK_SIZE = 10
DEFAULT_CHUNK_DELAY_SECONDS = 0.5
DEFAULT_BULK_THRESHOLD = 10


@dataclass(frozen=True, slots=True)
class SyncConfig:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS
    # batches larger than this go through the chunked processor
    bulk_threshold: int = DEFAULT_BULK_THRESHOLD
    fail_on_partial: bool = True
    allow_deletes: bool = False

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be at least 1")
        if self.chunk_delay_seconds < 0:
            raise ConfigurationError("chunk_delay_seconds must be non-negative")
        if self.bulk_threshold < 0:
            raise ConfigurationError("bulk_threshold must be non-negative")

    def with_overrides(
        self,
        *,
        chunk_size: int | None = None,
        chunk_delay_seconds: float | None = None,
        fail_on_partial: bool | None = None,
        allow_deletes: bool | None = None,
    ) -> SyncConfig:
        """Return a copy with every non-``None`` argument applied."""

        overrides = {
            name: value
            for name, value in (
                ("chunk_size", chunk_size),
                ("chunk_delay_seconds", chunk_delay_seconds),
                ("fail_on_partial", fail_on_partial),
                ("allow_deletes", allow_deletes),
            )
            if value is not None
        }
        return replace(self, **overrides)


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        chunk_size=optional_int_env("STORESYNC_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        chunk_delay_seconds=optional_float_env(
            "STORESYNC_CHUNK_DELAY_SECONDS", DEFAULT_CHUNK_DELAY_SECONDS
        ),
        bulk_threshold=optional_int_env("STORESYNC_BULK_THRESHOLD", DEFAULT_BULK_THRESHOLD),
    )
