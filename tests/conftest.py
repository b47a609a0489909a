from __future__ import annotations

import pytest

from storesync.config.http_resilience import ResilienceConfig, RetryPolicy
from storesync.resilience import ResilienceContext
from tests.support.fakes import FakeClock, SleepRecorder


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock: FakeClock) -> SleepRecorder:
    return SleepRecorder(clock)


@pytest.fixture
def resilience_config() -> ResilienceConfig:
    return ResilienceConfig(
        name="test",
        retry=RetryPolicy(
            max_attempts=3,
            base_delay_seconds=1.0,
            backoff_factor=2.0,
            max_backoff_seconds=30.0,
            jitter_seconds=0.0,
        ),
    )


@pytest.fixture
def context(
    resilience_config: ResilienceConfig,
    clock: FakeClock,
    sleeper: SleepRecorder,
) -> ResilienceContext:
    return ResilienceContext.create(resilience_config, clock=clock, sleep=sleeper)
