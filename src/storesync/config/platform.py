"""Platform API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_float_env, optional_int_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

API_URL_ENV = "STORESYNC_API_URL"
API_TOKEN_ENV = "STORESYNC_API_TOKEN"
DEFAULT_REQUESTS_PER_SECOND = 20


@dataclass(frozen=True, slots=True)
class PlatformConfig:
    api_url: str
    token: str
    resilience: ResilienceConfig

    def __repr__(self) -> str:
        return f"PlatformConfig(api_url={self.api_url!r}, token='***')"


def get_platform_config() -> PlatformConfig:
    values = require_env_vars((API_URL_ENV, API_TOKEN_ENV))
    api_url = values[API_URL_ENV]
    token = values[API_TOKEN_ENV]

    resilience = ResilienceConfig(
        name="platform",
        base_url=api_url,
        timeout_seconds=optional_float_env("STORESYNC_TIMEOUT_SECONDS", 30.0),
        retry=RetryPolicy(max_attempts=optional_int_env("STORESYNC_MAX_ATTEMPTS", 5)),
        ratelimit=RateLimit(
            max_calls=optional_int_env(
                "STORESYNC_REQUESTS_PER_SECOND", DEFAULT_REQUESTS_PER_SECOND
            ),
            per_seconds=1.0,
        ),
        default_headers={"Authorization": f"Bearer {token}"},
    )
    return PlatformConfig(api_url=api_url, token=token, resilience=resilience)
