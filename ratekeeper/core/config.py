from typing import TYPE_CHECKING, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from ratekeeper.policies.models import LimitSpec

AlgorithmName = Literal["fixed_window", "sliding_window", "token_bucket", "leaky_bucket"]


class Settings(BaseSettings):
    """Rate limiter settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Limit applied by the default facade
    rate_limit_capacity: int = 60
    rate_limit_window_seconds: float = 60.0
    rate_limit_algorithm: AlgorithmName = "fixed_window"
    rate_limit_burst_capacity: Optional[int] = None  # token_bucket / leaky_bucket only
    rate_limit_namespace: str = "ratelimit"

    # Store selection
    rate_limit_store_backend: Literal["local", "remote"] = "local"
    rate_limit_call_timeout: float = 0.05  # Per remote call, seconds
    rate_limit_max_cas_attempts: int = 5
    rate_limit_max_key_length: int = 1024  # Bytes, UTF-8 encoded

    # What to answer when the store is unreachable
    rate_limit_degraded_mode: Literal["fail_open", "fail_closed"] = "fail_open"

    # Reject requests without an identity instead of pooling them
    rate_limit_reject_anonymous: bool = False

    # Local store memory bounds
    local_store_max_entries: int = 100_000
    local_store_sweep_interval: float = 30.0
    local_store_lock_stripes: int = 64

    # Redis settings
    redis_url: str = "redis://localhost:6379/0"

    @field_validator(
        "rate_limit_capacity",
        "rate_limit_max_cas_attempts",
        "rate_limit_max_key_length",
        "local_store_max_entries",
        "local_store_lock_stripes",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate counts are at least 1."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("rate_limit_burst_capacity")
    @classmethod
    def validate_burst_capacity(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("rate_limit_burst_capacity must be at least 1")
        return v

    @field_validator(
        "rate_limit_window_seconds",
        "rate_limit_call_timeout",
        "local_store_sweep_interval",
    )
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    def limit_spec(self) -> "LimitSpec":
        """Build the default LimitSpec from these settings.

        Raises:
            InvalidConfigurationError: If the combination is unusable,
                e.g. a bucket algorithm without burst capacity.
        """
        from ratekeeper.policies.models import LimitSpec

        return LimitSpec(
            capacity=self.rate_limit_capacity,
            window_seconds=self.rate_limit_window_seconds,
            algorithm=self.rate_limit_algorithm,
            burst_capacity=self.rate_limit_burst_capacity,
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
