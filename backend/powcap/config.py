from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Token store
    tokens_store_path: str = ".data/tokensList.json"

    # Challenge defaults (overridable per call)
    challenge_count: int = 18
    challenge_size: int = 32  # hex chars per salt
    challenge_difficulty: int = 4  # hex chars per target prefix
    challenge_ttl_ms: int = 600_000  # 10 minutes

    # Redeemed tokens
    token_ttl_ms: int = 1_200_000  # 20 minutes

    # Background sweep, 0 disables it
    sweep_interval_seconds: int = 60

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator(
        "challenge_count",
        "challenge_size",
        "challenge_difficulty",
        "challenge_ttl_ms",
        "token_ttl_ms",
    )
    @classmethod
    def positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("sweep_interval_seconds")
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("log_format", mode="before")
    @classmethod
    def parse_log_format(cls, v):
        """Normalize log format, accepting any casing."""
        if isinstance(v, str):
            return v.strip().lower()
        return v
