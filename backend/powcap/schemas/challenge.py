from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase names used by widget clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChallengeOptions(_CamelModel):
    challenge_count: int | None = Field(None, gt=0, description="Number of (salt, prefix) pairs")
    challenge_size: int | None = Field(None, gt=0, description="Salt length in hex chars")
    challenge_difficulty: int | None = Field(
        None, gt=0, description="Target prefix length in hex chars"
    )
    expires_ms: int | None = Field(None, gt=0, description="Challenge time-to-live")
    store: bool = True


class ChallengeResponse(_CamelModel):
    challenge: list[tuple[str, str]]
    token: str | None = None
    expires: int


class RedeemRequest(_CamelModel):
    token: str
    # Checked entry by entry during verification; malformed entries just fail to match
    solutions: Any = Field(default_factory=list, description="[salt, target_prefix, nonce] triples")


class RedeemResponse(_CamelModel):
    success: bool
    token: str | None = None
    expires: int | None = None
    message: str | None = None


class ValidateOptions(_CamelModel):
    keep_token: bool = False


class ValidateResponse(_CamelModel):
    success: bool
