from powcap.schemas.challenge import (
    ChallengeOptions,
    ChallengeResponse,
    RedeemRequest,
    RedeemResponse,
    ValidateOptions,
    ValidateResponse,
)

__all__ = [
    "ChallengeOptions",
    "ChallengeResponse",
    "RedeemRequest",
    "RedeemResponse",
    "ValidateOptions",
    "ValidateResponse",
]
