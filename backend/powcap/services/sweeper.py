from powcap.models.challenge import EngineState


def sweep(state: EngineState, now: int) -> bool:
    """
    Drop expired challenges and tokens from ``state``.

    An entry expiring exactly at ``now`` counts as expired.

    Returns True if any token was removed, i.e. the token store is now stale.
    """
    for token in [t for t, c in state.challenges.items() if c.expires <= now]:
        del state.challenges[token]

    expired = [key for key, expires in state.tokens.items() if expires <= now]
    for key in expired:
        del state.tokens[key]

    return bool(expired)
