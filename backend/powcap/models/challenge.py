from dataclasses import dataclass, field


@dataclass
class Challenge:
    token: str
    pairs: list[tuple[str, str]]
    expires: int  # epoch milliseconds


@dataclass
class EngineState:
    """In-memory state of one engine.

    ``tokens`` maps ``"<id>:<sha256(secret)>"`` to an expiry in epoch
    milliseconds and is mirrored to the token store. ``challenges`` is never
    persisted.
    """

    challenges: dict[str, Challenge] = field(default_factory=dict)
    tokens: dict[str, int] = field(default_factory=dict)
