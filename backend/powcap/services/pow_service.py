import secrets
from collections.abc import Iterable
from typing import Any

from powcap.models.challenge import Challenge
from powcap.services.crypto_utils import random_hex, sha256_hex

CHALLENGE_TOKEN_BYTES = 25


def generate_pairs(count: int, salt_size: int, difficulty: int) -> list[tuple[str, str]]:
    """Generate ``count`` random (salt, target_prefix) pairs."""
    return [(random_hex(salt_size), random_hex(difficulty)) for _ in range(count)]


def generate_challenge(
    count: int,
    salt_size: int,
    difficulty: int,
    now: int,
    ttl_ms: int,
) -> Challenge:
    """Generate a new proof-of-work challenge batch expiring ``ttl_ms`` after ``now``."""
    return Challenge(
        token=secrets.token_hex(CHALLENGE_TOKEN_BYTES),
        pairs=generate_pairs(count, salt_size, difficulty),
        expires=now + ttl_ms,
    )


def check_solution(salt: str, target: str, nonce: str | int) -> bool:
    """True if sha256(salt + nonce) starts with ``target``."""
    return sha256_hex(f"{salt}{nonce}").startswith(target)


def _is_nonce(value: Any) -> bool:
    # bool is an int subclass
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def verify_solutions(
    pairs: Iterable[tuple[str, str]],
    solutions: Any,
) -> None:
    """
    Verify a solution set against a challenge's pairs.

    Every pair needs a solution with the same salt and prefix; when several
    are supplied for one pair, the first wins. Entries that are not
    [salt, target, nonce] triples are ignored, and a nonce that is not a
    string or integer never matches.

    Returns None if valid, raises ValueError if any pair is unsolved.
    """
    nonces: dict[tuple[str, str], Any] = {}
    if isinstance(solutions, (list, tuple)):
        for entry in solutions:
            if not isinstance(entry, (list, tuple)) or len(entry) != 3:
                continue
            salt, target, nonce = entry
            if isinstance(salt, str) and isinstance(target, str):
                nonces.setdefault((salt, target), nonce)

    for salt, target in pairs:
        nonce = nonces.get((salt, target))
        if not _is_nonce(nonce) or not check_solution(salt, target, nonce):
            raise ValueError("Invalid solution")


def solve_pair(salt: str, target: str) -> int:
    """Brute-force the smallest integer nonce for one pair.

    Used by the smoke test and the test suite; expected cost is 16**len(target)
    hashes.
    """
    nonce = 0
    while not check_solution(salt, target, nonce):
        nonce += 1
    return nonce
