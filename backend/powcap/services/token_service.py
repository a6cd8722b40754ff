import secrets

from powcap.services.crypto_utils import hash_token

TOKEN_ID_BYTES = 8
TOKEN_SECRET_BYTES = 15
SEPARATOR = ":"


def token_key(token_id: str, secret: str) -> str:
    """Store key for a token: the id plus the hash of its secret."""
    return f"{token_id}{SEPARATOR}{hash_token(secret)}"


def parse_token(raw_token: str) -> tuple[str, str] | None:
    """
    Split a disclosed ``id:secret`` token on its first separator.

    Returns None when either part is missing.
    """
    token_id, sep, secret = raw_token.partition(SEPARATOR)
    if not sep or not token_id or not secret:
        return None
    return token_id, secret


def mint_token() -> tuple[str, str]:
    """
    Create a new redeemable token.

    Returns tuple of (store_key, raw_token).
    The raw_token is only available at creation time.
    """
    token_id = secrets.token_hex(TOKEN_ID_BYTES)
    secret = secrets.token_hex(TOKEN_SECRET_BYTES)
    return token_key(token_id, secret), f"{token_id}{SEPARATOR}{secret}"


def lookup_key(raw_token: str) -> str | None:
    """Store key a disclosed token maps to, or None if it is malformed."""
    parsed = parse_token(raw_token)
    if parsed is None:
        return None
    return token_key(*parsed)
