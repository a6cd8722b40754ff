import hashlib
import secrets


def sha256_hex(value: str) -> str:
    """Hex SHA-256 digest of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def random_hex(length: int) -> str:
    """Return ``length`` hex characters from the OS CSPRNG."""
    return secrets.token_hex((length + 1) // 2)[:length]


def hash_token(secret: str) -> str:
    """Hash a token secret for storage.

    Must stay unsalted: the store key is recomputed from the disclosed secret.
    """
    return sha256_hex(secret)
