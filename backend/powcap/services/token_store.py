from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path

from powcap.logging_config import get_logger

logger = get_logger(__name__)


class TokenStoreError(RuntimeError):
    pass


def _reject_constant(name: str):
    raise ValueError(f"non-finite number {name} in token store")


class TokenStore:
    """JSON file holding the live redeemable tokens (``key -> expiry ms``)."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> dict[str, int]:
        """
        Read the token map.

        A missing, unreadable or malformed file is replaced by an empty one.
        Never raises.
        """
        try:
            return await asyncio.to_thread(self._read)
        except (OSError, ValueError, ArithmeticError, RecursionError) as e:
            logger.warning("token_store_reset", path=str(self._path), reason=str(e))

        try:
            await asyncio.to_thread(self._write, {})
        except OSError as e:
            logger.warning("token_store_unwritable", path=str(self._path), error=str(e))
        return {}

    async def save(self, tokens: dict[str, int]) -> None:
        """Replace the file contents with ``tokens``. Raises TokenStoreError on I/O failure."""
        snapshot = dict(tokens)
        try:
            await asyncio.to_thread(self._write, snapshot)
        except OSError as e:
            logger.error("token_store_write_failed", path=str(self._path), error=str(e))
            raise TokenStoreError(f"Could not write token store {self._path}: {e}") from e

    def _read(self) -> dict[str, int]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.loads(self._path.read_text(encoding="utf-8"), parse_constant=_reject_constant)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        tokens = {}
        for key, expires in data.items():
            # bool is an int subclass
            if isinstance(expires, (int, float)) and not isinstance(expires, bool):
                tokens[key] = int(expires)
            else:
                logger.warning("token_store_entry_dropped", key=key.split(":", 1)[0])
        return tokens

    def _write(self, tokens: dict[str, int]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(tokens, f)
            os.replace(tmp_path, self._path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
