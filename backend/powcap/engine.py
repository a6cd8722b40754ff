"""
Challenge/token lifecycle engine.

One ``Cap`` instance owns the pending challenges and the live redeemable
tokens of a process. All methods must run on the same event loop; state is
only mutated between awaits, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from powcap.config import Settings
from powcap.logging_config import get_logger
from powcap.models.challenge import EngineState
from powcap.schemas.challenge import (
    ChallengeOptions,
    ChallengeResponse,
    RedeemRequest,
    RedeemResponse,
    ValidateOptions,
    ValidateResponse,
)
from powcap.services.pow_service import generate_challenge, verify_solutions
from powcap.services.sweeper import sweep
from powcap.services.token_service import lookup_key, mint_token
from powcap.services.token_store import TokenStore

logger = get_logger(__name__)

Clock = Callable[[], int]


def epoch_ms() -> int:
    return int(time.time() * 1000)


class Cap:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: TokenStore | None = None,
        clock: Clock = epoch_ms,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store or TokenStore(self.settings.tokens_store_path)
        self.state = EngineState()
        self._clock = clock
        self._ready = asyncio.Event()
        self._load_task: asyncio.Task | None = None
        self._cleanup_task: asyncio.Task | None = None
        # Set when a sweep removed tokens that are still in the store file
        self._dirty = False

    # Lifecycle

    def start(self) -> None:
        """Begin loading persisted tokens in the background. Idempotent."""
        if self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(self._load_tokens())

    async def ready(self) -> None:
        """Wait until persisted tokens have been loaded, starting the load if needed."""
        self.start()
        await self._ready.wait()

    async def _load_tokens(self) -> None:
        try:
            self.state.tokens = await self.store.load()
            self._sweep()
            logger.info(
                "tokens_loaded",
                path=str(self.store.path),
                count=len(self.state.tokens),
            )
        finally:
            self._ready.set()

    def _sweep(self) -> bool:
        changed = sweep(self.state, self._clock())
        self._dirty = self._dirty or changed
        return changed

    async def _persist(self) -> None:
        # save() snapshots the map before its first await
        self._dirty = False
        try:
            await self.store.save(self.state.tokens)
        except Exception:
            self._dirty = True
            raise

    async def sweep_and_persist(self) -> bool:
        """
        Sweep expired entries and write the token map if it differs from the file.

        Returns True if a write happened.
        """
        await self.ready()
        self._sweep()
        if not self._dirty:
            return False
        await self._persist()
        logger.debug("tokens_flushed", count=len(self.state.tokens))
        return True

    async def cleanup(self) -> None:
        """
        Final flush before the process exits.

        Only the first call does the work; later and concurrent calls await
        the same task and see its result.
        """
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.get_running_loop().create_task(self.sweep_and_persist())
        await asyncio.shield(self._cleanup_task)

    async def shutdown(self) -> int:
        """Run cleanup and return the process exit code: 0, or 1 if the flush failed."""
        try:
            await self.cleanup()
        except Exception as e:
            logger.error("shutdown_flush_failed", error=str(e), exc_info=True)
            return 1
        logger.info("shutdown_complete")
        return 0

    # Operations

    def create_challenge(
        self, options: ChallengeOptions | dict[str, Any] | None = None
    ) -> ChallengeResponse:
        """Issue a new batch of (salt, target_prefix) pairs."""
        if options is None:
            options = ChallengeOptions()
        elif isinstance(options, dict):
            options = ChallengeOptions.model_validate(options)

        self._sweep()

        s = self.settings
        challenge = generate_challenge(
            count=options.challenge_count or s.challenge_count,
            salt_size=options.challenge_size or s.challenge_size,
            difficulty=options.challenge_difficulty or s.challenge_difficulty,
            now=self._clock(),
            ttl_ms=options.expires_ms or s.challenge_ttl_ms,
        )

        if not options.store:
            logger.debug("challenge_created", stored=False, count=len(challenge.pairs))
            return ChallengeResponse(challenge=challenge.pairs, expires=challenge.expires)

        self.state.challenges[challenge.token] = challenge
        logger.debug(
            "challenge_created",
            stored=True,
            count=len(challenge.pairs),
            expires=challenge.expires,
        )
        return ChallengeResponse(
            challenge=challenge.pairs, token=challenge.token, expires=challenge.expires
        )

    async def redeem_challenge(self, request: RedeemRequest | dict[str, Any]) -> RedeemResponse:
        """Check a solution set and, if it solves the challenge, issue a token."""
        if isinstance(request, dict):
            request = RedeemRequest.model_validate(request)

        await self.ready()
        self._sweep()

        # Removed before verifying so a token can only ever be redeemed once
        challenge = self.state.challenges.pop(request.token, None)
        if challenge is None or challenge.expires <= self._clock():
            logger.info("challenge_redeem_failed", reason="expired")
            return RedeemResponse(success=False, message="Challenge expired")

        try:
            verify_solutions(challenge.pairs, request.solutions)
        except ValueError as e:
            logger.info("challenge_redeem_failed", reason="invalid")
            return RedeemResponse(success=False, message=str(e))

        key, raw_token = mint_token()
        expires = self._clock() + self.settings.token_ttl_ms
        self.state.tokens[key] = expires
        try:
            await self._persist()
        except Exception:
            # The raw token is never disclosed, so drop it
            self.state.tokens.pop(key, None)
            raise

        logger.info("challenge_redeemed", token_id=key.split(":", 1)[0], expires=expires)
        return RedeemResponse(success=True, token=raw_token, expires=expires)

    async def validate_token(
        self,
        token: str,
        options: ValidateOptions | dict[str, Any] | None = None,
    ) -> ValidateResponse:
        """
        Check whether a redeemed token is live.

        With ``keep_token`` set, the token is consumed and will not validate
        again. Unknown, malformed and expired tokens are not told apart.
        """
        if options is None:
            options = ValidateOptions()
        elif isinstance(options, dict):
            options = ValidateOptions.model_validate(options)

        await self.ready()
        self._sweep()

        key = lookup_key(token)
        if key is None or key not in self.state.tokens:
            return ValidateResponse(success=False)

        if options.keep_token:
            del self.state.tokens[key]
            await self._persist()
            logger.info("token_consumed", token_id=key.split(":", 1)[0])

        return ValidateResponse(success=True)
