#!/usr/bin/env python3
"""
Smoke test for the powcap engine.

Drives one engine instance end to end, in-process, against a throwaway
token store:
1. Create a challenge
2. Solve it (brute force, low difficulty by default)
3. Redeem it and check the second redemption fails
4. Validate the token, then consume it with keepToken
5. Restart the engine on the same store and check persistence
6. Shutdown flush

Usage:
    ./scripts/smoke-test.py
    ./scripts/smoke-test.py --difficulty 4 --count 18 --store /tmp/tokens.json
"""

import argparse
import asyncio
import sys
import tempfile
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from powcap.config import Settings
from powcap.engine import Cap
from powcap.schemas.challenge import ChallengeResponse
from powcap.services.pow_service import solve_pair

DEFAULT_COUNT = 6
DEFAULT_DIFFICULTY = 3


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


@dataclass
class SmokeContext:
    settings: Settings
    cap: Cap

    challenge: ChallengeResponse | None = None
    solutions: list[list] | None = None
    token: str | None = None

    def require_challenge(self) -> ChallengeResponse:
        if not self.challenge:
            raise RuntimeError("Missing challenge (step ordering bug)")
        return self.challenge

    def require_token(self) -> str:
        if not self.token:
            raise RuntimeError("Missing token (step ordering bug)")
        return self.token


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], Awaitable[None]]


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|failed
    seconds: float
    detail: str | None = None


async def step_create(ctx: SmokeContext) -> None:
    ctx.challenge = ctx.cap.create_challenge()
    log(f"  {len(ctx.challenge.challenge)} pairs, expires {ctx.challenge.expires}")


async def step_solve(ctx: SmokeContext) -> None:
    challenge = ctx.require_challenge()
    ctx.solutions = [[s, t, solve_pair(s, t)] for s, t in challenge.challenge]


async def step_redeem(ctx: SmokeContext) -> None:
    request = {"token": ctx.require_challenge().token, "solutions": ctx.solutions}
    result = await ctx.cap.redeem_challenge(request)
    if not result.success:
        raise RuntimeError(f"Redeem failed: {result.message}")
    ctx.token = result.token

    replay = await ctx.cap.redeem_challenge(request)
    if replay.success:
        raise RuntimeError("Challenge was redeemed twice")


async def step_validate(ctx: SmokeContext) -> None:
    token = ctx.require_token()
    for attempt in range(2):
        if not (await ctx.cap.validate_token(token)).success:
            raise RuntimeError(f"Validation attempt {attempt + 1} failed")


async def step_restart(ctx: SmokeContext) -> None:
    await ctx.cap.shutdown()
    ctx.cap = Cap(ctx.settings)
    if not (await ctx.cap.validate_token(ctx.require_token())).success:
        raise RuntimeError("Token did not survive restart")


async def step_consume(ctx: SmokeContext) -> None:
    token = ctx.require_token()
    if not (await ctx.cap.validate_token(token, {"keepToken": True})).success:
        raise RuntimeError("Consuming validation failed")
    if (await ctx.cap.validate_token(token)).success:
        raise RuntimeError("Consumed token still validates")


async def step_shutdown(ctx: SmokeContext) -> None:
    code = await ctx.cap.shutdown()
    if code != 0:
        raise RuntimeError(f"Shutdown exit code {code}")


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


async def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        log(f"STEP: {step.name}")
        start = time.time()
        try:
            await step.run(ctx)
        except Exception as e:
            elapsed = time.time() - start
            results.append(StepResult(step.name, "failed", elapsed, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="powcap smoke test")
    parser.add_argument(
        "--store",
        help="Token store path (default: a file in a temporary directory)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=DEFAULT_COUNT,
        help=f"Pairs per challenge (default: {DEFAULT_COUNT})",
    )
    parser.add_argument(
        "--difficulty",
        type=int,
        default=DEFAULT_DIFFICULTY,
        help=f"Target prefix length in hex chars (default: {DEFAULT_DIFFICULTY})",
    )
    args = parser.parse_args()

    steps = [
        Step("create challenge", step_create),
        Step("solve", step_solve),
        Step("redeem", step_redeem),
        Step("validate", step_validate),
        Step("restart", step_restart),
        Step("consume", step_consume),
        Step("shutdown", step_shutdown),
    ]

    try:
        with tempfile.TemporaryDirectory() as tmp:
            settings = Settings(
                tokens_store_path=args.store or str(Path(tmp) / "tokensList.json"),
                challenge_count=args.count,
                challenge_difficulty=args.difficulty,
                sweep_interval_seconds=0,
            )
            ctx = SmokeContext(settings=settings, cap=Cap(settings))
            ok = asyncio.run(run_steps(ctx, steps))
        return 0 if ok else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
