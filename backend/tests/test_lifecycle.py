"""Tests for startup, periodic sweeping and shutdown."""

import asyncio
import hashlib
import json
import signal

from powcap.engine import Cap
from powcap.main import SHUTDOWN_SIGNALS, install_signal_handlers, lifespan
from powcap.scheduler import create_scheduler, sweep_job
from powcap.services.token_store import TokenStore, TokenStoreError


class CountingStore(TokenStore):
    """Token store that counts writes and can be made to fail."""

    def __init__(self, path, fail=False):
        super().__init__(path)
        self.saves = 0
        self.fail = fail

    async def save(self, tokens):
        self.saves += 1
        await asyncio.sleep(0)
        if self.fail:
            raise TokenStoreError("disk full")
        await super().save(tokens)


def seed(store_path, entries: dict) -> None:
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(json.dumps(entries))


class TestCleanup:
    """Tests for the shutdown flush."""

    async def test_cleanup_writes_swept_tokens(self, settings, clock, store_path):
        """Test that tokens expiring before shutdown are removed from the file."""
        live = "a:" + hashlib.sha256(b"b").hexdigest()
        seed(store_path, {live: clock.now + 1000, "c:d": clock.now + 10})
        cap = Cap(settings, clock=clock)
        await cap.ready()

        clock.advance(10)
        await cap.cleanup()

        assert json.loads(store_path.read_text()) == {live: clock.now + 990}

    async def test_cleanup_skips_write_when_unchanged(self, settings, clock, store_path):
        """Test that nothing is written when no token expired."""
        store = CountingStore(store_path)
        cap = Cap(settings, store=store, clock=clock)
        await cap.ready()

        await cap.cleanup()

        assert store.saves == 0

    async def test_cleanup_flushes_earlier_sweeps(self, settings, clock, store_path):
        """Test that tokens dropped by an opportunistic sweep are still flushed."""
        seed(store_path, {"c:d": clock.now + 10})
        store = CountingStore(store_path)
        cap = Cap(settings, store=store, clock=clock)
        await cap.ready()

        clock.advance(10)
        assert (await cap.validate_token("c:d")).success is False
        await cap.cleanup()

        assert store.saves == 1
        assert json.loads(store_path.read_text()) == {}

    async def test_cleanup_is_single_flight(self, settings, clock, store_path):
        """Test that concurrent and repeated cleanups share one flush."""
        seed(store_path, {"c:d": clock.now + 10})
        store = CountingStore(store_path)
        cap = Cap(settings, store=store, clock=clock)
        await cap.ready()
        clock.advance(10)

        await asyncio.gather(cap.cleanup(), cap.cleanup(), cap.cleanup())
        await cap.cleanup()

        assert store.saves == 1

    async def test_shutdown_exit_codes(self, settings, clock, store_path):
        """Test that shutdown reports a failed flush as a non-zero exit code."""
        seed(store_path, {"c:d": clock.now + 10})
        ok = Cap(settings, clock=clock)
        failing = Cap(settings, store=CountingStore(store_path, fail=True), clock=clock)
        await ok.ready()
        await failing.ready()
        clock.advance(10)

        assert await failing.shutdown() == 1
        assert await ok.shutdown() == 0


class TestLifespan:
    """Tests for the lifespan context manager."""

    async def test_lifespan_loads_and_flushes(self, settings, clock, store_path):
        """Test that entering loads the store and exiting flushes it."""
        seed(store_path, {"c:d": clock.now + 10})
        cap = Cap(settings, clock=clock)

        async with lifespan(cap) as running:
            assert running is cap
            assert "c:d" in cap.state.tokens
            clock.advance(10)

        assert json.loads(store_path.read_text()) == {}

    def test_scheduler_created_with_interval(self, settings, clock):
        """Test that the sweep job is scheduled when an interval is set."""
        settings.sweep_interval_seconds = 30
        cap = Cap(settings, clock=clock)

        scheduler = create_scheduler(cap)

        assert scheduler is not None
        job = scheduler.get_job("sweep_expired_tokens")
        assert job.args == (cap,)

    def test_scheduler_disabled(self, cap):
        """Test that a zero interval disables the scheduler."""
        assert create_scheduler(cap) is None


class TestSweepJob:
    """Tests for the periodic sweep job."""

    async def test_sweep_job_removes_expired(self, settings, clock, store_path):
        seed(store_path, {"c:d": clock.now + 10, "e:f": clock.now + 1000})
        cap = Cap(settings, clock=clock)
        await cap.ready()
        clock.advance(10)

        await sweep_job(cap)

        assert json.loads(store_path.read_text()) == {"e:f": clock.now + 990}

    async def test_sweep_job_logs_failures(self, settings, clock, store_path, caplog):
        """Test that a failing write is logged, not raised."""
        seed(store_path, {"c:d": clock.now + 10})
        cap = Cap(settings, store=CountingStore(store_path, fail=True), clock=clock)
        await cap.ready()
        clock.advance(10)

        await sweep_job(cap)

        assert "Sweep failed" in caplog.text


class FakeLoop:
    def __init__(self):
        self.handlers = {}

    def add_signal_handler(self, sig, callback, *args):
        self.handlers[sig] = (callback, args)

    def remove_signal_handler(self, sig):
        return self.handlers.pop(sig, None) is not None


class TestSignalHandlers:
    """Tests for signal wiring."""

    def test_handlers_registered(self):
        loop = FakeLoop()
        install_signal_handlers(loop, asyncio.Event())

        assert set(loop.handlers) == set(SHUTDOWN_SIGNALS)
        assert signal.SIGTERM in loop.handlers

    async def test_first_signal_sets_event_once(self):
        """Test that the first signal stops the engine and unregisters all handlers."""
        loop = FakeLoop()
        stop_event = asyncio.Event()
        install_signal_handlers(loop, stop_event)

        callback, args = loop.handlers[signal.SIGINT]
        callback(*args)

        assert stop_event.is_set()
        assert loop.handlers == {}
