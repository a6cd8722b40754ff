import asyncio
import signal
import sys
from contextlib import asynccontextmanager

from powcap.config import Settings
from powcap.engine import Cap
from powcap.logging_config import get_logger, setup_logging
from powcap.scheduler import create_scheduler, shutdown_scheduler, start_scheduler

logger = get_logger(__name__)

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)


@asynccontextmanager
async def lifespan(cap: Cap):
    """Manage engine lifecycle - load tokens, run the sweep, flush on exit."""
    cap.start()
    scheduler = create_scheduler(cap)
    start_scheduler(scheduler)
    await cap.ready()
    try:
        yield cap
    finally:
        shutdown_scheduler(scheduler)
        await cap.cleanup()


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> None:
    """Set ``stop_event`` on the first termination signal, then stop listening."""

    def _handle(signum: int) -> None:
        logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
        for sig in SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)
        stop_event.set()

    for sig in SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, _handle, sig)


async def serve(cap: Cap) -> int:
    """Run ``cap`` until a termination signal arrives. Returns the exit code."""
    stop_event = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), stop_event)

    cap.start()
    scheduler = create_scheduler(cap)
    start_scheduler(scheduler)
    await cap.ready()
    logger.info("engine_ready", store=str(cap.store.path))

    await stop_event.wait()
    shutdown_scheduler(scheduler)
    return await cap.shutdown()


def main(settings: Settings | None = None) -> int:
    settings = settings or Settings()
    setup_logging(settings)
    return asyncio.run(serve(Cap(settings)))


if __name__ == "__main__":
    sys.exit(main())
