import pytest

from powcap.config import Settings
from powcap.engine import Cap
from powcap.services.token_store import TokenStore, TokenStoreError
from tests.test_utils import FakeClock


@pytest.fixture
def store_path(tmp_path):
    """Token store location inside a not-yet-existing directory."""
    return tmp_path / ".data" / "tokensList.json"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(store_path):
    """Small, fast-to-solve challenges and no background sweep."""
    return Settings(
        _env_file=None,
        tokens_store_path=str(store_path),
        challenge_count=4,
        challenge_difficulty=2,
        sweep_interval_seconds=0,
    )


@pytest.fixture
def cap(settings, clock):
    """Create an engine over a fresh token store."""
    return Cap(settings, clock=clock)


class FailingStore(TokenStore):
    """Token store whose writes always fail after a successful load."""

    async def save(self, tokens):
        raise TokenStoreError("disk full")


@pytest.fixture
def failing_cap(settings, clock):
    return Cap(settings, store=FailingStore(settings.tokens_store_path), clock=clock)
