"""Tests for the sweep function."""

from powcap.models.challenge import Challenge, EngineState
from powcap.services.sweeper import sweep
from tests.test_utils import START_MS


def make_state() -> EngineState:
    state = EngineState()
    state.challenges["old"] = Challenge(token="old", pairs=[("a", "b")], expires=START_MS - 1)
    state.challenges["edge"] = Challenge(token="edge", pairs=[("a", "b")], expires=START_MS)
    state.challenges["new"] = Challenge(token="new", pairs=[("a", "b")], expires=START_MS + 1)
    return state


class TestSweep:
    """Tests for expiry sweeping."""

    def test_expired_challenges_removed(self):
        """Test that challenges expiring at or before now are removed."""
        state = make_state()

        changed = sweep(state, START_MS)

        assert set(state.challenges) == {"new"}
        # Only token removals count as a change
        assert changed is False

    def test_expired_tokens_reported(self):
        """Test that removing a token reports a change."""
        state = EngineState(tokens={"a:x": START_MS - 5, "b:y": START_MS, "c:z": START_MS + 5})

        changed = sweep(state, START_MS)

        assert changed is True
        assert state.tokens == {"c:z": START_MS + 5}

    def test_nothing_expired(self):
        """Test that a clean state is left alone."""
        state = EngineState(tokens={"a:x": START_MS + 5})

        assert sweep(state, START_MS) is False
        assert state.tokens == {"a:x": START_MS + 5}

    def test_deterministic_for_same_now(self):
        """Test that sweeping twice at the same instant removes nothing more."""
        state = make_state()
        state.tokens = {"a:x": START_MS - 1, "b:y": START_MS + 1}

        assert sweep(state, START_MS) is True
        assert sweep(state, START_MS) is False
        assert set(state.challenges) == {"new"}
        assert set(state.tokens) == {"b:y"}
