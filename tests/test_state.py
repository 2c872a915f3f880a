"""
Tests for the pure advertisement state machine.
"""

import pytest

from keyshare.sharing.state import (
    ACTIVE_STATES,
    AdvertisementEvent as E,
    AdvertisementState as S,
    Effect,
    transition,
)

PROVIDER_EVENTS = [
    E.CLIENT_RUNNING,
    E.CLIENT_COLLISION,
    E.CLIENT_FAILURE,
    E.CLIENT_DISCONNECTED,
    E.GROUP_ESTABLISHED,
    E.GROUP_COLLISION,
    E.GROUP_FAILURE,
]


class TestStartStop:
    """Tests for START and STOP."""

    def test_start_from_disconnected(self):
        result = transition(S.DISCONNECTED, E.START)
        assert result.state is S.CLIENT_STARTING
        assert result.effects == [Effect.RESET_NAME, Effect.OPEN_CLIENT]

    @pytest.mark.parametrize("state", [s for s in S if s is not S.DISCONNECTED])
    def test_start_elsewhere_is_noop(self, state):
        """START only acts from DISCONNECTED; FAILED needs a STOP first."""
        result = transition(state, E.START)
        assert result.state is state
        assert result.effects == []

    @pytest.mark.parametrize("state", list(S))
    def test_stop_from_anywhere(self, state):
        result = transition(state, E.STOP)
        assert result.state is S.DISCONNECTED
        assert result.effects == [Effect.CANCEL_RESTART, Effect.RELEASE, Effect.RESET_NAME]

    def test_connect_failed(self):
        result = transition(S.CLIENT_STARTING, E.CONNECT_FAILED)
        assert result.state is S.DISCONNECTED
        assert Effect.RELEASE in result.effects
        assert Effect.NOTIFY_ERROR not in result.effects


class TestRegistration:
    """Tests for the registration path."""

    @pytest.mark.parametrize("state", [S.CLIENT_STARTING, S.COLLISION_RETRY, S.PUBLISHED])
    def test_client_running_registers(self, state):
        result = transition(state, E.CLIENT_RUNNING)
        assert result.state is S.GROUP_REGISTERING
        assert result.effects == [Effect.ENSURE_GROUP, Effect.REGISTER_SERVICE]

    def test_established(self):
        result = transition(S.GROUP_REGISTERING, E.GROUP_ESTABLISHED)
        assert result.state is S.PUBLISHED
        assert result.effects == []

    @pytest.mark.parametrize("state", [S.GROUP_REGISTERING, S.PUBLISHED])
    def test_group_collision_renames(self, state):
        result = transition(state, E.GROUP_COLLISION)
        assert result.state is S.GROUP_REGISTERING
        assert result.effects == [Effect.BUMP_NAME, Effect.REGISTER_SERVICE]

    def test_client_collision_resets_group_only(self):
        result = transition(S.PUBLISHED, E.CLIENT_COLLISION)
        assert result.state is S.COLLISION_RETRY
        assert result.effects == [Effect.RESET_GROUP]


class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.parametrize("state", sorted(ACTIVE_STATES, key=lambda s: s.value))
    @pytest.mark.parametrize("event", [E.GROUP_FAILURE, E.CLIENT_FAILURE])
    def test_failure_is_reported(self, state, event):
        result = transition(state, event)
        assert result.state is S.FAILED
        assert result.effects == [Effect.RELEASE, Effect.NOTIFY_ERROR]

    @pytest.mark.parametrize("state", sorted(ACTIVE_STATES, key=lambda s: s.value))
    def test_disconnect_retries_silently(self, state):
        result = transition(state, E.CLIENT_DISCONNECTED)
        assert result.state is S.DISCONNECTED
        assert result.effects == [Effect.RELEASE, Effect.SCHEDULE_RESTART]

    @pytest.mark.parametrize("state", [S.FAILED, S.DISCONNECTED])
    @pytest.mark.parametrize("event", PROVIDER_EVENTS)
    def test_idle_states_ignore_provider(self, state, event):
        """Late provider events can't revive a released advertisement."""
        result = transition(state, event)
        assert result.state is state
        assert result.effects == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
