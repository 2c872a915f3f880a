"""
Advertisement lifecycle as a pure state machine.

``transition`` knows nothing about zeroconf or the event loop. It maps a
state and an event to the next state plus a list of effects, which the
ServiceAdvertiser carries out against the discovery provider.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class AdvertisementState(Enum):
    """Where the DNS-SD advertisement is in its lifecycle."""
    DISCONNECTED = "disconnected"
    CLIENT_STARTING = "client_starting"
    GROUP_REGISTERING = "group_registering"
    PUBLISHED = "published"
    COLLISION_RETRY = "collision_retry"
    FAILED = "failed"


class AdvertisementEvent(Enum):
    """Inputs to the state machine."""
    START = "start"
    CONNECT_FAILED = "connect_failed"
    CLIENT_RUNNING = "client_running"
    CLIENT_COLLISION = "client_collision"
    CLIENT_FAILURE = "client_failure"
    CLIENT_DISCONNECTED = "client_disconnected"
    GROUP_ESTABLISHED = "group_established"
    GROUP_COLLISION = "group_collision"
    GROUP_FAILURE = "group_failure"
    STOP = "stop"


class Effect(Enum):
    """Side effects requested by a transition."""
    RESET_NAME = "reset_name"
    OPEN_CLIENT = "open_client"
    ENSURE_GROUP = "ensure_group"
    BUMP_NAME = "bump_name"
    REGISTER_SERVICE = "register_service"
    RESET_GROUP = "reset_group"
    RELEASE = "release"
    NOTIFY_ERROR = "notify_error"
    SCHEDULE_RESTART = "schedule_restart"
    CANCEL_RESTART = "cancel_restart"


@dataclass
class Transition:
    state: AdvertisementState
    effects: List[Effect] = field(default_factory=list)


S = AdvertisementState
E = AdvertisementEvent

ACTIVE_STATES = frozenset({
    S.CLIENT_STARTING,
    S.GROUP_REGISTERING,
    S.PUBLISHED,
    S.COLLISION_RETRY,
})


def transition(state: AdvertisementState, event: AdvertisementEvent) -> Transition:
    """Compute the next state and effects for ``event`` in ``state``."""
    if event is E.STOP:
        return Transition(S.DISCONNECTED, [Effect.CANCEL_RESTART, Effect.RELEASE, Effect.RESET_NAME])

    if event is E.START:
        if state is S.DISCONNECTED:
            return Transition(S.CLIENT_STARTING, [Effect.RESET_NAME, Effect.OPEN_CLIENT])
        # Already running, or failed and waiting for an explicit stop
        return Transition(state)

    # Provider events only matter while we hold a connection
    if state not in ACTIVE_STATES:
        return Transition(state)

    if event is E.CONNECT_FAILED:
        if state is S.CLIENT_STARTING:
            return Transition(S.DISCONNECTED, [Effect.RELEASE, Effect.RESET_NAME])
        return Transition(state)

    if event is E.CLIENT_RUNNING:
        return Transition(S.GROUP_REGISTERING, [Effect.ENSURE_GROUP, Effect.REGISTER_SERVICE])

    if event is E.GROUP_COLLISION:
        if state in (S.GROUP_REGISTERING, S.PUBLISHED):
            return Transition(S.GROUP_REGISTERING, [Effect.BUMP_NAME, Effect.REGISTER_SERVICE])
        return Transition(state)

    if event is E.GROUP_ESTABLISHED:
        if state is S.GROUP_REGISTERING:
            return Transition(S.PUBLISHED)
        return Transition(state)

    if event is E.CLIENT_COLLISION:
        # Drop what we published; the provider reports running again
        # once the host name is sorted out, and we re-register then
        return Transition(S.COLLISION_RETRY, [Effect.RESET_GROUP])

    if event in (E.GROUP_FAILURE, E.CLIENT_FAILURE):
        return Transition(S.FAILED, [Effect.RELEASE, Effect.NOTIFY_ERROR])

    if event is E.CLIENT_DISCONNECTED:
        return Transition(S.DISCONNECTED, [Effect.RELEASE, Effect.SCHEDULE_RESTART])

    return Transition(state)
