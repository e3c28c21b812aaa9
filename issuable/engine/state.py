"""Lifecycle of an issuable: opened -> closed -> reopened -> closed ...

Firing an event that is not defined for the current state is a no-op, so
repeated external triggers (a second "close" from a webhook retry, say) are
always safe.
"""

import logging

from issuable.schemas import IssuableState

logger = logging.getLogger(__name__)

OPEN_STATES = frozenset({IssuableState.OPENED, IssuableState.REOPENED})

# event -> (allowed source states, target state)
TRANSITIONS = {
    "close": (OPEN_STATES, IssuableState.CLOSED),
    "reopen": (frozenset({IssuableState.CLOSED}), IssuableState.REOPENED),
}


def state_of(issuable) -> IssuableState:
    return IssuableState(issuable.state)


def is_open(issuable) -> bool:
    return state_of(issuable) in OPEN_STATES


def is_closed(issuable) -> bool:
    return state_of(issuable) == IssuableState.CLOSED


def can_fire(issuable, event: str) -> bool:
    if event not in TRANSITIONS:
        return False
    sources, _ = TRANSITIONS[event]
    return state_of(issuable) in sources


def fire(issuable, event: str) -> bool:
    """Apply ``event`` to ``issuable`` in memory.

    Returns True when the state changed; the caller is responsible for
    persisting it.
    """
    if not can_fire(issuable, event):
        logger.debug(
            f"Ignoring {event} for {type(issuable).__name__} {issuable.id} in state {issuable.state}",
            extra={"issuable_id": issuable.id, "event": event},
        )
        return False

    _, target = TRANSITIONS[event]
    issuable.state = target.value
    return True
