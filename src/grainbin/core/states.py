"""Fill state definitions and transition rules for a bin."""

from __future__ import annotations

from enum import Enum, auto


class FillState(Enum):
    """Per-bin fill states, driven by the ``is_filling`` flag.

    IDLE -> FILLING -> IDLE

    IDLE: No accrual. The fill level only changes through explicit writes.
    FILLING: Continuous accrual at the elevator speed. Left on stop, on
        reaching capacity, on reset, and on any manual or load write, since
        an exact level invalidates the in-progress session.
    """

    IDLE = auto()
    FILLING = auto()


class FillTrigger(Enum):
    """What caused a fill state change."""

    START = auto()
    STOP = auto()
    AUTO_FULL = auto()
    RESET = auto()
    EXACT_WRITE = auto()
    UNDO = auto()


# Allowed (state, trigger) -> next state
TRANSITIONS: dict[FillState, dict[FillTrigger, FillState]] = {
    FillState.IDLE: {
        FillTrigger.START: FillState.FILLING,
        FillTrigger.RESET: FillState.IDLE,
        FillTrigger.EXACT_WRITE: FillState.IDLE,
        FillTrigger.UNDO: FillState.IDLE,
    },
    FillState.FILLING: {
        FillTrigger.STOP: FillState.IDLE,
        FillTrigger.AUTO_FULL: FillState.IDLE,
        FillTrigger.RESET: FillState.IDLE,
        FillTrigger.EXACT_WRITE: FillState.IDLE,
        FillTrigger.UNDO: FillState.IDLE,
    },
}


def can_transition(state: FillState, trigger: FillTrigger) -> bool:
    """Check if a trigger is valid in the given state.

    Args:
        state: Current fill state.
        trigger: Requested trigger.

    Returns:
        True if the trigger is allowed, False otherwise.
    """
    return trigger in TRANSITIONS.get(state, {})


def next_state(state: FillState, trigger: FillTrigger) -> FillState:
    """Resolve the state reached by a trigger.

    Raises:
        ValueError: If the trigger is not allowed in ``state``.
    """
    try:
        return TRANSITIONS[state][trigger]
    except KeyError:
        raise ValueError(f"Invalid trigger {trigger.name} in state {state.name}") from None
