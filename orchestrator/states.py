"""Pipeline state transition table."""

from __future__ import annotations

from typing import Dict, FrozenSet

from core import PipelineState
from utils.exceptions import InvalidTransition


S = PipelineState

TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    S.DETECTED: frozenset({S.ELIGIBLE, S.SKIPPED, S.FAILED}),
    S.ELIGIBLE: frozenset({S.SUBMITTED, S.FAILED}),
    S.SUBMITTED: frozenset({S.ANALYSIS_COMPLETE, S.FAILED}),
    S.ANALYSIS_COMPLETE: frozenset({S.METADATA_EXTRACTED, S.FAILED}),
    S.METADATA_EXTRACTED: frozenset({S.INTEREST_RESOLVED, S.FAILED}),
    S.INTEREST_RESOLVED: frozenset({S.DELIVERED, S.FAILED}),
    S.DELIVERED: frozenset(),
    S.SKIPPED: frozenset(),
    S.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset(state for state, targets in TRANSITIONS.items() if not targets)


def can_transition(current: PipelineState, target: PipelineState) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: PipelineState, target: PipelineState) -> None:
    """Raise InvalidTransition unless current -> target is in the table."""
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Illegal transition {current.value} -> {target.value}",
            {"from": current.value, "to": target.value},
        )


def is_terminal(state: PipelineState) -> bool:
    return state in TERMINAL_STATES
