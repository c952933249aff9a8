"""Leave request state machine and the ledger effect of every transition."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from leave_engine.exceptions import BadRequestError
from leave_engine.models.enums import RequestState, ReviewAction
from leave_engine.services.ledger import BalanceDelta


@dataclass(frozen=True)
class Transition:
    """A reviewer-driven move between states and its paid-leave ledger delta."""

    source: RequestState
    target: RequestState
    ledger_delta: Callable[[Decimal], BalanceDelta]


TRANSITIONS: dict[tuple[RequestState, ReviewAction], Transition] = {
    (RequestState.PENDING, ReviewAction.APPROVE): Transition(
        RequestState.PENDING,
        RequestState.APPROVED,
        lambda hours: BalanceDelta(pending=-hours, booked=hours),
    ),
    (RequestState.PENDING, ReviewAction.REJECT): Transition(
        RequestState.PENDING,
        RequestState.REJECTED,
        lambda hours: BalanceDelta(pending=-hours, balance=hours),
    ),
    (RequestState.APPROVED, ReviewAction.REJECT): Transition(
        RequestState.APPROVED,
        RequestState.REJECTED,
        lambda hours: BalanceDelta(booked=-hours, balance=hours),
    ),
}

TARGET_STATES: dict[ReviewAction, RequestState] = {
    ReviewAction.APPROVE: RequestState.APPROVED,
    ReviewAction.REJECT: RequestState.REJECTED,
}


def eligible_states(action: ReviewAction) -> frozenset[RequestState]:
    """States from which ``action`` is allowed."""
    return frozenset(source for source, act in TRANSITIONS if act == action)


def resolve_transition(state: RequestState, action: ReviewAction) -> Transition:
    """Look up the transition for ``action`` from ``state`` or raise a state-mismatch error."""
    transition = TRANSITIONS.get((state, action))
    if transition is None:
        allowed = " or ".join(sorted(s.value for s in eligible_states(action)))
        msg = f"Only {allowed} leave requests can be {TARGET_STATES[action].value} (current state: {state.value})"
        raise BadRequestError(msg)
    return transition


def creation_state(requires_approval: bool) -> RequestState:
    """Initial state of a new request."""
    return RequestState.PENDING if requires_approval else RequestState.APPROVED


def creation_delta(requires_approval: bool, hours: Decimal) -> BalanceDelta:
    """Ledger effect of creating a paid request: hold it, or book it outright."""
    if requires_approval:
        return BalanceDelta(balance=-hours, pending=hours)
    return BalanceDelta(balance=-hours, booked=hours)
