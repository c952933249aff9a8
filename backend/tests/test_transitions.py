"""Tests for the leave request state machine and its ledger deltas."""

from __future__ import annotations

from decimal import Decimal

import pytest

from leave_engine.exceptions import BadRequestError
from leave_engine.models.enums import RequestState, ReviewAction
from leave_engine.services.ledger import BalanceDelta, BalanceFigures, compute_next
from leave_engine.services.transitions import (
    TRANSITIONS,
    creation_delta,
    creation_state,
    eligible_states,
    resolve_transition,
)

HOURS = Decimal("8")


def test_approve_is_only_allowed_from_pending() -> None:
    assert eligible_states(ReviewAction.APPROVE) == {RequestState.PENDING}


def test_reject_is_allowed_from_pending_and_approved() -> None:
    assert eligible_states(ReviewAction.REJECT) == {RequestState.PENDING, RequestState.APPROVED}


@pytest.mark.parametrize(
    ("state", "action", "expected"),
    [
        (RequestState.PENDING, ReviewAction.APPROVE, BalanceDelta(pending=-HOURS, booked=HOURS)),
        (RequestState.PENDING, ReviewAction.REJECT, BalanceDelta(pending=-HOURS, balance=HOURS)),
        (RequestState.APPROVED, ReviewAction.REJECT, BalanceDelta(booked=-HOURS, balance=HOURS)),
    ],
)
def test_transition_deltas(state: RequestState, action: ReviewAction, expected: BalanceDelta) -> None:
    assert resolve_transition(state, action).ledger_delta(HOURS) == expected


@pytest.mark.parametrize(
    ("state", "action"),
    [
        (RequestState.APPROVED, ReviewAction.APPROVE),
        (RequestState.REJECTED, ReviewAction.APPROVE),
        (RequestState.REJECTED, ReviewAction.REJECT),
        (RequestState.CANCELLED, ReviewAction.REJECT),
    ],
)
def test_state_mismatch_is_bad_request(state: RequestState, action: ReviewAction) -> None:
    with pytest.raises(BadRequestError, match=f"current state: {state.value}"):
        resolve_transition(state, action)


def test_review_transitions_conserve_or_release_held_hours() -> None:
    """Approve keeps the three-bucket total; reject hands the hours back to balance."""
    held = BalanceFigures(Decimal("16"), HOURS, Decimal("0"))
    approved = compute_next(held, TRANSITIONS[(RequestState.PENDING, ReviewAction.APPROVE)].ledger_delta(HOURS))
    assert approved.total_hours == held.total_hours
    assert approved.booked_hours == HOURS

    rejected = compute_next(approved, TRANSITIONS[(RequestState.APPROVED, ReviewAction.REJECT)].ledger_delta(HOURS))
    assert rejected == BalanceFigures(Decimal("24.00"), Decimal("0.00"), Decimal("0.00"))


def test_creation_state_follows_requires_approval() -> None:
    assert creation_state(True) == RequestState.PENDING
    assert creation_state(False) == RequestState.APPROVED


def test_creation_delta_holds_or_books() -> None:
    assert creation_delta(True, HOURS) == BalanceDelta(balance=-HOURS, pending=HOURS)
    assert creation_delta(False, HOURS) == BalanceDelta(balance=-HOURS, booked=HOURS)
