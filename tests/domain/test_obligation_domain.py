"""
Obligation domain: status machine and the due-date predicates.

All pure domain tests, no database.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from clm_kernel.domain.identifiers import ContractID, PartyID, UserID
from clm_kernel.domain.obligation import (
    OBLIGATION_TRANSITIONS,
    TERMINAL_OBLIGATION_STATUSES,
    ObligationStatus,
    ObligationType,
    new_obligation,
)
from clm_kernel.exceptions import InvalidTransitionError

T0 = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
ACTOR = UserID.new()


def _obligation(status=ObligationStatus.PENDING, due=T0, **fields):
    ob = new_obligation(
        tenant_id="t1",
        contract_id=ContractID.new(),
        responsible_party=PartyID.new(),
        title="Quarterly report",
        obligation_type=ObligationType.REPORTING,
        due_date=due,
        actor=ACTOR,
        at=T0 - timedelta(days=60),
        **fields,
    )
    return replace(ob, status=status)


class TestObligationTransitions:
    """Status edges."""

    @pytest.mark.parametrize(
        "source,method,target",
        [
            (s, m, t)
            for s in ObligationStatus
            for m, t in (
                ("complete", ObligationStatus.COMPLETED),
                ("waive", ObligationStatus.WAIVED),
                ("cancel", ObligationStatus.CANCELLED),
            )
        ],
    )
    def test_closing_actions(self, source, method, target):
        """complete, waive and cancel follow the transition table."""
        ob = _obligation(source)
        if target in OBLIGATION_TRANSITIONS[source]:
            assert getattr(ob, method)(ACTOR, T0).status == target
        else:
            with pytest.raises(InvalidTransitionError):
                getattr(ob, method)(ACTOR, T0)

    @pytest.mark.parametrize("source", list(ObligationStatus))
    def test_mark_in_progress_only_from_pending(self, source):
        """Work can start only on a pending obligation."""
        ob = _obligation(source)
        if source == ObligationStatus.PENDING:
            assert ob.mark_in_progress(ACTOR, T0).status == ObligationStatus.IN_PROGRESS
        else:
            with pytest.raises(InvalidTransitionError):
                ob.mark_in_progress(ACTOR, T0)

    def test_complete_stamps_completed_date(self):
        """Completion records the completion date."""
        done = _obligation().complete(ACTOR, T0)
        assert done.completed_date == T0

    @pytest.mark.parametrize("status", sorted(TERMINAL_OBLIGATION_STATUSES))
    def test_terminal(self, status):
        """Terminal statuses have no outgoing edges."""
        assert OBLIGATION_TRANSITIONS[status] == frozenset()
        assert _obligation(status).is_terminal


class TestOverduePredicate:
    """is_overdue(as_of) is true iff open and due_date < as_of."""

    @pytest.mark.parametrize(
        "status,offset,expected",
        [
            (s, off, s not in TERMINAL_OBLIGATION_STATUSES and off > 0)
            for s, off in product(ObligationStatus, (-1, 0, 1))
        ],
    )
    def test_matrix(self, status, offset, expected):
        """Overdue only when open and strictly past due."""
        ob = _obligation(status, due=T0)
        assert ob.is_overdue(T0 + timedelta(seconds=offset)) is expected

    def test_overdue_is_never_a_status(self):
        """Overdue is derived, never stored."""
        assert "OVERDUE" not in {s.value for s in ObligationStatus}


class TestDueSoonPredicate:
    """is_due_soon(as_of): open and inside [due - reminder_days, due)."""

    def test_inside_window(self):
        """Inside the reminder window is due soon."""
        ob = _obligation(due=T0, reminder_days=7)
        assert ob.is_due_soon(T0 - timedelta(days=3))

    def test_window_start_inclusive(self):
        """The first reminder day counts."""
        ob = _obligation(due=T0, reminder_days=7)
        assert ob.is_due_soon(T0 - timedelta(days=7))

    def test_due_instant_excluded(self):
        """At the due instant it is no longer due soon."""
        ob = _obligation(due=T0, reminder_days=7)
        assert not ob.is_due_soon(T0)

    def test_before_window(self):
        """Before the reminder window it is not due soon."""
        ob = _obligation(due=T0, reminder_days=7)
        assert not ob.is_due_soon(T0 - timedelta(days=8))

    def test_closed_obligation_never_due_soon(self):
        """Closed obligations are never due soon."""
        ob = _obligation(ObligationStatus.WAIVED, due=T0, reminder_days=7)
        assert not ob.is_due_soon(T0 - timedelta(days=1))

    def test_days_until_due(self):
        """Days until due, negative once past."""
        ob = _obligation(due=T0)
        assert ob.days_until_due(T0 - timedelta(days=5)) == 5
        assert ob.days_until_due(T0 + timedelta(days=2)) == -2
