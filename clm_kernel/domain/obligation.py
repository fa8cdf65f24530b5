"""
Obligation domain types (``clm_kernel.domain.obligation``).

Responsibility
--------------
A dated duty tied to one contract and one responsible party, with its
status state machine and the time-based predicates evaluated on read.

Invariants enforced
-------------------
* ``OBLIGATION_TRANSITIONS`` -- only PENDING <-> IN_PROGRESS moves
  sideways; every other edge ends in COMPLETED, WAIVED or CANCELLED.
* "Overdue" is never persisted.  ``is_overdue`` and ``is_due_soon`` are
  pure functions of the snapshot and the instant passed in.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from clm_kernel.domain.identifiers import ContractID, ObligationID, PartyID, UserID
from clm_kernel.domain.values import Money
from clm_kernel.exceptions import InvalidTransitionError

DEFAULT_REMINDER_DAYS = 7


class ObligationType(str, Enum):
    PAYMENT = "PAYMENT"
    DELIVERY = "DELIVERY"
    SERVICE = "SERVICE"
    REPORTING = "REPORTING"
    COMPLIANCE = "COMPLIANCE"
    MILESTONE = "MILESTONE"
    RENEWAL = "RENEWAL"
    TERMINATION = "TERMINATION"


class ObligationStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    WAIVED = "WAIVED"
    CANCELLED = "CANCELLED"


class Frequency(str, Enum):
    ONCE = "ONCE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"


OBLIGATION_TRANSITIONS: dict[ObligationStatus, frozenset[ObligationStatus]] = {
    ObligationStatus.PENDING: frozenset({
        ObligationStatus.IN_PROGRESS,
        ObligationStatus.COMPLETED,
        ObligationStatus.WAIVED,
        ObligationStatus.CANCELLED,
    }),
    ObligationStatus.IN_PROGRESS: frozenset({
        ObligationStatus.PENDING,
        ObligationStatus.COMPLETED,
        ObligationStatus.WAIVED,
        ObligationStatus.CANCELLED,
    }),
    ObligationStatus.COMPLETED: frozenset(),
    ObligationStatus.WAIVED: frozenset(),
    ObligationStatus.CANCELLED: frozenset(),
}

TERMINAL_OBLIGATION_STATUSES: frozenset[ObligationStatus] = frozenset({
    ObligationStatus.COMPLETED,
    ObligationStatus.WAIVED,
    ObligationStatus.CANCELLED,
})

OPEN_OBLIGATION_STATUSES: frozenset[ObligationStatus] = frozenset({
    ObligationStatus.PENDING,
    ObligationStatus.IN_PROGRESS,
})


@dataclass(frozen=True)
class Obligation:
    """Immutable obligation snapshot."""

    id: ObligationID
    tenant_id: str
    contract_id: ContractID
    responsible_party: PartyID
    title: str
    obligation_type: ObligationType
    due_date: datetime
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    status: ObligationStatus = ObligationStatus.PENDING
    description: str = ""
    completed_date: datetime | None = None
    amount: Money | None = None
    frequency: Frequency = Frequency.ONCE
    reminder_days: int = DEFAULT_REMINDER_DAYS
    notes: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_OBLIGATION_STATUSES

    def _move(
        self, target: ObligationStatus, actor: UserID, at: datetime, **changes,
    ) -> Obligation:
        if target not in OBLIGATION_TRANSITIONS[self.status]:
            raise InvalidTransitionError("obligation", self.status, target)
        return replace(self, status=target, updated_at=at, updated_by=actor, **changes)

    def mark_in_progress(self, actor: UserID, at: datetime) -> Obligation:
        if self.status != ObligationStatus.PENDING:
            raise InvalidTransitionError(
                "obligation", self.status, ObligationStatus.IN_PROGRESS,
            )
        return self._move(ObligationStatus.IN_PROGRESS, actor, at)

    def complete(self, actor: UserID, at: datetime) -> Obligation:
        return self._move(ObligationStatus.COMPLETED, actor, at, completed_date=at)

    def waive(self, actor: UserID, at: datetime) -> Obligation:
        return self._move(ObligationStatus.WAIVED, actor, at)

    def cancel(self, actor: UserID, at: datetime) -> Obligation:
        return self._move(ObligationStatus.CANCELLED, actor, at)

    def with_changes(self, actor: UserID, at: datetime, **changes) -> Obligation:
        """Copy with edited descriptive fields and fresh provenance."""
        return replace(self, updated_at=at, updated_by=actor, **changes)

    # ------------------------------------------------------------------
    # Pure predicates
    # ------------------------------------------------------------------

    def is_overdue(self, as_of: datetime) -> bool:
        if self.is_terminal:
            return False
        return self.due_date < as_of

    def is_due_soon(self, as_of: datetime) -> bool:
        if self.status not in OPEN_OBLIGATION_STATUSES:
            return False
        window_start = self.due_date - timedelta(days=self.reminder_days)
        return window_start <= as_of < self.due_date

    def days_until_due(self, as_of: datetime) -> int:
        return int((self.due_date - as_of).total_seconds() / 86400)


def new_obligation(
    *,
    tenant_id: str,
    contract_id: ContractID,
    responsible_party: PartyID,
    title: str,
    obligation_type: ObligationType,
    due_date: datetime,
    actor: UserID,
    at: datetime,
    **fields,
) -> Obligation:
    return Obligation(
        id=ObligationID.new(),
        tenant_id=tenant_id,
        contract_id=contract_id,
        responsible_party=responsible_party,
        title=title,
        obligation_type=obligation_type,
        due_date=due_date,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        status=ObligationStatus.PENDING,
        **fields,
    )
