"""
Contract domain types (``clm_kernel.domain.contract``).

Responsibility
--------------
The contract aggregate as an immutable snapshot, its status state machine,
and the pure expiry queries over it.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``domain/`` and ``exceptions``.

Invariants enforced
-------------------
* ``CONTRACT_TRANSITIONS`` defines the only legal status edges.  EXPIRED
  and TERMINATED have no outgoing edges.
* Every mutator returns a new ``Contract``; the receiver is never changed.
* ``version`` only moves on ``supersede()``; field edits leave it alone.

The entity does NOT enforce "free-form fields change only in DRAFT".  That
guard lives in ``ContractService`` so the ``with_*`` mutators stay usable
for building new versions.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from clm_kernel.domain.identifiers import (
    ContractID,
    ContractTypeID,
    PartyID,
    UserID,
)
from clm_kernel.domain.values import Money
from clm_kernel.exceptions import InvalidTransitionError


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    RENEWING = "RENEWING"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.PENDING_APPROVAL}),
    ContractStatus.PENDING_APPROVAL: frozenset({
        ContractStatus.APPROVED,
        ContractStatus.REJECTED,
        ContractStatus.DRAFT,
    }),
    ContractStatus.APPROVED: frozenset({
        ContractStatus.EXECUTED,
        ContractStatus.DRAFT,
    }),
    ContractStatus.REJECTED: frozenset({ContractStatus.DRAFT}),
    ContractStatus.EXECUTED: frozenset({ContractStatus.ACTIVE}),
    ContractStatus.ACTIVE: frozenset({
        ContractStatus.EXPIRED,
        ContractStatus.TERMINATED,
        ContractStatus.SUSPENDED,
        ContractStatus.RENEWING,
    }),
    ContractStatus.SUSPENDED: frozenset({
        ContractStatus.ACTIVE,
        ContractStatus.TERMINATED,
    }),
    ContractStatus.RENEWING: frozenset({
        ContractStatus.ACTIVE,
        ContractStatus.EXPIRED,
    }),
    ContractStatus.EXPIRED: frozenset(),
    ContractStatus.TERMINATED: frozenset(),
}

TERMINAL_CONTRACT_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.EXPIRED,
    ContractStatus.TERMINATED,
})

# Statuses from which an amendment (new version) may be drafted.
AMENDABLE_CONTRACT_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.EXECUTED,
    ContractStatus.ACTIVE,
    ContractStatus.SUSPENDED,
    ContractStatus.RENEWING,
})


def can_transition(source: ContractStatus, target: ContractStatus) -> bool:
    return target in CONTRACT_TRANSITIONS.get(source, frozenset())


class PartyRole(str, Enum):
    OWNER = "OWNER"
    COUNTERPARTY = "COUNTERPARTY"
    GUARANTOR = "GUARANTOR"
    WITNESS = "WITNESS"
    BENEFICIARY = "BENEFICIARY"


@dataclass(frozen=True)
class ContractType:
    """Contract type descriptor carried on each contract."""

    name: str = ""
    code: str = ""
    id: ContractTypeID | None = None
    description: str = ""
    default_duration_days: int = 0
    requires_approval: bool = True
    approval_levels: int = 1


@dataclass(frozen=True)
class ContractParty:
    """A party's participation in a contract."""

    party_id: PartyID
    role: PartyRole
    is_primary: bool = False
    signed_at: datetime | None = None
    signed_by: str | None = None

    @property
    def is_signed(self) -> bool:
        return self.signed_at is not None


@dataclass(frozen=True)
class Contract:
    """
    Immutable contract snapshot.

    Status changes go through ``transition_to`` (or one of the named
    wrappers), which stamps ``updated_at``/``updated_by``.  The ``with_*``
    mutators also stamp provenance.
    """

    id: ContractID
    tenant_id: str
    contract_number: str
    title: str
    contract_type: ContractType
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    status: ContractStatus = ContractStatus.DRAFT
    external_ref: str = ""
    description: str = ""
    parties: tuple[ContractParty, ...] = ()
    value: Money | None = None
    effective_date: datetime | None = None
    expiration_date: datetime | None = None
    termination_date: datetime | None = None
    auto_renew: bool = False
    renewal_term_days: int = 0
    notice_period_days: int = 0
    terms: str = ""
    notes: str = ""
    version: int = 1
    previous_version: ContractID | None = None
    is_deleted: bool = False

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CONTRACT_STATUSES

    @property
    def is_editable(self) -> bool:
        return self.status == ContractStatus.DRAFT and not self.is_deleted

    def transition_to(
        self, target: ContractStatus, actor: UserID, at: datetime,
    ) -> Contract:
        """Move to ``target``. Raises InvalidTransitionError for an absent edge."""
        if not can_transition(self.status, target):
            raise InvalidTransitionError("contract", self.status, target)
        return replace(self, status=target, updated_at=at, updated_by=actor)

    def submit(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.PENDING_APPROVAL, actor, at)

    def approve(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.APPROVED, actor, at)

    def reject(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.REJECTED, actor, at)

    def execute(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.EXECUTED, actor, at)

    def activate(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.ACTIVE, actor, at)

    def suspend(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.SUSPENDED, actor, at)

    def start_renewal(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.RENEWING, actor, at)

    def expire(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.EXPIRED, actor, at)

    def revert_to_draft(self, actor: UserID, at: datetime) -> Contract:
        return self.transition_to(ContractStatus.DRAFT, actor, at)

    def terminate(self, actor: UserID, at: datetime) -> Contract:
        terminated = self.transition_to(ContractStatus.TERMINATED, actor, at)
        return replace(terminated, termination_date=at)

    # ------------------------------------------------------------------
    # Field mutators
    # ------------------------------------------------------------------

    def _touch(self, actor: UserID, at: datetime, **changes) -> Contract:
        return replace(self, updated_at=at, updated_by=actor, **changes)

    def with_title(self, title: str, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, title=title)

    def with_description(self, description: str, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, description=description)

    def with_value(self, value: Money | None, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, value=value)

    def with_dates(
        self,
        effective_date: datetime | None,
        expiration_date: datetime | None,
        actor: UserID,
        at: datetime,
    ) -> Contract:
        return self._touch(
            actor, at, effective_date=effective_date, expiration_date=expiration_date,
        )

    def with_renewal_terms(
        self,
        auto_renew: bool,
        renewal_term_days: int,
        notice_period_days: int,
        actor: UserID,
        at: datetime,
    ) -> Contract:
        return self._touch(
            actor,
            at,
            auto_renew=auto_renew,
            renewal_term_days=renewal_term_days,
            notice_period_days=notice_period_days,
        )

    def with_terms(self, terms: str, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, terms=terms)

    def with_notes(self, notes: str, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, notes=notes)

    def add_party(self, party: ContractParty, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, parties=self.parties + (party,))

    def soft_delete(self, actor: UserID, at: datetime) -> Contract:
        return self._touch(actor, at, is_deleted=True)

    def supersede(self, new_id: ContractID, actor: UserID, at: datetime) -> Contract:
        """Draft the next version of this contract.

        The result is a fresh DRAFT with ``version + 1`` pointing back at
        this snapshot.  Signatures do not carry over.
        """
        return replace(
            self,
            id=new_id,
            status=ContractStatus.DRAFT,
            parties=tuple(
                replace(p, signed_at=None, signed_by=None) for p in self.parties
            ),
            termination_date=None,
            version=self.version + 1,
            previous_version=self.id,
            is_deleted=False,
            created_at=at,
            created_by=actor,
            updated_at=at,
            updated_by=actor,
        )

    # ------------------------------------------------------------------
    # Pure queries
    # ------------------------------------------------------------------

    @property
    def primary_party(self) -> ContractParty | None:
        return next((p for p in self.parties if p.is_primary), None)

    def is_expiring_soon(self, days: int, as_of: datetime) -> bool:
        if self.expiration_date is None:
            return False
        return as_of < self.expiration_date < as_of + timedelta(days=days)

    def days_until_expiration(self, as_of: datetime) -> int:
        """Whole days until expiration, truncated toward zero; -1 if undated."""
        if self.expiration_date is None:
            return -1
        delta = self.expiration_date - as_of
        return int(delta.total_seconds() / 86400)


def new_contract(
    *,
    tenant_id: str,
    contract_number: str,
    title: str,
    contract_type: ContractType,
    actor: UserID,
    at: datetime,
    contract_id: ContractID | None = None,
    **fields,
) -> Contract:
    """Create a DRAFT contract at version 1."""
    return Contract(
        id=contract_id or ContractID.new(),
        tenant_id=tenant_id,
        contract_number=contract_number,
        title=title,
        contract_type=contract_type,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        status=ContractStatus.DRAFT,
        version=1,
        **fields,
    )
