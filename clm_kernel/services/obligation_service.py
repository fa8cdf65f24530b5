"""
ObligationService -- tracking of contractual duties.

Responsibility:
    Creates and edits obligations, moves them through their status state
    machine and answers the overdue / due-soon queries.

Architecture position:
    Kernel > Services -- imperative shell over ``domain.obligation``.

Invariants enforced:
    - Status edges follow ``OBLIGATION_TRANSITIONS``; COMPLETED, WAIVED and
      CANCELLED are terminal and not editable.
    - Status changes go through ``ObligationRepository.update_status`` and
      the returned snapshot is re-read from storage.
    - "Overdue" is computed from ``due_date`` and ``as_of``; it is never a
      stored status.

Failure modes:
    - UnauthorizedError, ObligationNotFoundError, ValidationError,
      ContractNotFoundError / PartyNotFoundError (create against a contract
      or party the tenant does not own),
      InvalidTransitionError, ObligationClosedError, PersistenceError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from clm_config.schema import LifecycleSettings, PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.identifiers import ContractID, ObligationID, PartyID, UserID
from clm_kernel.domain.obligation import (
    Frequency,
    Obligation,
    ObligationType,
    new_obligation,
)
from clm_kernel.exceptions import (
    ObligationClosedError,
    ObligationNotFoundError,
    ValidationError,
)
from clm_kernel.logging_config import get_logger
from clm_kernel.repositories.base import ObligationRepository
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService
from clm_kernel.services.contract_service import build_money

logger = get_logger("services.obligation")

ENTITY_TYPE = "obligation"


@dataclass(frozen=True)
class CreateObligationRequest:
    contract_id: ContractID | None
    responsible_party: PartyID | None
    title: str
    due_date: datetime | None
    obligation_type: ObligationType
    description: str = ""
    amount: Decimal | None = None
    currency: str = ""
    frequency: Frequency = Frequency.ONCE
    reminder_days: int | None = None
    notes: str = ""


@dataclass(frozen=True)
class UpdateObligationRequest:
    """Partial edit. ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    amount: Decimal | None = None
    currency: str | None = None
    frequency: Frequency | None = None
    reminder_days: int | None = None
    notes: str | None = None


class ObligationService(BaseService):
    """Obligation lifecycle and due-date queries."""

    def __init__(
        self,
        repository: ObligationRepository,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
        lifecycle: LifecycleSettings | None = None,
    ):
        super().__init__(auditor=auditor, clock=clock, pagination=pagination)
        self._repository = repository
        self._lifecycle = lifecycle or LifecycleSettings()

    def create(
        self, tenant_id: str, actor: UserID, request: CreateObligationRequest,
    ) -> Obligation:
        """Create a PENDING obligation.

        Raises:
            ValidationError: missing title, contract, responsible party or
                due date; invalid amount/currency; negative reminder days.
            ContractNotFoundError, PartyNotFoundError: the contract or the
                responsible party is not visible to ``tenant_id``.
        """
        self._require_context(tenant_id, actor)
        if not request.title or not request.title.strip():
            raise ValidationError("title is required", field="title")
        if request.contract_id is None or request.contract_id.is_nil:
            raise ValidationError("contract is required", field="contract_id")
        if request.responsible_party is None or request.responsible_party.is_nil:
            raise ValidationError(
                "responsible party is required", field="responsible_party",
            )
        if request.due_date is None:
            raise ValidationError("due date is required", field="due_date")
        amount = build_money(request.amount, request.currency)
        reminder_days = request.reminder_days
        if reminder_days is None:
            reminder_days = self._lifecycle.default_reminder_days
        if reminder_days < 0:
            raise ValidationError("reminder days must be >= 0", field="reminder_days")

        obligation = new_obligation(
            tenant_id=tenant_id,
            contract_id=request.contract_id,
            responsible_party=request.responsible_party,
            title=request.title,
            obligation_type=request.obligation_type,
            due_date=request.due_date,
            actor=actor,
            at=self._now(),
            description=request.description,
            amount=amount,
            frequency=request.frequency,
            reminder_days=reminder_days,
            notes=request.notes,
        )
        stored = self._repository.create(obligation)
        logger.info(
            "obligation_created",
            extra={
                "tenant_id": tenant_id,
                "obligation_id": str(stored.id),
                "contract_id": str(stored.contract_id),
                "due_date": stored.due_date,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.OBLIGATION,
            actor=actor,
            after=stored,
        )
        return stored

    def get(self, tenant_id: str, obligation_id: ObligationID) -> Obligation:
        self._require_tenant(tenant_id)
        return self._repository.find_by_id(tenant_id, obligation_id)

    def list_by_contract(
        self,
        tenant_id: str,
        contract_id: ContractID,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Obligation]:
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._repository.find_by_contract(tenant_id, contract_id, offset, limit)

    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int:
        self._require_tenant(tenant_id)
        return self._repository.count_by_contract(tenant_id, contract_id)

    def find_overdue(
        self, tenant_id: str, offset: int = 0, limit: int | None = None,
    ) -> list[Obligation]:
        """Open obligations whose due date has passed, oldest first."""
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._repository.find_overdue(tenant_id, self._now(), offset, limit)

    def count_overdue(self, tenant_id: str) -> int:
        self._require_tenant(tenant_id)
        return self._repository.count_overdue(tenant_id, self._now())

    def find_due_soon(
        self, tenant_id: str, within_days: int | None = None,
    ) -> list[Obligation]:
        """Open obligations due within ``within_days`` that are inside their
        own reminder window.

        ``within_days`` defaults to ``LifecycleSettings.expiring_soon_days``.
        """
        self._require_tenant(tenant_id)
        if within_days is None:
            within_days = self._lifecycle.expiring_soon_days
        if within_days < 0:
            raise ValidationError("within_days must be >= 0", field="within_days")
        now = self._now()
        candidates = self._repository.find_open_due_before(
            tenant_id, now + timedelta(days=within_days),
        )
        return [o for o in candidates if o.is_due_soon(now)]

    def update(
        self,
        tenant_id: str,
        actor: UserID,
        obligation_id: ObligationID,
        request: UpdateObligationRequest,
    ) -> Obligation:
        """Apply a partial edit.

        Raises:
            ObligationClosedError: the obligation is in a terminal status.
        """
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, obligation_id)
        if current.is_terminal:
            raise ObligationClosedError(current.id, current.status)

        changes: dict = {}
        if request.title is not None:
            if not request.title.strip():
                raise ValidationError("title is required", field="title")
            changes["title"] = request.title
        if request.description is not None:
            changes["description"] = request.description
        if request.due_date is not None:
            changes["due_date"] = request.due_date
        if request.amount is not None or request.currency is not None:
            amount = request.amount
            if amount is None and current.amount is not None:
                amount = current.amount.amount
            currency = request.currency
            if currency is None:
                currency = current.amount.currency if current.amount is not None else ""
            changes["amount"] = build_money(amount, currency)
        if request.frequency is not None:
            changes["frequency"] = request.frequency
        if request.reminder_days is not None:
            if request.reminder_days < 0:
                raise ValidationError("reminder days must be >= 0", field="reminder_days")
            changes["reminder_days"] = request.reminder_days
        if request.notes is not None:
            changes["notes"] = request.notes

        updated = current.with_changes(actor, self._now(), **changes)
        stored = self._repository.update(updated)
        logger.info(
            "obligation_updated",
            extra={
                "tenant_id": tenant_id,
                "obligation_id": str(obligation_id),
                "fields": sorted(changes),
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=obligation_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.OBLIGATION,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    def mark_in_progress(
        self, tenant_id: str, actor: UserID, obligation_id: ObligationID,
    ) -> Obligation:
        return self._change_status(
            tenant_id, actor, obligation_id, Obligation.mark_in_progress,
        )

    def complete(
        self, tenant_id: str, actor: UserID, obligation_id: ObligationID,
    ) -> Obligation:
        """Mark COMPLETED and stamp ``completed_date``."""
        return self._change_status(tenant_id, actor, obligation_id, Obligation.complete)

    def waive(
        self, tenant_id: str, actor: UserID, obligation_id: ObligationID,
    ) -> Obligation:
        return self._change_status(tenant_id, actor, obligation_id, Obligation.waive)

    def cancel(
        self, tenant_id: str, actor: UserID, obligation_id: ObligationID,
    ) -> Obligation:
        return self._change_status(tenant_id, actor, obligation_id, Obligation.cancel)

    def _change_status(
        self,
        tenant_id: str,
        actor: UserID,
        obligation_id: ObligationID,
        move: Callable[[Obligation, UserID, datetime], Obligation],
    ) -> Obligation:
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, obligation_id)
        now = self._now()
        target = move(current, actor, now)
        matched = self._repository.update_status(
            tenant_id,
            obligation_id,
            target.status,
            actor,
            now,
            completed_date=target.completed_date,
        )
        if not matched:
            raise ObligationNotFoundError(obligation_id, tenant_id)
        stored = self._repository.find_by_id(tenant_id, obligation_id)

        logger.info(
            "obligation_status_changed",
            extra={
                "tenant_id": tenant_id,
                "obligation_id": str(obligation_id),
                "from_status": current.status.value,
                "to_status": stored.status.value,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=obligation_id,
            action=AuditAction.STATUS_CHANGED,
            category=AuditCategory.OBLIGATION,
            actor=actor,
            before=current,
            after=stored,
            metadata={"from_status": current.status, "to_status": stored.status},
        )
        return stored
