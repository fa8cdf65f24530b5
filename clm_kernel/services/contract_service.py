"""
ContractService -- orchestration of the contract lifecycle.

Responsibility:
    Creates, edits, versions and moves contracts through their status state
    machine.  Every mutation is validated, persisted through the
    ``ContractRepository`` port and recorded through ``AuditorService``.

Architecture position:
    Kernel > Services -- imperative shell over ``domain.contract``.

Invariants enforced:
    - Status changes follow ``CONTRACT_TRANSITIONS`` only.
    - Free-form fields change only while the contract is DRAFT.
    - A non-zero value carries a three-letter uppercase currency, and the
      expiration date is never before the effective date.
    - Contract numbers are unique per tenant across non-deleted contracts;
      amendments reuse the number with ``version + 1``.

Failure modes:
    - UnauthorizedError: blank tenant or nil actor.
    - ContractNotFoundError: absent, deleted elsewhere, or another tenant's.
    - ValidationError (and subclasses ``InvalidTransitionError``,
      ``DraftOnlyEditError``, ``DuplicateContractNumberError``).
    - PersistenceError: propagated unchanged from the port.

Audit relevance:
    One audit entry per successful mutation with before/after snapshots.
    Status changes log ``contract_status_changed``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from clm_config.schema import LifecycleSettings, PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.contract import (
    AMENDABLE_CONTRACT_STATUSES,
    Contract,
    ContractParty,
    ContractStatus,
    ContractType,
    PartyRole,
    new_contract,
)
from clm_kernel.domain.identifiers import ContractID, PartyID, UserID
from clm_kernel.domain.values import Money, is_valid_currency_code
from clm_kernel.exceptions import (
    DraftOnlyEditError,
    DuplicateContractNumberError,
    InvalidTransitionError,
    ValidationError,
)
from clm_kernel.logging_config import LogContext, get_logger
from clm_kernel.repositories.base import ContractFilter, ContractRepository
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService

logger = get_logger("services.contract")

ENTITY_TYPE = "contract"

_ACTION_BY_STATUS: dict[ContractStatus, AuditAction] = {
    ContractStatus.PENDING_APPROVAL: AuditAction.SUBMITTED,
    ContractStatus.APPROVED: AuditAction.APPROVED,
    ContractStatus.REJECTED: AuditAction.REJECTED,
    ContractStatus.EXECUTED: AuditAction.EXECUTED,
    ContractStatus.ACTIVE: AuditAction.ACTIVATED,
    ContractStatus.TERMINATED: AuditAction.TERMINATED,
}


@dataclass(frozen=True)
class PartyInput:
    """A party to attach to a new contract."""

    party_id: PartyID | None
    role: PartyRole | None
    is_primary: bool = False
    signed_at: datetime | None = None
    signed_by: str | None = None


@dataclass(frozen=True)
class CreateContractRequest:
    contract_number: str
    title: str
    contract_type: ContractType
    parties: tuple[PartyInput, ...] = ()
    external_ref: str = ""
    description: str = ""
    value_amount: Decimal | None = None
    value_currency: str = ""
    effective_date: datetime | None = None
    expiration_date: datetime | None = None
    auto_renew: bool = False
    renewal_term_days: int = 0
    notice_period_days: int = 0
    terms: str = ""
    notes: str = ""


@dataclass(frozen=True)
class UpdateContractRequest:
    """Partial edit. ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    value_amount: Decimal | None = None
    value_currency: str | None = None
    effective_date: datetime | None = None
    expiration_date: datetime | None = None
    auto_renew: bool | None = None
    renewal_term_days: int | None = None
    notice_period_days: int | None = None
    terms: str | None = None
    notes: str | None = None


def build_money(amount: Decimal | int | str | None, currency: str | None) -> Money | None:
    """Validate an amount/currency pair and build ``Money``.

    A missing or zero amount without a currency yields ``None``.

    Raises:
        ValidationError: float amount, non-zero amount without currency, or
            a currency that is not three uppercase letters.
    """
    if isinstance(amount, float):
        raise ValidationError("amount must be a Decimal, not a float", field="value_amount")
    currency = currency or ""
    if amount is None and not currency:
        return None
    if amount is not None and Decimal(str(amount)) != 0 and not currency:
        raise ValidationError("currency is required for a non-zero amount", field="value_currency")
    if currency and not is_valid_currency_code(currency):
        raise ValidationError(
            f"currency must be a three-letter uppercase code: {currency!r}",
            field="value_currency",
        )
    if not currency:
        return None
    return Money.of(amount if amount is not None else 0, currency)


def validate_date_range(
    effective_date: datetime | None, expiration_date: datetime | None,
) -> None:
    if effective_date and expiration_date and expiration_date < effective_date:
        raise ValidationError(
            "expiration date must not be before effective date",
            field="expiration_date",
        )


class ContractService(BaseService):
    """
    Contract lifecycle operations.

    Contract:
        Receives its repository port, auditor and clock via constructor
        injection.  Returns immutable ``Contract`` snapshots.
    Guarantees:
        - A failed operation leaves the stored contract unchanged.
        - Audit failures never fail the operation.
    Non-goals:
        - Does not detect concurrent edits; the last write wins.
    """

    def __init__(
        self,
        repository: ContractRepository,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
        lifecycle: LifecycleSettings | None = None,
    ):
        super().__init__(auditor=auditor, clock=clock, pagination=pagination)
        self._repository = repository
        self._lifecycle = lifecycle or LifecycleSettings()

    # ------------------------------------------------------------------
    # Creation and queries
    # ------------------------------------------------------------------

    def create(
        self, tenant_id: str, actor: UserID, request: CreateContractRequest,
    ) -> Contract:
        """Create a DRAFT contract at version 1.

        Raises:
            ValidationError: on missing title, type, number or parties, an
                invalid value, or an inverted date range.
            DuplicateContractNumberError: number already used in the tenant.
        """
        self._require_context(tenant_id, actor)
        value = self._validate_create(request)
        if self._repository.find_by_number(tenant_id, request.contract_number) is not None:
            raise DuplicateContractNumberError(request.contract_number)

        now = self._now()
        contract = new_contract(
            tenant_id=tenant_id,
            contract_number=request.contract_number,
            title=request.title,
            contract_type=request.contract_type,
            actor=actor,
            at=now,
            external_ref=request.external_ref,
            description=request.description,
            parties=tuple(
                ContractParty(
                    party_id=p.party_id,
                    role=p.role,
                    is_primary=p.is_primary,
                    signed_at=p.signed_at,
                    signed_by=p.signed_by,
                )
                for p in request.parties
            ),
            value=value,
            effective_date=request.effective_date,
            expiration_date=request.expiration_date,
            auto_renew=request.auto_renew,
            renewal_term_days=request.renewal_term_days,
            notice_period_days=request.notice_period_days,
            terms=request.terms,
            notes=request.notes,
        )
        stored = self._repository.create(contract)

        logger.info(
            "contract_created",
            extra={
                "tenant_id": tenant_id,
                "contract_id": str(stored.id),
                "contract_number": stored.contract_number,
                "party_count": len(stored.parties),
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.CONTRACT,
            actor=actor,
            after=stored,
        )
        return stored

    def get(self, tenant_id: str, contract_id: ContractID) -> Contract:
        self._require_tenant(tenant_id)
        return self._repository.find_by_id(tenant_id, contract_id)

    def list(
        self,
        tenant_id: str,
        criteria: ContractFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Contract]:
        """Non-deleted contracts matching ``criteria``, newest first."""
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._repository.find_all(
            tenant_id, criteria or ContractFilter(), offset, limit,
        )

    def count(self, tenant_id: str, criteria: ContractFilter | None = None) -> int:
        self._require_tenant(tenant_id)
        return self._repository.count(tenant_id, criteria or ContractFilter())

    def find_expiring(self, tenant_id: str, days: int | None = None) -> list[Contract]:
        """ACTIVE contracts expiring within ``days`` of now (exclusive of now)."""
        self._require_tenant(tenant_id)
        if days is None:
            days = self._lifecycle.expiring_soon_days
        if days < 0:
            raise ValidationError("days must be >= 0", field="days")
        now = self._now()
        return self._repository.find_expiring(tenant_id, now, now + timedelta(days=days))

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update(
        self,
        tenant_id: str,
        actor: UserID,
        contract_id: ContractID,
        request: UpdateContractRequest,
    ) -> Contract:
        """Apply a partial edit to a DRAFT contract.

        Raises:
            DraftOnlyEditError: the contract is not DRAFT.
            ValidationError: blank title, invalid value or date range.
        """
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, contract_id)
        if not current.is_editable:
            raise DraftOnlyEditError(current.id, current.status)

        now = self._now()
        updated = current
        if request.title is not None:
            if not request.title.strip():
                raise ValidationError("title is required", field="title")
            updated = updated.with_title(request.title, actor, now)
        if request.description is not None:
            updated = updated.with_description(request.description, actor, now)
        if request.value_amount is not None or request.value_currency is not None:
            amount = request.value_amount
            if amount is None and current.value is not None:
                amount = current.value.amount
            currency = request.value_currency
            if currency is None:
                currency = current.value.currency if current.value is not None else ""
            updated = updated.with_value(build_money(amount, currency), actor, now)
        if request.effective_date is not None or request.expiration_date is not None:
            effective = request.effective_date or current.effective_date
            expiration = request.expiration_date or current.expiration_date
            validate_date_range(effective, expiration)
            updated = updated.with_dates(effective, expiration, actor, now)
        if (
            request.auto_renew is not None
            or request.renewal_term_days is not None
            or request.notice_period_days is not None
        ):
            updated = updated.with_renewal_terms(
                current.auto_renew if request.auto_renew is None else request.auto_renew,
                current.renewal_term_days
                if request.renewal_term_days is None
                else request.renewal_term_days,
                current.notice_period_days
                if request.notice_period_days is None
                else request.notice_period_days,
                actor,
                now,
            )
        if request.terms is not None:
            updated = updated.with_terms(request.terms, actor, now)
        if request.notes is not None:
            updated = updated.with_notes(request.notes, actor, now)

        stored = self._repository.update(updated)
        logger.info(
            "contract_updated",
            extra={"tenant_id": tenant_id, "contract_id": str(contract_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=contract_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.CONTRACT,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    def amend(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        """Draft the next version of an executed or running contract.

        The source contract is left untouched; the new DRAFT shares its
        number and points back at it through ``previous_version``.
        """
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, contract_id)
        if current.status not in AMENDABLE_CONTRACT_STATUSES:
            raise InvalidTransitionError(ENTITY_TYPE, current.status, ContractStatus.DRAFT)
        latest = self._repository.find_by_number(tenant_id, current.contract_number)
        if latest is not None and latest.id != current.id:
            raise ValidationError(
                f"contract {current.id} is not the latest version of "
                f"{current.contract_number}",
                field="version",
            )

        amendment = current.supersede(ContractID.new(), actor, self._now())
        stored = self._repository.create(amendment)
        logger.info(
            "contract_amended",
            extra={
                "tenant_id": tenant_id,
                "contract_id": str(stored.id),
                "previous_version": str(current.id),
                "version": stored.version,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.CONTRACT,
            actor=actor,
            before=current,
            after=stored,
            metadata={"previous_version": str(current.id)},
        )
        return stored

    def soft_delete(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> bool:
        """Soft-delete a contract.

        Every later operation on the contract raises ContractNotFoundError.
        False only when another writer deleted it between the read and the
        update.
        """
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, contract_id)
        deleted = self._repository.soft_delete(tenant_id, contract_id, actor, self._now())
        if deleted:
            logger.info(
                "contract_deleted",
                extra={"tenant_id": tenant_id, "contract_id": str(contract_id)},
            )
            self._audit(
                tenant_id=tenant_id,
                entity_type=ENTITY_TYPE,
                entity_id=contract_id,
                action=AuditAction.DELETED,
                category=AuditCategory.CONTRACT,
                actor=actor,
                before=current,
            )
        return deleted

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def transition_status(
        self,
        tenant_id: str,
        actor: UserID,
        contract_id: ContractID,
        target: ContractStatus,
    ) -> Contract:
        """Move a contract to ``target`` along a legal edge.

        Raises:
            InvalidTransitionError: ``target`` is not reachable from the
                current status.  The stored contract is unchanged.
        """
        if target == ContractStatus.TERMINATED:
            return self._apply(tenant_id, actor, contract_id, target, Contract.terminate)
        return self._apply(
            tenant_id,
            actor,
            contract_id,
            target,
            lambda c, a, at: c.transition_to(target, a, at),
        )

    def submit(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.PENDING_APPROVAL, Contract.submit,
        )

    def approve(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.APPROVED, Contract.approve,
        )

    def reject(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.REJECTED, Contract.reject,
        )

    def execute(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.EXECUTED, Contract.execute,
        )

    def activate(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.ACTIVE, Contract.activate,
        )

    def suspend(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.SUSPENDED, Contract.suspend,
        )

    def start_renewal(
        self, tenant_id: str, actor: UserID, contract_id: ContractID,
    ) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.RENEWING, Contract.start_renewal,
        )

    def expire(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.EXPIRED, Contract.expire,
        )

    def revert_to_draft(
        self, tenant_id: str, actor: UserID, contract_id: ContractID,
    ) -> Contract:
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.DRAFT, Contract.revert_to_draft,
        )

    def terminate(self, tenant_id: str, actor: UserID, contract_id: ContractID) -> Contract:
        """Terminate and stamp ``termination_date`` with the current time."""
        return self._apply(
            tenant_id, actor, contract_id, ContractStatus.TERMINATED, Contract.terminate,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(
        self,
        tenant_id: str,
        actor: UserID,
        contract_id: ContractID,
        target: ContractStatus,
        move: Callable[[Contract, UserID, datetime], Contract],
    ) -> Contract:
        self._require_context(tenant_id, actor)
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor, entity_id=contract_id):
            current = self._repository.find_by_id(tenant_id, contract_id)
            updated = move(current, actor, self._now())
            stored = self._repository.update(updated)

            logger.info(
                "contract_status_changed",
                extra={
                    "contract_id": str(contract_id),
                    "from_status": current.status.value,
                    "to_status": target.value,
                },
            )
            self._audit(
                tenant_id=tenant_id,
                entity_type=ENTITY_TYPE,
                entity_id=contract_id,
                action=_ACTION_BY_STATUS.get(target, AuditAction.STATUS_CHANGED),
                category=AuditCategory.CONTRACT,
                actor=actor,
                before=current,
                after=stored,
                metadata={"from_status": current.status, "to_status": target},
            )
            return stored

    @staticmethod
    def _validate_create(request: CreateContractRequest) -> Money | None:
        if not request.contract_number or not request.contract_number.strip():
            raise ValidationError("contract number is required", field="contract_number")
        if not request.title or not request.title.strip():
            raise ValidationError("title is required", field="title")
        contract_type = request.contract_type
        if contract_type is None or not (contract_type.name or contract_type.code):
            raise ValidationError("contract type is required", field="contract_type")
        value = build_money(request.value_amount, request.value_currency)
        validate_date_range(request.effective_date, request.expiration_date)
        if not request.parties:
            raise ValidationError("at least one party is required", field="parties")
        for index, party in enumerate(request.parties):
            if party.party_id is None or party.party_id.is_nil:
                raise ValidationError(
                    f"party {index} is missing a party id", field="parties",
                )
            if party.role is None:
                raise ValidationError(f"party {index} is missing a role", field="parties")
        return value
