"""
Service layer for Party operations.

Parties are the organisations and people that sign contracts.  They are
never hard-deleted; deactivation hides them from default listings.
"""

from __future__ import annotations

from dataclasses import dataclass

from clm_config.schema import PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.identifiers import PartyID, UserID
from clm_kernel.domain.party import Party, PartyType, RiskLevel, new_party
from clm_kernel.domain.values import Address
from clm_kernel.exceptions import PartyNotFoundError, ValidationError
from clm_kernel.logging_config import get_logger
from clm_kernel.repositories.base import PartyFilter, PartyRepository
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService

logger = get_logger("services.party")

ENTITY_TYPE = "party"


@dataclass(frozen=True)
class CreatePartyRequest:
    party_type: PartyType | None
    name: str
    legal_name: str = ""
    tax_id: str = ""
    email: str = ""
    phone: str = ""
    address: Address | None = None
    billing_address: Address | None = None
    risk_level: RiskLevel = RiskLevel.LOW
    risk_score: int = 0


@dataclass(frozen=True)
class UpdatePartyRequest:
    """Partial edit. ``None`` leaves a field unchanged."""

    name: str | None = None
    legal_name: str | None = None
    tax_id: str | None = None
    email: str | None = None
    phone: str | None = None
    address: Address | None = None
    billing_address: Address | None = None
    risk_level: RiskLevel | None = None
    risk_score: int | None = None


class PartyService(BaseService):
    """
    Service for managing contract parties.

    All public methods return immutable ``Party`` snapshots, except
    ``activate``/``deactivate`` which report whether a row changed.
    """

    def __init__(
        self,
        repository: PartyRepository,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
    ):
        super().__init__(auditor=auditor, clock=clock, pagination=pagination)
        self._repository = repository

    def create(self, tenant_id: str, actor: UserID, request: CreatePartyRequest) -> Party:
        self._require_context(tenant_id, actor)
        if not request.name or not request.name.strip():
            raise ValidationError("name is required", field="name")
        if request.party_type is None:
            raise ValidationError("party type is required", field="party_type")
        if request.risk_score < 0:
            raise ValidationError("risk score must be >= 0", field="risk_score")

        party = new_party(
            tenant_id=tenant_id,
            party_type=request.party_type,
            name=request.name,
            actor=actor,
            at=self._now(),
            legal_name=request.legal_name,
            tax_id=request.tax_id,
            email=request.email,
            phone=request.phone,
            address=request.address,
            billing_address=request.billing_address,
            risk_level=request.risk_level,
            risk_score=request.risk_score,
        )
        stored = self._repository.create(party)
        logger.info(
            "party_created",
            extra={
                "tenant_id": tenant_id,
                "party_id": str(stored.id),
                "party_type": stored.party_type.value,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.PARTY,
            actor=actor,
            after=stored,
        )
        return stored

    def get(self, tenant_id: str, party_id: PartyID) -> Party:
        self._require_tenant(tenant_id)
        return self._repository.find_by_id(tenant_id, party_id)

    def list(
        self,
        tenant_id: str,
        include_inactive: bool = False,
        search: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Party]:
        """Parties ordered by name. Inactive parties only on request."""
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        criteria = PartyFilter(include_inactive=include_inactive, search=search)
        return self._repository.find_all(tenant_id, criteria, offset, limit)

    def count(
        self, tenant_id: str, include_inactive: bool = False, search: str | None = None,
    ) -> int:
        self._require_tenant(tenant_id)
        criteria = PartyFilter(include_inactive=include_inactive, search=search)
        return self._repository.count(tenant_id, criteria)

    def update(
        self,
        tenant_id: str,
        actor: UserID,
        party_id: PartyID,
        request: UpdatePartyRequest,
    ) -> Party:
        """Apply a partial edit.

        A risk update that carries only a score keeps the current level.
        """
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, party_id)
        now = self._now()

        updated = current
        if request.name is not None:
            if not request.name.strip():
                raise ValidationError("name is required", field="name")
            updated = updated.with_name(request.name, actor, now)
        if request.legal_name is not None:
            updated = updated.with_legal_name(request.legal_name, actor, now)
        if request.tax_id is not None:
            updated = updated.with_tax_id(request.tax_id, actor, now)
        if request.email is not None:
            updated = updated.with_email(request.email, actor, now)
        if request.phone is not None:
            updated = updated.with_phone(request.phone, actor, now)
        if request.address is not None:
            updated = updated.with_address(request.address, actor, now)
        if request.billing_address is not None:
            updated = updated.with_billing_address(request.billing_address, actor, now)
        if request.risk_level is not None or request.risk_score is not None:
            score = current.risk_score if request.risk_score is None else request.risk_score
            if score < 0:
                raise ValidationError("risk score must be >= 0", field="risk_score")
            level = current.risk_level if request.risk_level is None else request.risk_level
            updated = updated.with_risk_assessment(level, score, actor, now)

        stored = self._repository.update(updated)
        logger.info(
            "party_updated",
            extra={"tenant_id": tenant_id, "party_id": str(party_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=party_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.PARTY,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    def deactivate(self, tenant_id: str, actor: UserID, party_id: PartyID) -> bool:
        return self._set_active(tenant_id, actor, party_id, active=False)

    def activate(self, tenant_id: str, actor: UserID, party_id: PartyID) -> bool:
        return self._set_active(tenant_id, actor, party_id, active=True)

    def _set_active(
        self, tenant_id: str, actor: UserID, party_id: PartyID, active: bool,
    ) -> bool:
        self._require_context(tenant_id, actor)
        matched = self._repository.set_active(
            tenant_id, party_id, active, actor, self._now(),
        )
        if not matched:
            raise PartyNotFoundError(party_id, tenant_id)
        logger.info(
            "party_activated" if active else "party_deactivated",
            extra={"tenant_id": tenant_id, "party_id": str(party_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=party_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.PARTY,
            actor=actor,
            metadata={"is_active": active},
        )
        return True
