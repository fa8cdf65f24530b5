"""
Module: clm_kernel.models.contract
Responsibility: ORM persistence for contracts and their party participations.
Architecture position: Kernel > Models.

Invariants enforced:
    - UNIQUE(tenant_id, contract_number, version): a number identifies one
      contract lineage per tenant; each amendment is a new version row.
    - Party rows are owned by exactly one contract row and are replaced
      wholesale when the contract is updated.
    - The contract type descriptor is denormalized onto the contract row so
      a contract keeps the descriptor it was created under.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import Base, TenantScopedBase, UTCDateTime, UUIDString
from clm_kernel.domain.contract import (
    Contract,
    ContractParty,
    ContractStatus,
    ContractType,
    PartyRole,
)
from clm_kernel.domain.identifiers import ContractID, ContractTypeID, PartyID, UserID
from clm_kernel.domain.values import Money


class ContractModel(TenantScopedBase):
    __tablename__ = "clm_contracts"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "contract_number", "version",
            name="uq_clm_contracts_number_version",
        ),
        Index("idx_clm_contracts_tenant_status", "tenant_id", "status"),
        Index("idx_clm_contracts_expiration", "tenant_id", "expiration_date"),
    )

    contract_number: Mapped[str] = mapped_column(String(50), nullable=False)
    external_ref: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    type_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    type_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    type_code: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    type_description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    type_default_duration_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    type_requires_approval: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    type_approval_levels: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    value_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    value_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    effective_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    expiration_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    termination_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    auto_renew: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    renewal_term_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notice_period_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    terms: Mapped[str] = mapped_column(Text, default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    previous_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("clm_contracts.id"), nullable=True,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Contract {self.contract_number} v{self.version} status={self.status}>"

    @staticmethod
    def column_values(dto: Contract) -> dict[str, Any]:
        ctype = dto.contract_type
        return {
            "contract_number": dto.contract_number,
            "external_ref": dto.external_ref,
            "title": dto.title,
            "description": dto.description,
            "type_id": ctype.id.value if ctype.id else None,
            "type_name": ctype.name,
            "type_code": ctype.code,
            "type_description": ctype.description,
            "type_default_duration_days": ctype.default_duration_days,
            "type_requires_approval": ctype.requires_approval,
            "type_approval_levels": ctype.approval_levels,
            "status": dto.status.value,
            "value_amount": dto.value.amount if dto.value else None,
            "value_currency": dto.value.currency if dto.value else None,
            "effective_date": dto.effective_date,
            "expiration_date": dto.expiration_date,
            "termination_date": dto.termination_date,
            "auto_renew": dto.auto_renew,
            "renewal_term_days": dto.renewal_term_days,
            "notice_period_days": dto.notice_period_days,
            "terms": dto.terms,
            "notes": dto.notes,
            "version": dto.version,
            "previous_version_id": dto.previous_version.value if dto.previous_version else None,
            "is_deleted": dto.is_deleted,
            "updated_at": dto.updated_at,
            "updated_by_id": dto.updated_by.value,
        }

    @classmethod
    def from_dto(cls, dto: Contract) -> "ContractModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            created_at=dto.created_at,
            created_by_id=dto.created_by.value,
            **cls.column_values(dto),
        )

    def to_dto(self, parties: Iterable["ContractPartyModel"] = ()) -> Contract:
        value = None
        if self.value_amount is not None and self.value_currency:
            value = Money(self.value_amount, self.value_currency)
        return Contract(
            id=ContractID(self.id),
            tenant_id=self.tenant_id,
            contract_number=self.contract_number,
            title=self.title,
            contract_type=ContractType(
                id=ContractTypeID(self.type_id) if self.type_id else None,
                name=self.type_name,
                code=self.type_code,
                description=self.type_description,
                default_duration_days=self.type_default_duration_days,
                requires_approval=self.type_requires_approval,
                approval_levels=self.type_approval_levels,
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            status=ContractStatus(self.status),
            external_ref=self.external_ref,
            description=self.description,
            parties=tuple(p.to_dto() for p in sorted(parties, key=lambda p: p.position)),
            value=value,
            effective_date=self.effective_date,
            expiration_date=self.expiration_date,
            termination_date=self.termination_date,
            auto_renew=self.auto_renew,
            renewal_term_days=self.renewal_term_days,
            notice_period_days=self.notice_period_days,
            terms=self.terms,
            notes=self.notes,
            version=self.version,
            previous_version=ContractID(self.previous_version_id) if self.previous_version_id else None,
            is_deleted=self.is_deleted,
        )


class ContractPartyModel(Base):
    """One party's role on one contract row."""

    __tablename__ = "clm_contract_parties"

    __table_args__ = (
        Index("idx_clm_contract_parties_contract", "contract_id"),
        Index("idx_clm_contract_parties_party", "party_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_contracts.id"), nullable=False,
    )
    party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_parties.id"), nullable=False,
    )
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    signed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @classmethod
    def from_dto(
        cls, contract_id: ContractID, dto: ContractParty, position: int,
    ) -> "ContractPartyModel":
        return cls(
            contract_id=contract_id.value,
            party_id=dto.party_id.value,
            role=dto.role.value,
            is_primary=dto.is_primary,
            signed_at=dto.signed_at,
            signed_by=dto.signed_by,
            position=position,
        )

    def to_dto(self) -> ContractParty:
        return ContractParty(
            party_id=PartyID(self.party_id),
            role=PartyRole(self.role),
            is_primary=self.is_primary,
            signed_at=self.signed_at,
            signed_by=self.signed_by,
        )
