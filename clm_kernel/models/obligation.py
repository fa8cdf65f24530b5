"""
Module: clm_kernel.models.obligation
Responsibility: ORM persistence for contract obligations.

Overdue is not stored; it is derived from status and due_date on read.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import TenantScopedBase, UTCDateTime, UUIDString
from clm_kernel.domain.identifiers import ContractID, ObligationID, PartyID, UserID
from clm_kernel.domain.obligation import (
    Frequency,
    Obligation,
    ObligationStatus,
    ObligationType,
)
from clm_kernel.domain.values import Money


class ObligationModel(TenantScopedBase):
    __tablename__ = "clm_obligations"

    __table_args__ = (
        Index("idx_clm_obligations_contract", "tenant_id", "contract_id"),
        Index("idx_clm_obligations_due", "tenant_id", "status", "due_date"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_contracts.id"), nullable=False,
    )
    responsible_party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_parties.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    obligation_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    due_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    reminder_days: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)

    def __repr__(self) -> str:
        return f"<Obligation {self.id} {self.title!r} status={self.status}>"

    @staticmethod
    def column_values(dto: Obligation) -> dict[str, Any]:
        return {
            "contract_id": dto.contract_id.value,
            "responsible_party_id": dto.responsible_party.value,
            "title": dto.title,
            "description": dto.description,
            "obligation_type": dto.obligation_type.value,
            "status": dto.status.value,
            "due_date": dto.due_date,
            "completed_date": dto.completed_date,
            "amount": dto.amount.amount if dto.amount else None,
            "currency": dto.amount.currency if dto.amount else None,
            "frequency": dto.frequency.value,
            "reminder_days": dto.reminder_days,
            "notes": dto.notes,
            "updated_at": dto.updated_at,
            "updated_by_id": dto.updated_by.value,
        }

    @classmethod
    def from_dto(cls, dto: Obligation) -> "ObligationModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            created_at=dto.created_at,
            created_by_id=dto.created_by.value,
            **cls.column_values(dto),
        )

    def to_dto(self) -> Obligation:
        amount = None
        if self.amount is not None and self.currency:
            amount = Money(self.amount, self.currency)
        return Obligation(
            id=ObligationID(self.id),
            tenant_id=self.tenant_id,
            contract_id=ContractID(self.contract_id),
            responsible_party=PartyID(self.responsible_party_id),
            title=self.title,
            obligation_type=ObligationType(self.obligation_type),
            due_date=self.due_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            status=ObligationStatus(self.status),
            description=self.description,
            completed_date=self.completed_date,
            amount=amount,
            frequency=Frequency(self.frequency),
            reminder_days=self.reminder_days,
            notes=self.notes,
        )
