"""
Module: clm_kernel.models.party
Responsibility: ORM persistence for parties.
Architecture position: Kernel > Models.  Imports db/base.py and the domain
    snapshot it maps to.

Invariants enforced:
    - Parties are never deleted; is_active=False hides them from default
      listings.
"""

from typing import Any

from sqlalchemy import Boolean, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import TenantScopedBase
from clm_kernel.domain.identifiers import PartyID, UserID
from clm_kernel.domain.party import Party, PartyType, RiskLevel
from clm_kernel.domain.values import Address


class PartyModel(TenantScopedBase):
    __tablename__ = "clm_parties"

    __table_args__ = (
        Index("idx_clm_parties_tenant_active", "tenant_id", "is_active"),
    )

    party_type: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    legal_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    tax_id: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    billing_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Party {self.id} {self.name!r} active={self.is_active}>"

    @staticmethod
    def column_values(dto: Party) -> dict[str, Any]:
        """Mutable column values for INSERT/UPDATE."""
        return {
            "party_type": dto.party_type.value,
            "name": dto.name,
            "legal_name": dto.legal_name,
            "tax_id": dto.tax_id,
            "email": dto.email,
            "phone": dto.phone,
            "address": dto.address.to_dict() if dto.address else None,
            "billing_address": dto.billing_address.to_dict() if dto.billing_address else None,
            "risk_level": dto.risk_level.value,
            "risk_score": dto.risk_score,
            "is_active": dto.is_active,
            "updated_at": dto.updated_at,
            "updated_by_id": dto.updated_by.value,
        }

    @classmethod
    def from_dto(cls, dto: Party) -> "PartyModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            created_at=dto.created_at,
            created_by_id=dto.created_by.value,
            **cls.column_values(dto),
        )

    def to_dto(self) -> Party:
        return Party(
            id=PartyID(self.id),
            tenant_id=self.tenant_id,
            party_type=PartyType(self.party_type),
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            legal_name=self.legal_name,
            tax_id=self.tax_id,
            email=self.email,
            phone=self.phone,
            address=Address.from_dict(self.address),
            billing_address=Address.from_dict(self.billing_address),
            risk_level=RiskLevel(self.risk_level),
            risk_score=self.risk_score,
            is_active=self.is_active,
        )
