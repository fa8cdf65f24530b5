"""
Party domain types (``clm_kernel.domain.party``).

A party is an identity participating in contracts.  Parties are never
deleted; ``deactivate`` hides them from default listings.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from clm_kernel.domain.identifiers import PartyID, UserID
from clm_kernel.domain.values import Address


class PartyType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    CORPORATION = "CORPORATION"
    GOVERNMENT = "GOVERNMENT"
    NON_PROFIT = "NON_PROFIT"
    PARTNERSHIP = "PARTNERSHIP"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Party:
    id: PartyID
    tenant_id: str
    party_type: PartyType
    name: str
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    legal_name: str = ""
    tax_id: str = ""
    email: str = ""
    phone: str = ""
    address: Address | None = None
    billing_address: Address | None = None
    risk_level: RiskLevel = RiskLevel.LOW
    risk_score: int = 0
    is_active: bool = True

    def _touch(self, actor: UserID, at: datetime, **changes) -> Party:
        return replace(self, updated_at=at, updated_by=actor, **changes)

    def with_name(self, name: str, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, name=name)

    def with_legal_name(self, legal_name: str, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, legal_name=legal_name)

    def with_tax_id(self, tax_id: str, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, tax_id=tax_id)

    def with_email(self, email: str, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, email=email)

    def with_phone(self, phone: str, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, phone=phone)

    def with_address(self, address: Address | None, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, address=address)

    def with_billing_address(
        self, address: Address | None, actor: UserID, at: datetime,
    ) -> Party:
        return self._touch(actor, at, billing_address=address)

    def with_risk_assessment(
        self, level: RiskLevel, score: int, actor: UserID, at: datetime,
    ) -> Party:
        return self._touch(actor, at, risk_level=level, risk_score=score)

    def deactivate(self, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, is_active=False)

    def activate(self, actor: UserID, at: datetime) -> Party:
        return self._touch(actor, at, is_active=True)


def new_party(
    *,
    tenant_id: str,
    party_type: PartyType,
    name: str,
    actor: UserID,
    at: datetime,
    **fields,
) -> Party:
    return Party(
        id=PartyID.new(),
        tenant_id=tenant_id,
        party_type=party_type,
        name=name,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        **fields,
    )
