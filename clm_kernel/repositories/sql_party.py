"""SQLAlchemy implementation of ``PartyRepository``."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, func, or_, select

from clm_kernel.domain.identifiers import PartyID, UserID
from clm_kernel.domain.party import Party
from clm_kernel.exceptions import PartyNotFoundError
from clm_kernel.models.party import PartyModel
from clm_kernel.repositories.base import PartyFilter, PartyRepository
from clm_kernel.repositories.sql_base import SqlRepository


class SqlPartyRepository(SqlRepository, PartyRepository):
    entity_type = "party"

    def create(self, party: Party) -> Party:
        with self._guard("create", party.id):
            self._session.add(PartyModel.from_dto(party))
            self._session.flush()
        return party

    def find_by_id(self, tenant_id: str, party_id: PartyID) -> Party:
        with self._guard("find", party_id):
            model = self._session.execute(
                select(PartyModel)
                .where(PartyModel.tenant_id == tenant_id, PartyModel.id == party_id.value)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise PartyNotFoundError(party_id, tenant_id)
            return model.to_dto()

    def find_all(
        self, tenant_id: str, criteria: PartyFilter, offset: int, limit: int,
    ) -> list[Party]:
        with self._guard("list"):
            stmt = (
                self._filtered(select(PartyModel), tenant_id, criteria)
                .order_by(PartyModel.name, PartyModel.id)
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def count(self, tenant_id: str, criteria: PartyFilter) -> int:
        with self._guard("count"):
            stmt = self._filtered(
                select(func.count()).select_from(PartyModel), tenant_id, criteria,
            )
            return self._session.execute(stmt).scalar_one()

    def update(self, party: Party) -> Party:
        with self._guard("update", party.id):
            matched = self._conditional_update(
                PartyModel,
                PartyModel.tenant_id == party.tenant_id,
                PartyModel.id == party.id.value,
                **PartyModel.column_values(party),
            )
            if not matched:
                raise PartyNotFoundError(party.id, party.tenant_id)
        return party

    def set_active(
        self,
        tenant_id: str,
        party_id: PartyID,
        active: bool,
        actor: UserID,
        at: datetime,
    ) -> bool:
        with self._guard("set_active", party_id):
            return self._conditional_update(
                PartyModel,
                PartyModel.tenant_id == tenant_id,
                PartyModel.id == party_id.value,
                is_active=active,
                updated_at=at,
                updated_by_id=actor.value,
            )

    @staticmethod
    def _filtered(stmt: Select, tenant_id: str, criteria: PartyFilter) -> Select:
        stmt = stmt.where(PartyModel.tenant_id == tenant_id)
        if not criteria.include_inactive:
            stmt = stmt.where(PartyModel.is_active.is_(True))
        if criteria.search:
            term = criteria.search
            stmt = stmt.where(
                or_(
                    PartyModel.name.icontains(term, autoescape=True),
                    PartyModel.legal_name.icontains(term, autoescape=True),
                )
            )
        return stmt
