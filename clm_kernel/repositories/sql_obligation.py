"""SQLAlchemy implementation of ``ObligationRepository``."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select

from clm_kernel.domain.identifiers import ContractID, ObligationID, UserID
from clm_kernel.domain.obligation import (
    OPEN_OBLIGATION_STATUSES,
    Obligation,
    ObligationStatus,
)
from clm_kernel.exceptions import ObligationNotFoundError
from clm_kernel.models.obligation import ObligationModel
from clm_kernel.repositories.base import ObligationRepository
from clm_kernel.repositories.sql_base import SqlRepository

_OPEN = [s.value for s in OPEN_OBLIGATION_STATUSES]


class SqlObligationRepository(SqlRepository, ObligationRepository):
    entity_type = "obligation"

    def create(self, obligation: Obligation) -> Obligation:
        with self._guard("create", obligation.id):
            self._require_contract(obligation.tenant_id, obligation.contract_id)
            self._require_parties(obligation.tenant_id, (obligation.responsible_party,))
            self._session.add(ObligationModel.from_dto(obligation))
            self._session.flush()
        return obligation

    def find_by_id(self, tenant_id: str, obligation_id: ObligationID) -> Obligation:
        with self._guard("find", obligation_id):
            model = self._session.execute(
                select(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.id == obligation_id.value,
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise ObligationNotFoundError(obligation_id, tenant_id)
            return model.to_dto()

    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID, offset: int, limit: int,
    ) -> list[Obligation]:
        with self._guard("list_by_contract", contract_id):
            stmt = (
                select(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.contract_id == contract_id.value,
                )
                .order_by(ObligationModel.due_date, ObligationModel.id)
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int:
        with self._guard("count_by_contract", contract_id):
            return self._session.execute(
                select(func.count())
                .select_from(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.contract_id == contract_id.value,
                )
            ).scalar_one()

    def find_overdue(
        self, tenant_id: str, as_of: datetime, offset: int, limit: int,
    ) -> list[Obligation]:
        with self._guard("find_overdue"):
            stmt = (
                select(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.status.in_(_OPEN),
                    ObligationModel.due_date < as_of,
                )
                .order_by(ObligationModel.due_date, ObligationModel.id)
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def count_overdue(self, tenant_id: str, as_of: datetime) -> int:
        with self._guard("count_overdue"):
            return self._session.execute(
                select(func.count())
                .select_from(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.status.in_(_OPEN),
                    ObligationModel.due_date < as_of,
                )
            ).scalar_one()

    def find_open_due_before(self, tenant_id: str, until: datetime) -> list[Obligation]:
        with self._guard("find_open_due_before"):
            stmt = (
                select(ObligationModel)
                .where(
                    ObligationModel.tenant_id == tenant_id,
                    ObligationModel.status.in_(_OPEN),
                    ObligationModel.due_date < until,
                )
                .order_by(ObligationModel.due_date, ObligationModel.id)
                .execution_options(populate_existing=True)
            )
            return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def update(self, obligation: Obligation) -> Obligation:
        with self._guard("update", obligation.id):
            matched = self._conditional_update(
                ObligationModel,
                ObligationModel.tenant_id == obligation.tenant_id,
                ObligationModel.id == obligation.id.value,
                **ObligationModel.column_values(obligation),
            )
            if not matched:
                raise ObligationNotFoundError(obligation.id, obligation.tenant_id)
        return obligation

    def update_status(
        self,
        tenant_id: str,
        obligation_id: ObligationID,
        status: ObligationStatus,
        actor: UserID,
        at: datetime,
        completed_date: datetime | None = None,
    ) -> bool:
        values = {
            "status": status.value,
            "updated_at": at,
            "updated_by_id": actor.value,
        }
        if completed_date is not None:
            values["completed_date"] = completed_date
        with self._guard("update_status", obligation_id):
            return self._conditional_update(
                ObligationModel,
                ObligationModel.tenant_id == tenant_id,
                ObligationModel.id == obligation_id.value,
                **values,
            )
