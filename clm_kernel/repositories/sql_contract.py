"""SQLAlchemy implementation of ``ContractRepository``."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, delete, func, or_, select

from clm_kernel.domain.contract import Contract, ContractStatus
from clm_kernel.domain.identifiers import ContractID, UserID
from clm_kernel.exceptions import ContractNotFoundError
from clm_kernel.models.contract import ContractModel, ContractPartyModel
from clm_kernel.repositories.base import ContractFilter, ContractRepository
from clm_kernel.repositories.sql_base import SqlRepository


class SqlContractRepository(SqlRepository, ContractRepository):
    entity_type = "contract"

    def create(self, contract: Contract) -> Contract:
        with self._guard("create", contract.id):
            self._require_parties(contract.tenant_id, (p.party_id for p in contract.parties))
            self._session.add(ContractModel.from_dto(contract))
            self._session.flush()
            self._add_parties(contract)
            self._session.flush()
        return contract

    def find_by_id(self, tenant_id: str, contract_id: ContractID) -> Contract:
        with self._guard("find", contract_id):
            model = self._session.execute(
                select(ContractModel)
                .where(
                    ContractModel.tenant_id == tenant_id,
                    ContractModel.id == contract_id.value,
                    ContractModel.is_deleted.is_(False),
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise ContractNotFoundError(contract_id, tenant_id)
            return self._to_dto(model)

    def find_by_number(self, tenant_id: str, contract_number: str) -> Contract | None:
        with self._guard("find_by_number"):
            model = self._session.execute(
                select(ContractModel)
                .where(
                    ContractModel.tenant_id == tenant_id,
                    ContractModel.contract_number == contract_number,
                    ContractModel.is_deleted.is_(False),
                )
                .order_by(ContractModel.version.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            return self._to_dto(model) if model is not None else None

    def find_all(
        self, tenant_id: str, criteria: ContractFilter, offset: int, limit: int,
    ) -> list[Contract]:
        with self._guard("list"):
            stmt = (
                self._filtered(select(ContractModel), tenant_id, criteria)
                .order_by(ContractModel.created_at.desc(), ContractModel.id)
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_dto(m) for m in self._session.execute(stmt).scalars().all()]

    def count(self, tenant_id: str, criteria: ContractFilter) -> int:
        with self._guard("count"):
            stmt = self._filtered(
                select(func.count()).select_from(ContractModel), tenant_id, criteria,
            )
            return self._session.execute(stmt).scalar_one()

    def find_expiring(
        self, tenant_id: str, as_of: datetime, until: datetime,
    ) -> list[Contract]:
        with self._guard("find_expiring"):
            stmt = (
                select(ContractModel)
                .where(
                    ContractModel.tenant_id == tenant_id,
                    ContractModel.status == ContractStatus.ACTIVE.value,
                    ContractModel.is_deleted.is_(False),
                    ContractModel.expiration_date > as_of,
                    ContractModel.expiration_date <= until,
                )
                .order_by(ContractModel.expiration_date)
                .execution_options(populate_existing=True)
            )
            return [self._to_dto(m) for m in self._session.execute(stmt).scalars().all()]

    def update(self, contract: Contract) -> Contract:
        with self._guard("update", contract.id):
            matched = self._conditional_update(
                ContractModel,
                ContractModel.tenant_id == contract.tenant_id,
                ContractModel.id == contract.id.value,
                **ContractModel.column_values(contract),
            )
            if not matched:
                raise ContractNotFoundError(contract.id, contract.tenant_id)
            self._require_parties(contract.tenant_id, (p.party_id for p in contract.parties))
            self._session.execute(
                delete(ContractPartyModel)
                .where(ContractPartyModel.contract_id == contract.id.value)
                .execution_options(synchronize_session=False)
            )
            self._add_parties(contract)
            self._session.flush()
        return contract

    def soft_delete(
        self, tenant_id: str, contract_id: ContractID, actor: UserID, at: datetime,
    ) -> bool:
        with self._guard("soft_delete", contract_id):
            return self._conditional_update(
                ContractModel,
                ContractModel.tenant_id == tenant_id,
                ContractModel.id == contract_id.value,
                ContractModel.is_deleted.is_(False),
                is_deleted=True,
                updated_at=at,
                updated_by_id=actor.value,
            )

    # ------------------------------------------------------------------

    def _add_parties(self, contract: Contract) -> None:
        self._session.add_all(
            ContractPartyModel.from_dto(contract.id, party, position)
            for position, party in enumerate(contract.parties)
        )

    def _to_dto(self, model: ContractModel) -> Contract:
        parties = self._session.execute(
            select(ContractPartyModel)
            .where(ContractPartyModel.contract_id == model.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return model.to_dto(parties)

    @staticmethod
    def _filtered(stmt: Select, tenant_id: str, criteria: ContractFilter) -> Select:
        stmt = stmt.where(
            ContractModel.tenant_id == tenant_id,
            ContractModel.is_deleted.is_(False),
        )
        if criteria.status is not None:
            stmt = stmt.where(ContractModel.status == criteria.status.value)
        if criteria.type_code:
            stmt = stmt.where(ContractModel.type_code == criteria.type_code)
        if criteria.party_id is not None:
            stmt = stmt.where(
                ContractModel.id.in_(
                    select(ContractPartyModel.contract_id).where(
                        ContractPartyModel.party_id == criteria.party_id.value,
                    )
                )
            )
        if criteria.search:
            term = criteria.search
            stmt = stmt.where(
                or_(
                    ContractModel.title.icontains(term, autoescape=True),
                    ContractModel.contract_number.icontains(term, autoescape=True),
                )
            )
        return stmt
