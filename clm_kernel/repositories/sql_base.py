"""
Shared plumbing for the SQLAlchemy repositories.

Every repository method runs inside ``_guard(...)`` so that a raw
``SQLAlchemyError`` leaves the adapter only as a ``PersistenceError``
(entity type, id, operation) with the driver error chained as
``__cause__``.

Rows that point at a contract or a party are only written after the
target is resolved inside the writer's tenant.  A reference to another
tenant's row, a missing row or a soft-deleted contract raises the
target's ``NotFoundError``.  The foreign keys on the models back this up
at the database level.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clm_kernel.domain.identifiers import ContractID, PartyID
from clm_kernel.exceptions import (
    ContractNotFoundError,
    PartyNotFoundError,
    PersistenceError,
)
from clm_kernel.logging_config import get_logger
from clm_kernel.models.contract import ContractModel
from clm_kernel.models.party import PartyModel

logger = get_logger("repositories.sql")


class SqlRepository:
    """Base for repositories bound to one caller-owned Session."""

    entity_type: str = "entity"

    def __init__(self, session: Session):
        self._session = session

    @contextmanager
    def _guard(self, operation: str, entity_id: Any = None) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error(
                "persistence_failed",
                extra={
                    "entity_type": self.entity_type,
                    "entity_id": str(entity_id) if entity_id is not None else None,
                    "operation": operation,
                    "error_class": type(exc).__name__,
                },
            )
            raise PersistenceError(self.entity_type, operation, entity_id) from exc

    def _conditional_update(self, model: type, *criteria: Any, **values: Any) -> bool:
        """Run one ``UPDATE ... WHERE <criteria>``; True when a row matched.

        In-session instances are not synchronized; reads use
        ``populate_existing`` instead.
        """
        stmt = (
            update(model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reference checks
    # ------------------------------------------------------------------

    def _require_contract(self, tenant_id: str, contract_id: ContractID) -> None:
        """Raise ContractNotFoundError unless a live contract of ``tenant_id`` matches."""
        found = self._session.execute(
            select(
                exists().where(
                    ContractModel.tenant_id == tenant_id,
                    ContractModel.id == contract_id.value,
                    ContractModel.is_deleted.is_(False),
                )
            )
        ).scalar()
        if not found:
            raise ContractNotFoundError(contract_id, tenant_id)

    def _require_parties(self, tenant_id: str, party_ids: Iterable[PartyID]) -> None:
        """Raise PartyNotFoundError for the first id ``tenant_id`` does not own."""
        party_ids = list(party_ids)
        if not party_ids:
            return
        owned = set(
            self._session.execute(
                select(PartyModel.id).where(
                    PartyModel.tenant_id == tenant_id,
                    PartyModel.id.in_([p.value for p in party_ids]),
                )
            ).scalars()
        )
        for party_id in party_ids:
            if party_id.value not in owned:
                raise PartyNotFoundError(party_id, tenant_id)
