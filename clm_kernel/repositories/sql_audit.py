"""
SQLAlchemy implementation of ``AuditRepository``.

Each insert runs in its own SAVEPOINT.  If it fails, only the savepoint is
rolled back; the caller's transaction, and the primary write already
flushed into it, stay intact.
"""

from __future__ import annotations

from sqlalchemy import select

from clm_kernel.domain.audit import AuditEntry
from clm_kernel.domain.identifiers import UserID
from clm_kernel.models.audit_entry import AuditEntryModel
from clm_kernel.repositories.base import AuditRepository
from clm_kernel.repositories.sql_base import SqlRepository


class SqlAuditRepository(SqlRepository, AuditRepository):
    entity_type = "audit_entry"

    def create(self, entry: AuditEntry) -> AuditEntry:
        with self._guard("create", entry.id):
            with self._session.begin_nested():
                self._session.add(AuditEntryModel.from_dto(entry))
        return entry

    def find_by_entity(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        offset: int,
        limit: int,
    ) -> list[AuditEntry]:
        with self._guard("find_by_entity", entity_id):
            models = self._session.execute(
                select(AuditEntryModel)
                .where(
                    AuditEntryModel.tenant_id == tenant_id,
                    AuditEntryModel.entity_type == entity_type,
                    AuditEntryModel.entity_id == entity_id,
                )
                .order_by(AuditEntryModel.timestamp.desc(), AuditEntryModel.id)
                .offset(offset)
                .limit(limit)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def find_by_user(
        self, tenant_id: str, user_id: UserID, offset: int, limit: int,
    ) -> list[AuditEntry]:
        with self._guard("find_by_user", user_id):
            models = self._session.execute(
                select(AuditEntryModel)
                .where(
                    AuditEntryModel.tenant_id == tenant_id,
                    AuditEntryModel.user_id == user_id.value,
                )
                .order_by(AuditEntryModel.timestamp.desc(), AuditEntryModel.id)
                .offset(offset)
                .limit(limit)
            ).scalars().all()
            return [m.to_dto() for m in models]
