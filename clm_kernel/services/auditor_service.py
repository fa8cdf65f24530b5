"""
AuditorService -- append-only audit trail for every kernel mutation.

Responsibility:
    Builds ``AuditEntry`` records (before/after snapshots, actor, action,
    payload hash) and persists them through the ``AuditRepository`` port.
    Provides paginated trail queries by entity and by user.

Architecture position:
    Kernel > Services -- imperative shell.  Called by every other service
    after its primary write has been persisted.

Invariants enforced:
    - Append-only: entries are never updated or deleted (ORM listeners on
      ``AuditEntryModel``).
    - ``record`` never raises.  An audit failure must not undo or mask the
      primary mutation it describes.

Failure modes:
    - ``record``: any exception is logged at ERROR as ``audit_write_failed``
      with the traceback and ``None`` is returned.
    - ``create_entry``: ``PersistenceError`` propagates.
    - Queries: ``UnauthorizedError`` for a blank tenant, ``PersistenceError``
      from the port.

Audit relevance:
    This IS the audit service.  ``AuditEntry.verify()`` recomputes the
    payload hash for tamper detection.
"""

from __future__ import annotations

from typing import Any

from clm_config.schema import PaginationSettings
from clm_kernel.domain.audit import (
    AuditAction,
    AuditCategory,
    AuditEntry,
    new_audit_entry,
)
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.identifiers import UserID
from clm_kernel.logging_config import get_logger
from clm_kernel.repositories.base import AuditRepository
from clm_kernel.services.base import BaseService

logger = get_logger("services.auditor")


class AuditorService(BaseService):
    """
    Records and queries audit entries.

    Contract:
        Receives its repository port via constructor injection.  Entries
        are inserted inside the caller's transaction; the SQL adapter
        isolates each insert in a SAVEPOINT.
    Guarantees:
        - ``record`` returns the stored entry, or ``None`` after logging a
          failure.  It never raises.
        - Query limits default to ``PaginationSettings.default_limit`` and
          are clamped to ``max_limit``.
    """

    def __init__(
        self,
        repository: AuditRepository,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
    ):
        super().__init__(auditor=None, clock=clock, pagination=pagination)
        self._repository = repository

    def record(
        self,
        *,
        tenant_id: str,
        entity_type: str,
        entity_id: Any,
        action: AuditAction,
        category: AuditCategory,
        actor: UserID,
        before: Any = None,
        after: Any = None,
        metadata: dict[str, Any] | None = None,
        user_name: str = "",
        user_role: str = "",
        ip_address: str = "",
        user_agent: str = "",
    ) -> AuditEntry | None:
        """Best-effort write of one audit entry.

        Failures are logged and swallowed; the caller's mutation stands.
        """
        try:
            entry = new_audit_entry(
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                category=category,
                user_id=actor,
                timestamp=self._now(),
                before=before,
                after=after,
                metadata=metadata,
                user_name=user_name,
                user_role=user_role,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return self.create_entry(entry)
        except Exception:
            logger.error(
                "audit_write_failed",
                extra={
                    "tenant_id": tenant_id,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "action": action.value,
                    "actor_id": str(actor),
                },
                exc_info=True,
            )
            return None

    def create_entry(self, entry: AuditEntry) -> AuditEntry:
        """Persist ``entry``. Unlike ``record`` this raises on failure."""
        stored = self._repository.create(entry)
        logger.info(
            "audit_entry_created",
            extra={
                "tenant_id": entry.tenant_id,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "action": entry.action.value,
            },
        )
        return stored

    def find_by_entity(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: Any,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Trail for one entity, newest first."""
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._repository.find_by_entity(
            tenant_id, entity_type, str(entity_id), offset, limit,
        )

    def find_by_user(
        self,
        tenant_id: str,
        user_id: UserID,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._repository.find_by_user(tenant_id, user_id, offset, limit)
