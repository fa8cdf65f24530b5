"""
BaseService -- shared constructor and guards for orchestration services.

Responsibility:
    Holds the collaborators every service needs (an ``AuditorService``, a
    ``Clock`` and pagination limits) and the two guards every public
    operation starts with: caller-context validation and pagination
    clamping.

Architecture position:
    Kernel > Services -- imperative shell.  Concrete services receive their
    repository ports through their own constructors; this class never
    touches a session.

Invariants enforced:
    - Every operation runs for a non-blank tenant and a non-nil actor
      (``UnauthorizedError`` otherwise).
    - Paginated queries never exceed ``PaginationSettings.max_limit``.

Failure modes:
    - UnauthorizedError from ``_require_context`` / ``_require_tenant``.
"""

from __future__ import annotations

from abc import ABC
from datetime import datetime
from typing import TYPE_CHECKING

from clm_config.schema import PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock, SystemClock
from clm_kernel.domain.identifiers import UserID
from clm_kernel.exceptions import UnauthorizedError

if TYPE_CHECKING:
    from clm_kernel.services.auditor_service import AuditorService


class BaseService(ABC):
    """
    Abstract base class for orchestration services.

    Contract:
        Subclasses persist through repository ports that flush within the
        caller's transaction.  Services never commit.
    """

    def __init__(
        self,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
    ):
        self._auditor = auditor
        self._clock = clock or SystemClock()
        self._pagination = pagination or PaginationSettings()

    def _now(self) -> datetime:
        return self._clock.now()

    @staticmethod
    def _require_tenant(tenant_id: str) -> None:
        if not tenant_id or not tenant_id.strip():
            raise UnauthorizedError("tenant id is required")

    @classmethod
    def _require_context(cls, tenant_id: str, actor: UserID | None) -> None:
        """Reject a blank tenant or a missing/nil actor."""
        cls._require_tenant(tenant_id)
        if actor is None or actor.is_nil:
            raise UnauthorizedError("actor is required", tenant_id=tenant_id)

    def _page(self, offset: int | None, limit: int | None) -> tuple[int, int]:
        return self._pagination.normalize(offset, limit)

    def _audit(
        self,
        *,
        tenant_id: str,
        entity_type: str,
        entity_id: object,
        action: AuditAction,
        category: AuditCategory,
        actor: UserID,
        before: object = None,
        after: object = None,
        metadata: dict | None = None,
    ) -> None:
        """Best-effort audit of one mutation. Never raises."""
        if self._auditor is None:
            return
        self._auditor.record(
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            category=category,
            actor=actor,
            before=before,
            after=after,
            metadata=metadata,
        )
