"""
ORM-level immutability for the audit trail.

Audit entries are append-only.  These mapper listeners fire before an
UPDATE or DELETE of an ``AuditEntryModel`` reaches the database and raise
``ImmutabilityViolationError`` instead, so the flush is aborted.

    from clm_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent
"""

from sqlalchemy import event

from clm_kernel.exceptions import ImmutabilityViolationError
from clm_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_audit_entry_update(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "AuditEntry", "entity_id": str(target.id), "operation": "UPDATE"},
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "AuditEntry", "entity_id": str(target.id), "operation": "DELETE"},
    )
    raise ImmutabilityViolationError(
        entity_type="AuditEntry",
        entity_id=str(target.id),
        reason="Audit entries cannot be deleted",
    )


_LISTENERS = (
    ("before_update", _check_audit_entry_update),
    ("before_delete", _check_audit_entry_delete),
)


def register_immutability_listeners() -> None:
    from clm_kernel.models.audit_entry import AuditEntryModel

    for name, fn in _LISTENERS:
        if not event.contains(AuditEntryModel, name, fn):
            event.listen(AuditEntryModel, name, fn)

