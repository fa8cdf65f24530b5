"""
Audit domain types (``clm_kernel.domain.audit``).

Responsibility
--------------
``AuditEntry`` is an immutable, append-only record of one action on one
entity: who did it, what kind of action, the before/after snapshots and
when.  The kernel never updates or deletes entries.

Audit relevance
---------------
``payload_hash`` fingerprints the recorded snapshots and metadata so a
later reader can detect an altered row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from clm_kernel.domain.identifiers import AuditEntryID, UserID
from clm_kernel.utils.serialization import hash_payload, to_primitive

SYSTEM_USER_NAME = "system"


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    STATUS_CHANGED = "STATUS_CHANGED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SIGNED = "SIGNED"
    EXECUTED = "EXECUTED"
    ACTIVATED = "ACTIVATED"
    TERMINATED = "TERMINATED"
    SUBMITTED = "SUBMITTED"
    VIEWED = "VIEWED"
    DOWNLOADED = "DOWNLOADED"
    PRINTED = "PRINTED"


class AuditCategory(str, Enum):
    CONTRACT = "CONTRACT"
    PARTY = "PARTY"
    OBLIGATION = "OBLIGATION"
    WORKFLOW = "WORKFLOW"
    DOCUMENT = "DOCUMENT"
    SECURITY = "SECURITY"


@dataclass(frozen=True)
class AuditEntry:
    id: AuditEntryID
    tenant_id: str
    entity_type: str
    entity_id: str
    action: AuditAction
    category: AuditCategory
    user_id: UserID
    timestamp: datetime
    user_name: str = SYSTEM_USER_NAME
    user_role: str = ""
    ip_address: str = ""
    user_agent: str = ""
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    payload_hash: str = ""

    def verify(self) -> bool:
        """True when ``payload_hash`` still matches the recorded payload."""
        return self.payload_hash == _payload_hash(
            self.old_values, self.new_values, self.metadata,
        )


def snapshot(entity: Any) -> dict[str, Any] | None:
    """JSON-safe map of an entity snapshot, or None."""
    if entity is None:
        return None
    return {"data": to_primitive(entity)}


def _payload_hash(
    old_values: dict[str, Any] | None,
    new_values: dict[str, Any] | None,
    metadata: dict[str, Any],
) -> str:
    return hash_payload({"old": old_values, "new": new_values, "meta": metadata})


def new_audit_entry(
    *,
    tenant_id: str,
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    category: AuditCategory,
    user_id: UserID,
    timestamp: datetime,
    before: Any = None,
    after: Any = None,
    metadata: dict[str, Any] | None = None,
    user_name: str = SYSTEM_USER_NAME,
    user_role: str = "",
    ip_address: str = "",
    user_agent: str = "",
) -> AuditEntry:
    """Build an entry from raw before/after snapshots."""
    old_values = snapshot(before)
    new_values = snapshot(after)
    meta = to_primitive(metadata or {})
    return AuditEntry(
        id=AuditEntryID.new(),
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        category=category,
        user_id=user_id,
        timestamp=timestamp,
        user_name=user_name or SYSTEM_USER_NAME,
        user_role=user_role,
        ip_address=ip_address,
        user_agent=user_agent,
        old_values=old_values,
        new_values=new_values,
        metadata=meta,
        payload_hash=_payload_hash(old_values, new_values, meta),
    )
