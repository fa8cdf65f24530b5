"""
Module: clm_kernel.models.audit_entry
Responsibility: ORM persistence for the append-only audit trail.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py listeners).
    - payload_hash is written with the row so tampering is detectable via
      AuditEntry.verify().
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import Base, UTCDateTime, UUIDString
from clm_kernel.domain.audit import AuditAction, AuditCategory, AuditEntry
from clm_kernel.domain.identifiers import AuditEntryID, UserID


class AuditEntryModel(Base):
    __tablename__ = "clm_audit_entries"

    __table_args__ = (
        Index("idx_clm_audit_entity", "tenant_id", "entity_type", "entity_id"),
        Index("idx_clm_audit_user", "tenant_id", "user_id"),
        Index("idx_clm_audit_timestamp", "timestamp"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_role: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    ip_address: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    user_agent: Mapped[str] = mapped_column(String(512), default="", nullable=False)
    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry {self.entity_type}:{self.entity_id} {self.action}>"

    @classmethod
    def from_dto(cls, dto: AuditEntry) -> "AuditEntryModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            entity_type=dto.entity_type,
            entity_id=dto.entity_id,
            action=dto.action.value,
            category=dto.category.value,
            user_id=dto.user_id.value,
            user_name=dto.user_name,
            user_role=dto.user_role,
            ip_address=dto.ip_address,
            user_agent=dto.user_agent,
            old_values=dto.old_values,
            new_values=dto.new_values,
            entry_metadata=dto.metadata,
            payload_hash=dto.payload_hash,
            timestamp=dto.timestamp,
        )

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            id=AuditEntryID(self.id),
            tenant_id=self.tenant_id,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            action=AuditAction(self.action),
            category=AuditCategory(self.category),
            user_id=UserID(self.user_id),
            timestamp=self.timestamp,
            user_name=self.user_name,
            user_role=self.user_role,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            old_values=self.old_values,
            new_values=self.new_values,
            metadata=self.entry_metadata or {},
            payload_hash=self.payload_hash,
        )
