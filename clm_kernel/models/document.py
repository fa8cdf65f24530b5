"""
Module: clm_kernel.models.document
Responsibility: ORM persistence for contract documents and document templates.

Invariants enforced:
    - Once is_signed is true the repository never clears it, and a signed
      row is never deleted (both guarded in the UPDATE/DELETE statement).
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import TenantScopedBase, UTCDateTime, UUIDString
from clm_kernel.domain.document import (
    Document,
    DocumentTemplate,
    DocumentType,
    MergeFieldDefinition,
)
from clm_kernel.domain.identifiers import (
    ContractID,
    ContractTypeID,
    DocumentID,
    TemplateID,
    UserID,
)


class DocumentModel(TenantScopedBase):
    __tablename__ = "clm_documents"

    __table_args__ = (
        Index("idx_clm_documents_contract", "tenant_id", "contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_contracts.id"), nullable=False,
    )
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    checksum: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_signed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    signed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Document {self.id} {self.title!r} signed={self.is_signed}>"

    @classmethod
    def from_dto(cls, dto: Document) -> "DocumentModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            contract_id=dto.contract_id.value,
            document_type=dto.document_type.value,
            title=dto.title,
            description=dto.description,
            file_name=dto.file_name,
            file_path=dto.file_path,
            mime_type=dto.mime_type,
            file_size=dto.file_size,
            checksum=dto.checksum,
            is_primary=dto.is_primary,
            is_signed=dto.is_signed,
            signed_at=dto.signed_at,
            signed_by=dto.signed_by.value if dto.signed_by else None,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            created_by_id=dto.created_by.value,
            updated_by_id=dto.updated_by.value,
        )

    def to_dto(self) -> Document:
        return Document(
            id=DocumentID(self.id),
            tenant_id=self.tenant_id,
            contract_id=ContractID(self.contract_id),
            document_type=DocumentType(self.document_type),
            title=self.title,
            file_path=self.file_path,
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            description=self.description,
            file_name=self.file_name,
            mime_type=self.mime_type,
            file_size=self.file_size,
            checksum=self.checksum,
            is_primary=self.is_primary,
            is_signed=self.is_signed,
            signed_at=self.signed_at,
            signed_by=UserID(self.signed_by) if self.signed_by else None,
        )


class DocumentTemplateModel(TenantScopedBase):
    __tablename__ = "clm_document_templates"

    __table_args__ = (
        Index("idx_clm_templates_tenant_active", "tenant_id", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    contract_type_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    merge_fields: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<DocumentTemplate {self.name!r} v{self.version}>"

    @staticmethod
    def column_values(dto: DocumentTemplate) -> dict[str, Any]:
        return {
            "name": dto.name,
            "description": dto.description,
            "contract_type_id": dto.contract_type_id.value if dto.contract_type_id else None,
            "file_path": dto.file_path,
            "version": dto.version,
            "merge_fields": [f.to_dict() for f in dto.merge_fields],
            "is_active": dto.is_active,
            "updated_at": dto.updated_at,
            "updated_by_id": dto.updated_by.value,
        }

    @classmethod
    def from_dto(cls, dto: DocumentTemplate) -> "DocumentTemplateModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            created_at=dto.created_at,
            created_by_id=dto.created_by.value,
            **cls.column_values(dto),
        )

    def to_dto(self) -> DocumentTemplate:
        return DocumentTemplate(
            id=TemplateID(self.id),
            tenant_id=self.tenant_id,
            name=self.name,
            file_path=self.file_path,
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            description=self.description,
            contract_type_id=(
                ContractTypeID(self.contract_type_id) if self.contract_type_id else None
            ),
            version=self.version,
            merge_fields=tuple(MergeFieldDefinition(**f) for f in self.merge_fields or ()),
            is_active=self.is_active,
        )
