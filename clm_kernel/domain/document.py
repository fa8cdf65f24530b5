"""
Document domain types (``clm_kernel.domain.document``).

Documents are file references attached to a contract.  Their only state
is "signed / not signed", and once signed the flag never clears.
Templates describe the merge fields a generator fills in; rendering is
outside the kernel.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from clm_kernel.domain.identifiers import (
    ContractID,
    ContractTypeID,
    DocumentID,
    TemplateID,
    UserID,
)
from clm_kernel.exceptions import DocumentAlreadySignedError


class DocumentType(str, Enum):
    CONTRACT = "CONTRACT"
    AMENDMENT = "AMENDMENT"
    ATTACHMENT = "ATTACHMENT"
    SIGNATURE = "SIGNATURE"
    EVIDENCE = "EVIDENCE"
    TEMPLATE = "TEMPLATE"


@dataclass(frozen=True)
class Document:
    id: DocumentID
    tenant_id: str
    contract_id: ContractID
    document_type: DocumentType
    title: str
    file_path: str
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    description: str = ""
    file_name: str = ""
    mime_type: str = ""
    file_size: int = 0
    checksum: str = ""
    is_primary: bool = False
    is_signed: bool = False
    signed_at: datetime | None = None
    signed_by: UserID | None = None

    def mark_signed(self, actor: UserID, at: datetime) -> Document:
        if self.is_signed:
            raise DocumentAlreadySignedError(self.id)
        return replace(
            self,
            is_signed=True,
            signed_at=at,
            signed_by=actor,
            updated_at=at,
            updated_by=actor,
        )

    def with_checksum(self, checksum: str, actor: UserID, at: datetime) -> Document:
        return replace(self, checksum=checksum, updated_at=at, updated_by=actor)


def new_document(
    *,
    tenant_id: str,
    contract_id: ContractID,
    document_type: DocumentType,
    title: str,
    file_path: str,
    actor: UserID,
    at: datetime,
    **fields,
) -> Document:
    return Document(
        id=DocumentID.new(),
        tenant_id=tenant_id,
        contract_id=contract_id,
        document_type=document_type,
        title=title,
        file_path=file_path,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        **fields,
    )


@dataclass(frozen=True)
class MergeFieldDefinition:
    name: str
    description: str = ""
    data_type: str = "string"
    required: bool = False
    default_value: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "data_type": self.data_type,
            "required": self.required,
            "default_value": self.default_value,
        }


@dataclass(frozen=True)
class DocumentTemplate:
    id: TemplateID
    tenant_id: str
    name: str
    file_path: str
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    description: str = ""
    contract_type_id: ContractTypeID | None = None
    version: int = 1
    merge_fields: tuple[MergeFieldDefinition, ...] = ()
    is_active: bool = True

    def _touch(self, actor: UserID, at: datetime, **changes) -> DocumentTemplate:
        return replace(self, updated_at=at, updated_by=actor, **changes)

    def with_name(self, name: str, actor: UserID, at: datetime) -> DocumentTemplate:
        return self._touch(actor, at, name=name)

    def with_file_path(self, path: str, actor: UserID, at: datetime) -> DocumentTemplate:
        return self._touch(actor, at, file_path=path)

    def with_merge_fields(
        self, fields: tuple[MergeFieldDefinition, ...], actor: UserID, at: datetime,
    ) -> DocumentTemplate:
        return self._touch(actor, at, merge_fields=tuple(fields))

    def deactivate(self, actor: UserID, at: datetime) -> DocumentTemplate:
        return self._touch(actor, at, is_active=False)

    def increment_version(self, actor: UserID, at: datetime) -> DocumentTemplate:
        return self._touch(actor, at, version=self.version + 1)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.merge_fields if f.required)


def new_template(
    *,
    tenant_id: str,
    name: str,
    file_path: str,
    actor: UserID,
    at: datetime,
    **fields,
) -> DocumentTemplate:
    return DocumentTemplate(
        id=TemplateID.new(),
        tenant_id=tenant_id,
        name=name,
        file_path=file_path,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        **fields,
    )
