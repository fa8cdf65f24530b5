"""
DocumentService -- contract documents and document templates.

Responsibility:
    Registers document file references against contracts, signs and
    deletes them, and maintains the template catalogue used by document
    generators.

Architecture position:
    Kernel > Services -- imperative shell over ``domain.document``.  File
    storage itself is outside the kernel; only paths and metadata are kept.

Invariants enforced:
    - A signed document stays signed.  Signing is a conditional update
      ``WHERE is_signed = false`` and the stored row is re-read afterwards.
    - Signed documents are never deleted.

Failure modes:
    - DocumentAlreadySignedError, DocumentSignedError, DocumentNotFoundError,
      ContractNotFoundError (upload against a contract the tenant does not
      own),
      TemplateNotFoundError, ValidationError, UnauthorizedError,
      PersistenceError.
"""

from __future__ import annotations

from dataclasses import dataclass

from clm_config.schema import PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.document import (
    Document,
    DocumentTemplate,
    DocumentType,
    MergeFieldDefinition,
    new_document,
    new_template,
)
from clm_kernel.domain.identifiers import (
    ContractID,
    ContractTypeID,
    DocumentID,
    TemplateID,
    UserID,
)
from clm_kernel.exceptions import (
    DocumentAlreadySignedError,
    DocumentNotFoundError,
    DocumentSignedError,
    ValidationError,
)
from clm_kernel.logging_config import get_logger
from clm_kernel.repositories.base import DocumentRepository, TemplateRepository
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService

logger = get_logger("services.document")

ENTITY_TYPE = "document"
TEMPLATE_ENTITY_TYPE = "document_template"


@dataclass(frozen=True)
class UploadDocumentRequest:
    contract_id: ContractID | None
    title: str
    file_path: str
    document_type: DocumentType = DocumentType.CONTRACT
    description: str = ""
    file_name: str = ""
    mime_type: str = ""
    file_size: int = 0
    checksum: str = ""
    is_primary: bool = False


@dataclass(frozen=True)
class CreateTemplateRequest:
    name: str
    file_path: str
    description: str = ""
    contract_type_id: ContractTypeID | None = None
    merge_fields: tuple[MergeFieldDefinition, ...] = ()


@dataclass(frozen=True)
class UpdateTemplateRequest:
    """Partial edit. ``None`` leaves a field unchanged."""

    name: str | None = None
    file_path: str | None = None
    merge_fields: tuple[MergeFieldDefinition, ...] | None = None


class DocumentService(BaseService):
    """Document registration, signing and the template catalogue."""

    def __init__(
        self,
        documents: DocumentRepository,
        templates: TemplateRepository,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
    ):
        super().__init__(auditor=auditor, clock=clock, pagination=pagination)
        self._documents = documents
        self._templates = templates

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upload(
        self, tenant_id: str, actor: UserID, request: UploadDocumentRequest,
    ) -> Document:
        """Register a document file against a contract."""
        self._require_context(tenant_id, actor)
        if not request.title or not request.title.strip():
            raise ValidationError("title is required", field="title")
        if request.contract_id is None or request.contract_id.is_nil:
            raise ValidationError("contract is required", field="contract_id")
        if not request.file_path or not request.file_path.strip():
            raise ValidationError("file path is required", field="file_path")
        if request.file_size < 0:
            raise ValidationError("file size must be >= 0", field="file_size")

        document = new_document(
            tenant_id=tenant_id,
            contract_id=request.contract_id,
            document_type=request.document_type,
            title=request.title,
            file_path=request.file_path,
            actor=actor,
            at=self._now(),
            description=request.description,
            file_name=request.file_name,
            mime_type=request.mime_type,
            file_size=request.file_size,
            checksum=request.checksum,
            is_primary=request.is_primary,
        )
        stored = self._documents.create(document)
        logger.info(
            "document_uploaded",
            extra={
                "tenant_id": tenant_id,
                "document_id": str(stored.id),
                "contract_id": str(stored.contract_id),
                "file_size": stored.file_size,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            after=stored,
        )
        return stored

    def get(self, tenant_id: str, document_id: DocumentID) -> Document:
        self._require_tenant(tenant_id)
        return self._documents.find_by_id(tenant_id, document_id)

    def list_by_contract(
        self,
        tenant_id: str,
        contract_id: ContractID,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Document]:
        self._require_tenant(tenant_id)
        offset, limit = self._page(offset, limit)
        return self._documents.find_by_contract(tenant_id, contract_id, offset, limit)

    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int:
        self._require_tenant(tenant_id)
        return self._documents.count_by_contract(tenant_id, contract_id)

    def sign(self, tenant_id: str, actor: UserID, document_id: DocumentID) -> Document:
        """Mark a document signed by ``actor``.

        Raises:
            DocumentAlreadySignedError: the document is already signed,
                including when another writer signed it first.
        """
        self._require_context(tenant_id, actor)
        current = self._documents.find_by_id(tenant_id, document_id)
        if current.is_signed:
            raise DocumentAlreadySignedError(document_id)

        if not self._documents.mark_signed(tenant_id, document_id, actor, self._now()):
            # Lost the race, or the row vanished.
            if self._documents.find_by_id(tenant_id, document_id).is_signed:
                raise DocumentAlreadySignedError(document_id)
            raise DocumentNotFoundError(document_id, tenant_id)
        stored = self._documents.find_by_id(tenant_id, document_id)

        logger.info(
            "document_signed",
            extra={"tenant_id": tenant_id, "document_id": str(document_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=document_id,
            action=AuditAction.SIGNED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    def delete(self, tenant_id: str, actor: UserID, document_id: DocumentID) -> bool:
        """Hard-delete an unsigned document.

        Raises:
            DocumentSignedError: the document is signed.
            DocumentNotFoundError: the document is missing, including when
                another writer removed it first.
        """
        self._require_context(tenant_id, actor)
        current = self._documents.find_by_id(tenant_id, document_id)
        if current.is_signed:
            raise DocumentSignedError(document_id)
        if not self._documents.delete(tenant_id, document_id):
            # Signed or removed by another writer; find_by_id raises if removed.
            self._documents.find_by_id(tenant_id, document_id)
            raise DocumentSignedError(document_id)

        logger.info(
            "document_deleted",
            extra={"tenant_id": tenant_id, "document_id": str(document_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=document_id,
            action=AuditAction.DELETED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            before=current,
        )
        return True

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def create_template(
        self, tenant_id: str, actor: UserID, request: CreateTemplateRequest,
    ) -> DocumentTemplate:
        self._require_context(tenant_id, actor)
        if not request.name or not request.name.strip():
            raise ValidationError("name is required", field="name")
        if not request.file_path or not request.file_path.strip():
            raise ValidationError("file path is required", field="file_path")
        _check_merge_fields(request.merge_fields)

        template = new_template(
            tenant_id=tenant_id,
            name=request.name,
            file_path=request.file_path,
            actor=actor,
            at=self._now(),
            description=request.description,
            contract_type_id=request.contract_type_id,
            merge_fields=tuple(request.merge_fields),
        )
        stored = self._templates.create(template)
        logger.info(
            "template_created",
            extra={
                "tenant_id": tenant_id,
                "template_id": str(stored.id),
                "merge_field_count": len(stored.merge_fields),
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=TEMPLATE_ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            after=stored,
        )
        return stored

    def get_template(self, tenant_id: str, template_id: TemplateID) -> DocumentTemplate:
        self._require_tenant(tenant_id)
        return self._templates.find_by_id(tenant_id, template_id)

    def list_templates(
        self, tenant_id: str, active_only: bool = True,
    ) -> list[DocumentTemplate]:
        self._require_tenant(tenant_id)
        return self._templates.find_all(tenant_id, active_only)

    def update_template(
        self,
        tenant_id: str,
        actor: UserID,
        template_id: TemplateID,
        request: UpdateTemplateRequest,
    ) -> DocumentTemplate:
        """Apply a partial edit.

        A new file path or merge-field set bumps the template version; a
        rename alone does not.
        """
        self._require_context(tenant_id, actor)
        current = self._templates.find_by_id(tenant_id, template_id)
        now = self._now()

        updated = current
        if request.name is not None:
            if not request.name.strip():
                raise ValidationError("name is required", field="name")
            updated = updated.with_name(request.name, actor, now)
        if request.file_path is not None:
            if not request.file_path.strip():
                raise ValidationError("file path is required", field="file_path")
            updated = updated.with_file_path(request.file_path, actor, now)
        if request.merge_fields is not None:
            _check_merge_fields(request.merge_fields)
            updated = updated.with_merge_fields(request.merge_fields, actor, now)
        if (
            updated.file_path != current.file_path
            or updated.merge_fields != current.merge_fields
        ):
            updated = updated.increment_version(actor, now)

        stored = self._templates.update(updated)
        logger.info(
            "template_updated",
            extra={
                "tenant_id": tenant_id,
                "template_id": str(template_id),
                "version": stored.version,
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=TEMPLATE_ENTITY_TYPE,
            entity_id=template_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    def deactivate_template(
        self, tenant_id: str, actor: UserID, template_id: TemplateID,
    ) -> bool:
        """Hide a template from active listings. False if already inactive."""
        self._require_context(tenant_id, actor)
        current = self._templates.find_by_id(tenant_id, template_id)
        if not current.is_active:
            return False
        stored = self._templates.update(current.deactivate(actor, self._now()))
        logger.info(
            "template_deactivated",
            extra={"tenant_id": tenant_id, "template_id": str(template_id)},
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=TEMPLATE_ENTITY_TYPE,
            entity_id=template_id,
            action=AuditAction.UPDATED,
            category=AuditCategory.DOCUMENT,
            actor=actor,
            before=current,
            after=stored,
        )
        return True


def _check_merge_fields(fields: tuple[MergeFieldDefinition, ...]) -> None:
    names = [f.name for f in fields]
    if any(not n for n in names) or len(set(names)) != len(names):
        raise ValidationError(
            "merge field names must be non-empty and unique", field="merge_fields",
        )
