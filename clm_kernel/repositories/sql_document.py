"""SQLAlchemy implementations of ``DocumentRepository`` and ``TemplateRepository``."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select

from clm_kernel.domain.document import Document, DocumentTemplate
from clm_kernel.domain.identifiers import ContractID, DocumentID, TemplateID, UserID
from clm_kernel.exceptions import DocumentNotFoundError, TemplateNotFoundError
from clm_kernel.models.document import DocumentModel, DocumentTemplateModel
from clm_kernel.repositories.base import DocumentRepository, TemplateRepository
from clm_kernel.repositories.sql_base import SqlRepository


class SqlDocumentRepository(SqlRepository, DocumentRepository):
    entity_type = "document"

    def create(self, document: Document) -> Document:
        with self._guard("create", document.id):
            self._require_contract(document.tenant_id, document.contract_id)
            self._session.add(DocumentModel.from_dto(document))
            self._session.flush()
        return document

    def find_by_id(self, tenant_id: str, document_id: DocumentID) -> Document:
        with self._guard("find", document_id):
            model = self._session.execute(
                select(DocumentModel)
                .where(
                    DocumentModel.tenant_id == tenant_id,
                    DocumentModel.id == document_id.value,
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise DocumentNotFoundError(document_id, tenant_id)
            return model.to_dto()

    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID, offset: int, limit: int,
    ) -> list[Document]:
        with self._guard("list_by_contract", contract_id):
            models = self._session.execute(
                select(DocumentModel)
                .where(
                    DocumentModel.tenant_id == tenant_id,
                    DocumentModel.contract_id == contract_id.value,
                )
                .order_by(DocumentModel.created_at.desc(), DocumentModel.id)
                .offset(offset)
                .limit(limit)
                .execution_options(populate_existing=True)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int:
        with self._guard("count_by_contract", contract_id):
            return self._session.execute(
                select(func.count())
                .select_from(DocumentModel)
                .where(
                    DocumentModel.tenant_id == tenant_id,
                    DocumentModel.contract_id == contract_id.value,
                )
            ).scalar_one()

    def mark_signed(
        self, tenant_id: str, document_id: DocumentID, actor: UserID, at: datetime,
    ) -> bool:
        with self._guard("sign", document_id):
            return self._conditional_update(
                DocumentModel,
                DocumentModel.tenant_id == tenant_id,
                DocumentModel.id == document_id.value,
                DocumentModel.is_signed.is_(False),
                is_signed=True,
                signed_at=at,
                signed_by=actor.value,
                updated_at=at,
                updated_by_id=actor.value,
            )

    def delete(self, tenant_id: str, document_id: DocumentID) -> bool:
        with self._guard("delete", document_id):
            result = self._session.execute(
                delete(DocumentModel)
                .where(
                    DocumentModel.tenant_id == tenant_id,
                    DocumentModel.id == document_id.value,
                    DocumentModel.is_signed.is_(False),
                )
                .execution_options(synchronize_session="fetch")
            )
            return result.rowcount > 0


class SqlTemplateRepository(SqlRepository, TemplateRepository):
    entity_type = "document_template"

    def create(self, template: DocumentTemplate) -> DocumentTemplate:
        with self._guard("create", template.id):
            self._session.add(DocumentTemplateModel.from_dto(template))
            self._session.flush()
        return template

    def find_by_id(self, tenant_id: str, template_id: TemplateID) -> DocumentTemplate:
        with self._guard("find", template_id):
            model = self._session.execute(
                select(DocumentTemplateModel)
                .where(
                    DocumentTemplateModel.tenant_id == tenant_id,
                    DocumentTemplateModel.id == template_id.value,
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise TemplateNotFoundError(template_id, tenant_id)
            return model.to_dto()

    def find_all(self, tenant_id: str, active_only: bool = True) -> list[DocumentTemplate]:
        with self._guard("list"):
            stmt = select(DocumentTemplateModel).where(
                DocumentTemplateModel.tenant_id == tenant_id,
            )
            if active_only:
                stmt = stmt.where(DocumentTemplateModel.is_active.is_(True))
            models = self._session.execute(
                stmt.order_by(DocumentTemplateModel.name, DocumentTemplateModel.id)
                .execution_options(populate_existing=True)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def update(self, template: DocumentTemplate) -> DocumentTemplate:
        with self._guard("update", template.id):
            matched = self._conditional_update(
                DocumentTemplateModel,
                DocumentTemplateModel.tenant_id == template.tenant_id,
                DocumentTemplateModel.id == template.id.value,
                **DocumentTemplateModel.column_values(template),
            )
            if not matched:
                raise TemplateNotFoundError(template.id, template.tenant_id)
        return template
