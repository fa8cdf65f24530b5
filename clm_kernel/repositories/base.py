"""
Persistence ports (``clm_kernel.repositories.base``).

Responsibility
--------------
Storage-agnostic interfaces the orchestration services depend on.  One
abstract repository per aggregate.

Contract for every implementation
---------------------------------
* Every read and write is scoped by ``tenant_id``.  A row owned by another
  tenant is indistinguishable from a missing row: ``find_by_id`` raises the
  aggregate's ``NotFoundError`` subclass.
* ``create`` resolves every contract and party the new row points at within
  the same tenant.  An unresolved reference raises
  ``ContractNotFoundError`` / ``PartyNotFoundError`` and nothing is written.
* Updates are a single conditional statement keyed on ``(tenant_id, id)``.
  Methods returning ``bool`` report whether a row matched.
* Storage failures are raised as ``PersistenceError`` carrying entity type,
  id and operation.  Raw driver errors never escape.
* Implementations flush; they never commit.  The caller owns the
  transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from clm_kernel.domain.audit import AuditEntry
from clm_kernel.domain.contract import Contract, ContractStatus
from clm_kernel.domain.document import Document, DocumentTemplate
from clm_kernel.domain.identifiers import (
    ContractID,
    DocumentID,
    ObligationID,
    PartyID,
    TemplateID,
    UserID,
    WorkflowID,
    WorkflowStepID,
)
from clm_kernel.domain.obligation import Obligation, ObligationStatus
from clm_kernel.domain.party import Party
from clm_kernel.domain.workflow import WorkflowInstance, WorkflowStep


@dataclass(frozen=True)
class ContractFilter:
    """Optional predicates for contract listings. ``None`` means "any"."""

    status: ContractStatus | None = None
    party_id: PartyID | None = None
    type_code: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class PartyFilter:
    include_inactive: bool = False
    search: str | None = None


class ContractRepository(ABC):
    @abstractmethod
    def create(self, contract: Contract) -> Contract: ...

    @abstractmethod
    def find_by_id(self, tenant_id: str, contract_id: ContractID) -> Contract:
        """Soft-deleted contracts are not found."""

    @abstractmethod
    def find_by_number(
        self, tenant_id: str, contract_number: str,
    ) -> Contract | None:
        """Latest non-deleted version carrying ``contract_number``."""

    @abstractmethod
    def find_all(
        self,
        tenant_id: str,
        criteria: ContractFilter,
        offset: int,
        limit: int,
    ) -> list[Contract]:
        """Non-deleted contracts, newest first."""

    @abstractmethod
    def count(self, tenant_id: str, criteria: ContractFilter) -> int: ...

    @abstractmethod
    def find_expiring(
        self, tenant_id: str, as_of: datetime, until: datetime,
    ) -> list[Contract]:
        """ACTIVE contracts with ``as_of < expiration_date <= until``."""

    @abstractmethod
    def update(self, contract: Contract) -> Contract: ...

    @abstractmethod
    def soft_delete(
        self, tenant_id: str, contract_id: ContractID, actor: UserID, at: datetime,
    ) -> bool: ...


class PartyRepository(ABC):
    @abstractmethod
    def create(self, party: Party) -> Party: ...

    @abstractmethod
    def find_by_id(self, tenant_id: str, party_id: PartyID) -> Party: ...

    @abstractmethod
    def find_all(
        self, tenant_id: str, criteria: PartyFilter, offset: int, limit: int,
    ) -> list[Party]: ...

    @abstractmethod
    def count(self, tenant_id: str, criteria: PartyFilter) -> int: ...

    @abstractmethod
    def update(self, party: Party) -> Party: ...

    @abstractmethod
    def set_active(
        self,
        tenant_id: str,
        party_id: PartyID,
        active: bool,
        actor: UserID,
        at: datetime,
    ) -> bool: ...


class ObligationRepository(ABC):
    @abstractmethod
    def create(self, obligation: Obligation) -> Obligation: ...

    @abstractmethod
    def find_by_id(self, tenant_id: str, obligation_id: ObligationID) -> Obligation: ...

    @abstractmethod
    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID, offset: int, limit: int,
    ) -> list[Obligation]:
        """Obligations of one contract ordered by due date."""

    @abstractmethod
    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int: ...

    @abstractmethod
    def find_overdue(
        self, tenant_id: str, as_of: datetime, offset: int, limit: int,
    ) -> list[Obligation]:
        """Open obligations with ``due_date < as_of``, oldest due first."""

    @abstractmethod
    def count_overdue(self, tenant_id: str, as_of: datetime) -> int: ...

    @abstractmethod
    def find_open_due_before(
        self, tenant_id: str, until: datetime,
    ) -> list[Obligation]:
        """Open obligations with ``due_date < until``, oldest due first."""

    @abstractmethod
    def update(self, obligation: Obligation) -> Obligation: ...

    @abstractmethod
    def update_status(
        self,
        tenant_id: str,
        obligation_id: ObligationID,
        status: ObligationStatus,
        actor: UserID,
        at: datetime,
        completed_date: datetime | None = None,
    ) -> bool: ...


class WorkflowRepository(ABC):
    @abstractmethod
    def create(self, workflow: WorkflowInstance) -> WorkflowInstance:
        """Persist the instance together with all of its steps."""

    @abstractmethod
    def find_by_id(self, tenant_id: str, workflow_id: WorkflowID) -> WorkflowInstance: ...

    @abstractmethod
    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID,
    ) -> list[WorkflowInstance]: ...

    @abstractmethod
    def find_step_by_id(
        self, tenant_id: str, step_id: WorkflowStepID,
    ) -> WorkflowStep:
        """Step lookup scoped through the owning workflow's tenant."""

    @abstractmethod
    def find_pending_approvals(
        self, tenant_id: str, assignee: UserID,
    ) -> list[WorkflowStep]:
        """PENDING steps assigned to ``assignee`` in active workflows."""

    @abstractmethod
    def update_step(self, tenant_id: str, step: WorkflowStep) -> WorkflowStep:
        """Conditional step update; the tenant check is part of the statement."""

    @abstractmethod
    def update_instance(self, workflow: WorkflowInstance) -> WorkflowInstance:
        """Update instance-level fields only (status, pointer, timestamps)."""


class DocumentRepository(ABC):
    @abstractmethod
    def create(self, document: Document) -> Document: ...

    @abstractmethod
    def find_by_id(self, tenant_id: str, document_id: DocumentID) -> Document: ...

    @abstractmethod
    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID, offset: int, limit: int,
    ) -> list[Document]: ...

    @abstractmethod
    def count_by_contract(self, tenant_id: str, contract_id: ContractID) -> int: ...

    @abstractmethod
    def mark_signed(
        self, tenant_id: str, document_id: DocumentID, actor: UserID, at: datetime,
    ) -> bool:
        """Set the signed flag only if it is not already set."""

    @abstractmethod
    def delete(self, tenant_id: str, document_id: DocumentID) -> bool:
        """Hard delete, only if the document is not signed."""


class TemplateRepository(ABC):
    @abstractmethod
    def create(self, template: DocumentTemplate) -> DocumentTemplate: ...

    @abstractmethod
    def find_by_id(self, tenant_id: str, template_id: TemplateID) -> DocumentTemplate: ...

    @abstractmethod
    def find_all(self, tenant_id: str, active_only: bool = True) -> list[DocumentTemplate]: ...

    @abstractmethod
    def update(self, template: DocumentTemplate) -> DocumentTemplate: ...


class AuditRepository(ABC):
    @abstractmethod
    def create(self, entry: AuditEntry) -> AuditEntry: ...

    @abstractmethod
    def find_by_entity(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        offset: int,
        limit: int,
    ) -> list[AuditEntry]:
        """Entries for one entity, newest first."""

    @abstractmethod
    def find_by_user(
        self, tenant_id: str, user_id: UserID, offset: int, limit: int,
    ) -> list[AuditEntry]:
        """Entries recorded for one actor, newest first."""
