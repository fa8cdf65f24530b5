"""Persistence ports and their SQLAlchemy implementations."""

from clm_kernel.repositories.base import (
    AuditRepository,
    ContractFilter,
    ContractRepository,
    DocumentRepository,
    ObligationRepository,
    PartyFilter,
    PartyRepository,
    TemplateRepository,
    WorkflowRepository,
)
from clm_kernel.repositories.sql_audit import SqlAuditRepository
from clm_kernel.repositories.sql_contract import SqlContractRepository
from clm_kernel.repositories.sql_document import SqlDocumentRepository, SqlTemplateRepository
from clm_kernel.repositories.sql_obligation import SqlObligationRepository
from clm_kernel.repositories.sql_party import SqlPartyRepository
from clm_kernel.repositories.sql_workflow import SqlWorkflowRepository

__all__ = [
    "AuditRepository",
    "ContractFilter",
    "ContractRepository",
    "DocumentRepository",
    "ObligationRepository",
    "PartyFilter",
    "PartyRepository",
    "SqlAuditRepository",
    "SqlContractRepository",
    "SqlDocumentRepository",
    "SqlObligationRepository",
    "SqlPartyRepository",
    "SqlTemplateRepository",
    "SqlWorkflowRepository",
    "TemplateRepository",
    "WorkflowRepository",
]
