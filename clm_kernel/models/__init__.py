"""ORM models for the CLM persistence adapter."""

from clm_kernel.models.audit_entry import AuditEntryModel
from clm_kernel.models.contract import ContractModel, ContractPartyModel
from clm_kernel.models.document import DocumentModel, DocumentTemplateModel
from clm_kernel.models.obligation import ObligationModel
from clm_kernel.models.party import PartyModel
from clm_kernel.models.workflow import WorkflowInstanceModel, WorkflowStepModel

__all__ = [
    "AuditEntryModel",
    "ContractModel",
    "ContractPartyModel",
    "DocumentModel",
    "DocumentTemplateModel",
    "ObligationModel",
    "PartyModel",
    "WorkflowInstanceModel",
    "WorkflowStepModel",
]
