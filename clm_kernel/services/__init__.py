"""
Orchestration services for the CLM kernel.

``build_services`` wires every service to the SQL repositories of one
caller-owned session:

    with session_scope() as session:
        services = build_services(session)
        services.contracts.submit(tenant_id, actor, contract_id)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from clm_config.schema import CLMConfig
from clm_kernel.domain.clock import Clock
from clm_kernel.repositories import (
    SqlAuditRepository,
    SqlContractRepository,
    SqlDocumentRepository,
    SqlObligationRepository,
    SqlPartyRepository,
    SqlTemplateRepository,
    SqlWorkflowRepository,
)
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService
from clm_kernel.services.contract_service import (
    ContractService,
    CreateContractRequest,
    PartyInput,
    UpdateContractRequest,
)
from clm_kernel.services.document_service import (
    CreateTemplateRequest,
    DocumentService,
    UpdateTemplateRequest,
    UploadDocumentRequest,
)
from clm_kernel.services.obligation_service import (
    CreateObligationRequest,
    ObligationService,
    UpdateObligationRequest,
)
from clm_kernel.services.party_service import (
    CreatePartyRequest,
    PartyService,
    UpdatePartyRequest,
)
from clm_kernel.services.workflow_service import CreateWorkflowRequest, WorkflowService


@dataclass(frozen=True)
class CLMServices:
    auditor: AuditorService
    contracts: ContractService
    obligations: ObligationService
    workflows: WorkflowService
    parties: PartyService
    documents: DocumentService


def build_services(
    session: Session,
    config: CLMConfig | None = None,
    clock: Clock | None = None,
) -> CLMServices:
    """Construct every service over ``session``.

    ``config`` defaults to the schema defaults; no files are read here.
    """
    config = config or CLMConfig()
    pagination = config.pagination
    auditor = AuditorService(SqlAuditRepository(session), clock=clock, pagination=pagination)
    return CLMServices(
        auditor=auditor,
        contracts=ContractService(
            SqlContractRepository(session),
            auditor=auditor,
            clock=clock,
            pagination=pagination,
            lifecycle=config.lifecycle,
        ),
        obligations=ObligationService(
            SqlObligationRepository(session),
            auditor=auditor,
            clock=clock,
            pagination=pagination,
            lifecycle=config.lifecycle,
        ),
        workflows=WorkflowService(
            SqlWorkflowRepository(session),
            auditor=auditor,
            clock=clock,
            pagination=pagination,
        ),
        parties=PartyService(
            SqlPartyRepository(session),
            auditor=auditor,
            clock=clock,
            pagination=pagination,
        ),
        documents=DocumentService(
            SqlDocumentRepository(session),
            SqlTemplateRepository(session),
            auditor=auditor,
            clock=clock,
            pagination=pagination,
        ),
    )


__all__ = [
    "AuditorService",
    "BaseService",
    "CLMServices",
    "ContractService",
    "CreateContractRequest",
    "CreateObligationRequest",
    "CreatePartyRequest",
    "CreateTemplateRequest",
    "CreateWorkflowRequest",
    "DocumentService",
    "ObligationService",
    "PartyInput",
    "PartyService",
    "UpdateContractRequest",
    "UpdateObligationRequest",
    "UpdatePartyRequest",
    "UpdateTemplateRequest",
    "UploadDocumentRequest",
    "WorkflowService",
    "build_services",
]
