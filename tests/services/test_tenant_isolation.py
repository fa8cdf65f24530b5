"""Rows owned by one tenant are invisible and immutable to every other tenant."""

from datetime import timedelta

import pytest

from clm_kernel.domain.identifiers import ContractID
from clm_kernel.domain.obligation import ObligationType
from clm_kernel.domain.party import PartyType
from clm_kernel.domain.workflow import StepDefinition, WorkflowType
from clm_kernel.exceptions import (
    ContractNotFoundError,
    DocumentNotFoundError,
    ErrorKind,
    PartyNotFoundError,
    WorkflowNotFoundError,
    WorkflowStepNotFoundError,
)
from clm_kernel.repositories.base import ContractFilter
from clm_kernel.services import (
    CreateObligationRequest,
    CreatePartyRequest,
    CreateWorkflowRequest,
    UpdateContractRequest,
    UpdatePartyRequest,
    UploadDocumentRequest,
)

from conftest import EPOCH


class TestContractIsolation:
    """Contract reads and writes are tenant-scoped."""

    def test_get(self, contract_service, draft_contract, other_tenant):
        """Another tenant's contract reads as not found."""
        with pytest.raises(ContractNotFoundError) as exc_info:
            contract_service.get(other_tenant, draft_contract.id)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_list_and_count(self, contract_service, draft_contract, other_tenant):
        """Another tenant sees no contracts."""
        assert contract_service.list(other_tenant) == []
        assert contract_service.count(other_tenant, ContractFilter()) == 0

    def test_update(self, contract_service, draft_contract, tenant, other_tenant, actor):
        """Another tenant cannot edit the contract."""
        with pytest.raises(ContractNotFoundError):
            contract_service.update(
                other_tenant, actor, draft_contract.id, UpdateContractRequest(title="x"),
            )
        assert contract_service.get(tenant, draft_contract.id).title == draft_contract.title

    def test_transition(self, contract_service, draft_contract, other_tenant, actor):
        """Another tenant cannot move the contract's status."""
        with pytest.raises(ContractNotFoundError):
            contract_service.submit(other_tenant, actor, draft_contract.id)

    def test_soft_delete(self, contract_service, draft_contract, tenant, other_tenant, actor):
        """Another tenant cannot delete the contract."""
        with pytest.raises(ContractNotFoundError):
            contract_service.soft_delete(other_tenant, actor, draft_contract.id)
        assert not contract_service.get(tenant, draft_contract.id).is_deleted


class TestOtherAggregateIsolation:
    """Parties, workflows, documents and audit entries."""

    def test_party(self, party_service, party, other_tenant, actor):
        """Another tenant can neither read nor deactivate the party."""
        with pytest.raises(PartyNotFoundError):
            party_service.get(other_tenant, party.id)
        with pytest.raises(PartyNotFoundError):
            party_service.update(other_tenant, actor, party.id, UpdatePartyRequest(name="x"))
        with pytest.raises(PartyNotFoundError):
            party_service.deactivate(other_tenant, actor, party.id)
        assert party_service.list(other_tenant) == []

    def test_workflow(
        self, workflow_service, draft_contract, tenant, other_tenant, actor,
    ):
        """Another tenant cannot read or act on the workflow."""
        wf = workflow_service.create(
            tenant,
            actor,
            CreateWorkflowRequest(
                draft_contract.id,
                WorkflowType.APPROVAL,
                (StepDefinition(1, "Legal", assignee_id=actor),),
            ),
        )
        with pytest.raises(WorkflowNotFoundError):
            workflow_service.get(other_tenant, wf.id)
        with pytest.raises(WorkflowStepNotFoundError):
            workflow_service.approve_step(other_tenant, actor, wf.steps[0].id)
        assert workflow_service.find_pending_approvals(other_tenant, actor) == []
        assert workflow_service.list_by_contract(other_tenant, draft_contract.id) == []

    def test_document(
        self, document_service, draft_contract, tenant, other_tenant, actor,
    ):
        """Another tenant can neither read nor sign the document."""
        doc = document_service.upload(
            tenant,
            actor,
            UploadDocumentRequest(draft_contract.id, "Exhibit B", "exhibits/b.pdf"),
        )
        with pytest.raises(DocumentNotFoundError):
            document_service.sign(other_tenant, actor, doc.id)
        with pytest.raises(DocumentNotFoundError):
            document_service.delete(other_tenant, actor, doc.id)
        assert not document_service.get(tenant, doc.id).is_signed

    def test_audit(self, auditor, draft_contract, other_tenant, actor):
        """Another tenant sees none of the audit trail."""
        assert auditor.find_by_entity(other_tenant, "contract", draft_contract.id) == []
        assert auditor.find_by_user(other_tenant, actor) == []


def _obligation_request(contract_id, party_id) -> CreateObligationRequest:
    return CreateObligationRequest(
        contract_id=contract_id,
        responsible_party=party_id,
        title="Quarterly report",
        due_date=EPOCH + timedelta(days=30),
        obligation_type=ObligationType.REPORTING,
    )


class TestCrossTenantReferences:
    """New rows may only point at contracts and parties of their own tenant."""

    def test_obligation_on_foreign_contract(
        self, obligation_service, draft_contract, party, other_tenant, actor,
    ):
        """An obligation cannot attach to another tenant's contract."""
        with pytest.raises(ContractNotFoundError) as exc_info:
            obligation_service.create(
                other_tenant, actor, _obligation_request(draft_contract.id, party.id),
            )
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert obligation_service.count_by_contract(other_tenant, draft_contract.id) == 0

    def test_obligation_on_unknown_contract(self, obligation_service, party, tenant, actor):
        """An obligation on a contract that was never stored is refused."""
        with pytest.raises(ContractNotFoundError):
            obligation_service.create(
                tenant, actor, _obligation_request(ContractID.new(), party.id),
            )

    def test_obligation_with_foreign_responsible_party(
        self, obligation_service, party_service, draft_contract, tenant, other_tenant, actor,
    ):
        """The responsible party must belong to the obligation's tenant."""
        outsider = party_service.create(
            other_tenant,
            actor,
            CreatePartyRequest(party_type=PartyType.INDIVIDUAL, name="Outside Auditor"),
        )
        with pytest.raises(PartyNotFoundError):
            obligation_service.create(
                tenant, actor, _obligation_request(draft_contract.id, outsider.id),
            )
        assert obligation_service.count_by_contract(tenant, draft_contract.id) == 0

    def test_workflow_on_foreign_contract(
        self, workflow_service, draft_contract, tenant, other_tenant, actor,
    ):
        """A workflow cannot be started on another tenant's contract."""
        request = CreateWorkflowRequest(
            draft_contract.id, WorkflowType.APPROVAL, (StepDefinition(1, "Legal"),),
        )
        with pytest.raises(ContractNotFoundError):
            workflow_service.create(other_tenant, actor, request)
        assert workflow_service.list_by_contract(tenant, draft_contract.id) == []

    def test_document_on_foreign_contract(
        self, document_service, draft_contract, tenant, other_tenant, actor, captured_logs,
    ):
        """A document cannot be uploaded against another tenant's contract."""
        request = UploadDocumentRequest(draft_contract.id, "Exhibit C", "exhibits/c.pdf")
        with pytest.raises(ContractNotFoundError):
            document_service.upload(other_tenant, actor, request)
        assert document_service.count_by_contract(tenant, draft_contract.id) == 0
        assert not any(r["message"] == "document_uploaded" for r in captured_logs())

    def test_contract_with_foreign_party(
        self, contract_service, make_contract_request, other_tenant, actor,
    ):
        """A contract cannot name a party owned by another tenant."""
        with pytest.raises(PartyNotFoundError):
            contract_service.create(other_tenant, actor, make_contract_request())
        assert contract_service.count(other_tenant) == 0

    def test_deleted_contract_accepts_no_new_rows(
        self, contract_service, obligation_service, document_service, draft_contract,
        party, tenant, actor,
    ):
        """Once soft-deleted, a contract cannot gain obligations or documents."""
        contract_service.soft_delete(tenant, actor, draft_contract.id)
        with pytest.raises(ContractNotFoundError):
            obligation_service.create(
                tenant, actor, _obligation_request(draft_contract.id, party.id),
            )
        with pytest.raises(ContractNotFoundError):
            document_service.upload(
                tenant,
                actor,
                UploadDocumentRequest(draft_contract.id, "Late exhibit", "late.pdf"),
            )
