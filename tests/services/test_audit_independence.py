"""
Audit trail: every mutation is recorded, and a failing audit write never
fails or rolls back the mutation it describes.
"""

import pytest

from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.contract import ContractStatus
from clm_kernel.domain.workflow import StepDefinition, WorkflowType
from clm_kernel.exceptions import PersistenceError
from clm_kernel.services import (
    ContractService,
    CreateWorkflowRequest,
    UpdateContractRequest,
    WorkflowService,
)


class TestAuditTrail:
    """Successful mutations leave before/after snapshots."""

    def test_create_and_transition_recorded(
        self, auditor, contract_service, draft_contract, tenant, actor, clock,
    ):
        """Create and submit leave verifiable entries, newest first."""
        clock.advance(1)
        contract_service.submit(tenant, actor, draft_contract.id)
        trail = auditor.find_by_entity(tenant, "contract", draft_contract.id)

        assert [e.action for e in trail] == [AuditAction.SUBMITTED, AuditAction.CREATED]
        submitted, created = trail
        assert created.old_values is None
        assert created.new_values["data"]["status"] == "DRAFT"
        assert submitted.old_values["data"]["status"] == "DRAFT"
        assert submitted.new_values["data"]["status"] == "PENDING_APPROVAL"
        assert submitted.metadata == {
            "from_status": "DRAFT", "to_status": "PENDING_APPROVAL",
        }
        assert submitted.category == AuditCategory.CONTRACT
        assert submitted.user_id == actor
        assert all(e.verify() for e in trail)

    def test_find_by_user(self, auditor, draft_contract, party, tenant, actor):
        """An actor's entries span every entity they touched."""
        entries = auditor.find_by_user(tenant, actor)
        assert {e.entity_type for e in entries} == {"party", "contract"}

    def test_limit_is_clamped(self, auditor, contract_service, draft_contract, tenant, actor):
        """An explicit limit caps the trail."""
        for _ in range(3):
            contract_service.update(
                tenant, actor, draft_contract.id, UpdateContractRequest(notes="n"),
            )
        assert len(auditor.find_by_entity(tenant, "contract", draft_contract.id, limit=2)) == 2


class TestAuditFailureIsolation:
    """Audit failures are logged and swallowed."""

    def test_contract_mutation_survives(
        self,
        contract_repo,
        failing_auditor,
        failing_audit_repo,
        clock,
        tenant,
        actor,
        make_contract_request,
        captured_logs,
    ):
        """Contract changes persist while every audit write fails."""
        service = ContractService(contract_repo, auditor=failing_auditor, clock=clock)
        created = service.create(tenant, actor, make_contract_request())
        submitted = service.submit(tenant, actor, created.id)

        assert submitted.status == ContractStatus.PENDING_APPROVAL
        assert service.get(tenant, created.id).status == ContractStatus.PENDING_APPROVAL
        assert failing_audit_repo.attempts == 2

        failures = [r for r in captured_logs() if r["message"] == "audit_write_failed"]
        assert len(failures) == 2
        assert failures[0]["level"] == "ERROR"
        assert failures[0]["entity_type"] == "contract"
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_workflow_advancement_survives(
        self,
        workflow_repo,
        failing_auditor,
        clock,
        tenant,
        actor,
        draft_contract,
    ):
        """Workflow advancement persists while audit writes fail."""
        service = WorkflowService(workflow_repo, auditor=failing_auditor, clock=clock)
        wf = service.create(
            tenant,
            actor,
            CreateWorkflowRequest(
                draft_contract.id, WorkflowType.APPROVAL, (StepDefinition(1, "Legal"),),
            ),
        )
        done = service.approve_step(tenant, actor, wf.steps[0].id)
        assert done.status.value == "COMPLETED"
        assert service.get(tenant, wf.id).status.value == "COMPLETED"

    def test_record_returns_none_on_failure(self, failing_auditor, tenant, actor):
        """record() returns None instead of raising."""
        result = failing_auditor.record(
            tenant_id=tenant,
            entity_type="contract",
            entity_id="x",
            action=AuditAction.VIEWED,
            category=AuditCategory.CONTRACT,
            actor=actor,
        )
        assert result is None

    def test_failed_write_rolls_back_only_its_savepoint(
        self, session, auditor, contract_service, draft_contract, tenant, actor,
    ):
        """A failed entry leaves the outer transaction usable."""
        entry = auditor.find_by_entity(tenant, "contract", draft_contract.id)[0]
        session.expunge_all()

        with pytest.raises(PersistenceError):
            auditor.create_entry(entry)

        # The enclosing transaction is still usable.
        submitted = contract_service.submit(tenant, actor, draft_contract.id)
        assert submitted.status == ContractStatus.PENDING_APPROVAL
        assert contract_service.get(tenant, draft_contract.id).status == (
            ContractStatus.PENDING_APPROVAL
        )
