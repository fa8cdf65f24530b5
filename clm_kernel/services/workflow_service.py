"""
WorkflowService -- ordered approval and review processes.

Responsibility:
    Creates workflows from step definitions, applies step actions
    (approve, reject, skip, complete) and advances the owning instance
    after every action.

Architecture position:
    Kernel > Services -- imperative shell over ``domain.workflow``.

Invariants enforced:
    - Step numbers are ``1..N`` before anything is persisted.
    - Step actions require a PENDING step in a PENDING or IN_PROGRESS
      workflow.
    - Advancement, in order: a rejected required step rejects the whole
      workflow; otherwise all required steps complete means COMPLETED;
      otherwise the pointer moves forward one step (bounded by the step
      count).  The instance is only re-persisted when something changed.
    - Step lookups and updates are scoped through the owning workflow's
      tenant.

Failure modes:
    - WorkflowDefinitionError, WorkflowNotActiveError, StepNotOptionalError,
      InvalidTransitionError, Workflow(Step)NotFoundError, UnauthorizedError,
      ContractNotFoundError (create against a contract the tenant does not
      own),
      PersistenceError.  A failed advancement propagates; the step update
      already flushed stays in the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from clm_config.schema import PaginationSettings
from clm_kernel.domain.audit import AuditAction, AuditCategory
from clm_kernel.domain.clock import Clock
from clm_kernel.domain.identifiers import ContractID, UserID, WorkflowID, WorkflowStepID
from clm_kernel.domain.workflow import (
    StepDefinition,
    WorkflowInstance,
    WorkflowStatus,
    WorkflowStep,
    WorkflowType,
    new_workflow,
)
from clm_kernel.exceptions import ValidationError, WorkflowNotActiveError
from clm_kernel.logging_config import LogContext, get_logger
from clm_kernel.repositories.base import WorkflowRepository
from clm_kernel.services.auditor_service import AuditorService
from clm_kernel.services.base import BaseService

logger = get_logger("services.workflow")

ENTITY_TYPE = "workflow"
STEP_ENTITY_TYPE = "workflow_step"


@dataclass(frozen=True)
class CreateWorkflowRequest:
    contract_id: ContractID | None
    workflow_type: WorkflowType | None
    steps: tuple[StepDefinition, ...] = ()


class WorkflowService(BaseService):
    """
    Workflow creation, step actions and advancement.

    Guarantees:
        - Every step action returns the workflow snapshot after advancement.
        - A workflow is never left IN_PROGRESS with a rejected required
          step.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        auditor: AuditorService | None = None,
        clock: Clock | None = None,
        pagination: PaginationSettings | None = None,
    ):
        super().__init__(auditor=auditor, clock=clock, pagination=pagination)
        self._repository = repository

    def create(
        self, tenant_id: str, actor: UserID, request: CreateWorkflowRequest,
    ) -> WorkflowInstance:
        """Validate, start and persist a new workflow.

        Raises:
            ValidationError: missing contract or type.
            WorkflowDefinitionError: no steps, or numbers that are not 1..N.
        """
        self._require_context(tenant_id, actor)
        if request.contract_id is None or request.contract_id.is_nil:
            raise ValidationError("contract is required", field="contract_id")
        if request.workflow_type is None:
            raise ValidationError("workflow type is required", field="workflow_type")

        now = self._now()
        workflow = new_workflow(
            tenant_id=tenant_id,
            contract_id=request.contract_id,
            workflow_type=request.workflow_type,
            steps=request.steps,
            actor=actor,
            at=now,
        ).start(actor, now)
        stored = self._repository.create(workflow)

        logger.info(
            "workflow_created",
            extra={
                "tenant_id": tenant_id,
                "workflow_id": str(stored.id),
                "contract_id": str(stored.contract_id),
                "workflow_type": stored.workflow_type.value,
                "step_count": len(stored.steps),
            },
        )
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=stored.id,
            action=AuditAction.CREATED,
            category=AuditCategory.WORKFLOW,
            actor=actor,
            after=stored,
        )
        return stored

    def get(self, tenant_id: str, workflow_id: WorkflowID) -> WorkflowInstance:
        self._require_tenant(tenant_id)
        return self._repository.find_by_id(tenant_id, workflow_id)

    def list_by_contract(
        self, tenant_id: str, contract_id: ContractID,
    ) -> list[WorkflowInstance]:
        self._require_tenant(tenant_id)
        return self._repository.find_by_contract(tenant_id, contract_id)

    def find_pending_approvals(self, tenant_id: str, user: UserID) -> list[WorkflowStep]:
        """PENDING steps assigned to ``user`` in active workflows."""
        self._require_tenant(tenant_id)
        return self._repository.find_pending_approvals(tenant_id, user)

    # ------------------------------------------------------------------
    # Step actions
    # ------------------------------------------------------------------

    def approve_step(
        self, tenant_id: str, actor: UserID, step_id: WorkflowStepID, comment: str = "",
    ) -> WorkflowInstance:
        return self._act_on_step(
            tenant_id, actor, step_id, comment, WorkflowStep.approve, AuditAction.APPROVED,
        )

    def reject_step(
        self, tenant_id: str, actor: UserID, step_id: WorkflowStepID, comment: str = "",
    ) -> WorkflowInstance:
        """Reject a step. A rejected required step rejects the workflow."""
        return self._act_on_step(
            tenant_id, actor, step_id, comment, WorkflowStep.reject, AuditAction.REJECTED,
        )

    def skip_step(
        self, tenant_id: str, actor: UserID, step_id: WorkflowStepID, comment: str = "",
    ) -> WorkflowInstance:
        """Skip an optional step (``StepNotOptionalError`` otherwise)."""
        return self._act_on_step(
            tenant_id,
            actor,
            step_id,
            comment,
            WorkflowStep.skip,
            AuditAction.STATUS_CHANGED,
        )

    def complete_step(
        self, tenant_id: str, actor: UserID, step_id: WorkflowStepID, comment: str = "",
    ) -> WorkflowInstance:
        return self._act_on_step(
            tenant_id,
            actor,
            step_id,
            comment,
            WorkflowStep.complete,
            AuditAction.STATUS_CHANGED,
        )

    def cancel_workflow(
        self, tenant_id: str, actor: UserID, workflow_id: WorkflowID,
    ) -> WorkflowInstance:
        """Cancel a PENDING or IN_PROGRESS workflow."""
        self._require_context(tenant_id, actor)
        current = self._repository.find_by_id(tenant_id, workflow_id)
        cancelled = current.cancel(actor, self._now())
        stored = self._repository.update_instance(cancelled)
        self._log_status_change(current, stored)
        self._audit(
            tenant_id=tenant_id,
            entity_type=ENTITY_TYPE,
            entity_id=workflow_id,
            action=AuditAction.STATUS_CHANGED,
            category=AuditCategory.WORKFLOW,
            actor=actor,
            before=current,
            after=stored,
        )
        return stored

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _act_on_step(
        self,
        tenant_id: str,
        actor: UserID,
        step_id: WorkflowStepID,
        comment: str,
        action: Callable[[WorkflowStep, UserID, datetime, str], WorkflowStep],
        audit_action: AuditAction,
    ) -> WorkflowInstance:
        self._require_context(tenant_id, actor)
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor, entity_id=step_id):
            step = self._repository.find_step_by_id(tenant_id, step_id)
            workflow = self._repository.find_by_id(tenant_id, step.workflow_id)
            if not workflow.is_active:
                raise WorkflowNotActiveError(workflow.id, workflow.status)

            now = self._now()
            acted = action(step, actor, now, comment)
            self._repository.update_step(tenant_id, acted)
            logger.info(
                "workflow_step_actioned",
                extra={
                    "workflow_id": str(workflow.id),
                    "step_id": str(step_id),
                    "step_number": acted.step_number,
                    "step_status": acted.status.value,
                },
            )
            self._audit(
                tenant_id=tenant_id,
                entity_type=STEP_ENTITY_TYPE,
                entity_id=step_id,
                action=audit_action,
                category=AuditCategory.WORKFLOW,
                actor=actor,
                before=step,
                after=acted,
                metadata={"workflow_id": str(workflow.id)},
            )
            return self._advance(workflow.with_step(acted), actor, now)

    def _advance(
        self, workflow: WorkflowInstance, actor: UserID, at: datetime,
    ) -> WorkflowInstance:
        """Apply the advancement policy and persist the instance if it changed."""
        before = workflow
        if workflow.status == WorkflowStatus.PENDING:
            workflow = workflow.start(actor, at)

        if workflow.has_rejected_required_step():
            advanced = workflow.reject(actor, at)
        elif workflow.all_required_steps_complete():
            advanced = workflow.complete(actor, at)
        else:
            advanced = workflow.advance_to_next_step(actor, at)

        if (
            advanced.status == before.status
            and advanced.current_step == before.current_step
        ):
            return before

        stored = self._repository.update_instance(advanced)
        if stored.status != before.status:
            self._log_status_change(before, stored)
            self._audit(
                tenant_id=stored.tenant_id,
                entity_type=ENTITY_TYPE,
                entity_id=stored.id,
                action=AuditAction.STATUS_CHANGED,
                category=AuditCategory.WORKFLOW,
                actor=actor,
                before=before,
                after=stored,
            )
        else:
            logger.info(
                "workflow_advanced",
                extra={
                    "workflow_id": str(stored.id),
                    "from_step": before.current_step,
                    "to_step": stored.current_step,
                },
            )
        return stored

    @staticmethod
    def _log_status_change(before: WorkflowInstance, after: WorkflowInstance) -> None:
        logger.info(
            "workflow_status_changed",
            extra={
                "tenant_id": after.tenant_id,
                "workflow_id": str(after.id),
                "from_status": before.status.value,
                "to_status": after.status.value,
            },
        )
