"""
SQLAlchemy implementation of ``WorkflowRepository``.

Step rows have no tenant column of their own.  Every step lookup joins the
owning instance and every step update carries an EXISTS predicate on the
instance's tenant, so a step id from another tenant matches no row even if
it is guessed correctly.
"""

from __future__ import annotations

from sqlalchemy import exists, select

from clm_kernel.domain.identifiers import ContractID, UserID, WorkflowID, WorkflowStepID
from clm_kernel.domain.workflow import (
    ACTIVE_WORKFLOW_STATUSES,
    StepStatus,
    WorkflowInstance,
    WorkflowStep,
)
from clm_kernel.exceptions import WorkflowNotFoundError, WorkflowStepNotFoundError
from clm_kernel.models.workflow import WorkflowInstanceModel, WorkflowStepModel
from clm_kernel.repositories.base import WorkflowRepository
from clm_kernel.repositories.sql_base import SqlRepository


class SqlWorkflowRepository(SqlRepository, WorkflowRepository):
    entity_type = "workflow"

    def create(self, workflow: WorkflowInstance) -> WorkflowInstance:
        with self._guard("create", workflow.id):
            self._require_contract(workflow.tenant_id, workflow.contract_id)
            self._session.add(WorkflowInstanceModel.from_dto(workflow))
            self._session.flush()
            self._session.add_all(WorkflowStepModel.from_dto(s) for s in workflow.steps)
            self._session.flush()
        return workflow

    def find_by_id(self, tenant_id: str, workflow_id: WorkflowID) -> WorkflowInstance:
        with self._guard("find", workflow_id):
            model = self._session.execute(
                select(WorkflowInstanceModel)
                .where(
                    WorkflowInstanceModel.tenant_id == tenant_id,
                    WorkflowInstanceModel.id == workflow_id.value,
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise WorkflowNotFoundError(workflow_id, tenant_id)
            return self._to_dto(model)

    def find_by_contract(
        self, tenant_id: str, contract_id: ContractID,
    ) -> list[WorkflowInstance]:
        with self._guard("list_by_contract", contract_id):
            models = self._session.execute(
                select(WorkflowInstanceModel)
                .where(
                    WorkflowInstanceModel.tenant_id == tenant_id,
                    WorkflowInstanceModel.contract_id == contract_id.value,
                )
                .order_by(WorkflowInstanceModel.created_at.desc(), WorkflowInstanceModel.id)
                .execution_options(populate_existing=True)
            ).scalars().all()
            return [self._to_dto(m) for m in models]

    def find_step_by_id(self, tenant_id: str, step_id: WorkflowStepID) -> WorkflowStep:
        with self._guard("find_step", step_id):
            model = self._session.execute(
                select(WorkflowStepModel)
                .join(
                    WorkflowInstanceModel,
                    WorkflowInstanceModel.id == WorkflowStepModel.workflow_id,
                )
                .where(
                    WorkflowStepModel.id == step_id.value,
                    WorkflowInstanceModel.tenant_id == tenant_id,
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if model is None:
                raise WorkflowStepNotFoundError(step_id, tenant_id)
            return model.to_dto()

    def find_pending_approvals(
        self, tenant_id: str, assignee: UserID,
    ) -> list[WorkflowStep]:
        with self._guard("find_pending_approvals"):
            models = self._session.execute(
                select(WorkflowStepModel)
                .join(
                    WorkflowInstanceModel,
                    WorkflowInstanceModel.id == WorkflowStepModel.workflow_id,
                )
                .where(
                    WorkflowInstanceModel.tenant_id == tenant_id,
                    WorkflowInstanceModel.status.in_(
                        [s.value for s in ACTIVE_WORKFLOW_STATUSES]
                    ),
                    WorkflowStepModel.assignee_id == assignee.value,
                    WorkflowStepModel.status == StepStatus.PENDING.value,
                )
                .order_by(WorkflowStepModel.created_at, WorkflowStepModel.step_number)
                .execution_options(populate_existing=True)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def update_step(self, tenant_id: str, step: WorkflowStep) -> WorkflowStep:
        with self._guard("update_step", step.id):
            owned_by_tenant = exists().where(
                WorkflowInstanceModel.id == WorkflowStepModel.workflow_id,
                WorkflowInstanceModel.tenant_id == tenant_id,
            )
            matched = self._conditional_update(
                WorkflowStepModel,
                WorkflowStepModel.id == step.id.value,
                owned_by_tenant,
                **WorkflowStepModel.action_values(step),
            )
            if not matched:
                raise WorkflowStepNotFoundError(step.id, tenant_id)
        return step

    def update_instance(self, workflow: WorkflowInstance) -> WorkflowInstance:
        with self._guard("update", workflow.id):
            matched = self._conditional_update(
                WorkflowInstanceModel,
                WorkflowInstanceModel.tenant_id == workflow.tenant_id,
                WorkflowInstanceModel.id == workflow.id.value,
                **WorkflowInstanceModel.column_values(workflow),
            )
            if not matched:
                raise WorkflowNotFoundError(workflow.id, workflow.tenant_id)
        return workflow

    def _to_dto(self, model: WorkflowInstanceModel) -> WorkflowInstance:
        steps = self._session.execute(
            select(WorkflowStepModel)
            .where(WorkflowStepModel.workflow_id == model.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return model.to_dto(steps)
