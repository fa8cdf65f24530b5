"""
Module: clm_kernel.models.workflow
Responsibility: ORM persistence for workflow instances and their steps.

Invariants enforced:
    - UNIQUE(workflow_id, step_number).
    - Step rows carry no tenant column.  Every step read or write joins
      (or EXISTS-checks) the owning instance's tenant_id in the same
      statement; see repositories/sql_workflow.py.
"""

from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clm_kernel.db.base import Base, TenantScopedBase, UTCDateTime, UUIDString
from clm_kernel.domain.identifiers import ContractID, UserID, WorkflowID, WorkflowStepID
from clm_kernel.domain.workflow import (
    StepStatus,
    StepType,
    WorkflowInstance,
    WorkflowStatus,
    WorkflowStep,
    WorkflowType,
)


class WorkflowInstanceModel(TenantScopedBase):
    __tablename__ = "clm_workflow_instances"

    __table_args__ = (
        Index("idx_clm_workflows_contract", "tenant_id", "contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_contracts.id"), nullable=False,
    )
    workflow_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    current_step: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<WorkflowInstance {self.id} status={self.status} step={self.current_step}>"

    @staticmethod
    def column_values(dto: WorkflowInstance) -> dict[str, Any]:
        return {
            "status": dto.status.value,
            "current_step": dto.current_step,
            "started_at": dto.started_at,
            "completed_at": dto.completed_at,
            "updated_at": dto.updated_at,
            "updated_by_id": dto.updated_by.value,
        }

    @classmethod
    def from_dto(cls, dto: WorkflowInstance) -> "WorkflowInstanceModel":
        return cls(
            id=dto.id.value,
            tenant_id=dto.tenant_id,
            contract_id=dto.contract_id.value,
            workflow_type=dto.workflow_type.value,
            created_at=dto.created_at,
            created_by_id=dto.created_by.value,
            **cls.column_values(dto),
        )

    def to_dto(self, steps: Iterable["WorkflowStepModel"] = ()) -> WorkflowInstance:
        return WorkflowInstance(
            id=WorkflowID(self.id),
            tenant_id=self.tenant_id,
            contract_id=ContractID(self.contract_id),
            workflow_type=WorkflowType(self.workflow_type),
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=UserID(self.created_by_id),
            updated_by=UserID(self.updated_by_id),
            status=WorkflowStatus(self.status),
            current_step=self.current_step,
            steps=tuple(s.to_dto() for s in sorted(steps, key=lambda s: s.step_number)),
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


class WorkflowStepModel(Base):
    __tablename__ = "clm_workflow_steps"

    __table_args__ = (
        UniqueConstraint("workflow_id", "step_number", name="uq_clm_workflow_step_number"),
        Index("idx_clm_workflow_steps_assignee", "assignee_id", "status"),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("clm_workflow_instances.id"), nullable=False,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    step_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    assignee_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assignee_type: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    action_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    action_comment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.workflow_id}#{self.step_number} status={self.status}>"

    @staticmethod
    def action_values(dto: WorkflowStep) -> dict[str, Any]:
        """Columns a step action may change."""
        return {
            "status": dto.status.value,
            "action_date": dto.action_date,
            "action_by": dto.action_by.value if dto.action_by else None,
            "action_comment": dto.action_comment,
        }

    @classmethod
    def from_dto(cls, dto: WorkflowStep) -> "WorkflowStepModel":
        return cls(
            id=dto.id.value,
            workflow_id=dto.workflow_id.value,
            step_number=dto.step_number,
            name=dto.name,
            step_type=dto.step_type.value,
            assignee_id=dto.assignee_id.value if dto.assignee_id else None,
            assignee_type=dto.assignee_type,
            is_optional=dto.is_optional,
            due_date=dto.due_date,
            created_at=dto.created_at,
            **cls.action_values(dto),
        )

    def to_dto(self) -> WorkflowStep:
        return WorkflowStep(
            id=WorkflowStepID(self.id),
            workflow_id=WorkflowID(self.workflow_id),
            step_number=self.step_number,
            name=self.name,
            step_type=StepType(self.step_type),
            created_at=self.created_at,
            status=StepStatus(self.status),
            assignee_id=UserID(self.assignee_id) if self.assignee_id else None,
            assignee_type=self.assignee_type,
            is_optional=self.is_optional,
            action_date=self.action_date,
            action_by=UserID(self.action_by) if self.action_by else None,
            action_comment=self.action_comment,
            due_date=self.due_date,
        )
