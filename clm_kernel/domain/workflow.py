"""
Workflow domain types (``clm_kernel.domain.workflow``).

Responsibility
--------------
Ordered approval/review processes bound to one contract.  A
``WorkflowInstance`` owns a tuple of ``WorkflowStep`` snapshots and a
``current_step`` pointer.

Invariants enforced
-------------------
* Step actions (approve, reject, skip, complete) require a PENDING step;
  every non-PENDING step status is terminal for that step.
* ``skip`` requires ``is_optional``.
* ``current_step`` never moves backwards and never passes the last step.
* Step numbers form the contiguous run ``1..N`` (``validate_step_numbers``).

The advancement policy that combines these (complete / reject / advance)
is applied by ``WorkflowService``; the instance only exposes the pieces.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Iterable

from clm_kernel.domain.identifiers import (
    ContractID,
    UserID,
    WorkflowID,
    WorkflowStepID,
)
from clm_kernel.exceptions import (
    InvalidTransitionError,
    StepNotOptionalError,
    WorkflowDefinitionError,
)


class WorkflowType(str, Enum):
    APPROVAL = "APPROVAL"
    REVIEW = "REVIEW"
    SIGNATURE = "SIGNATURE"
    NEGOTIATION = "NEGOTIATION"


class WorkflowStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class StepType(str, Enum):
    APPROVAL = "APPROVAL"
    REVIEW = "REVIEW"
    SIGNATURE = "SIGNATURE"
    TASK = "TASK"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"
    COMPLETED = "COMPLETED"


WORKFLOW_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({
        WorkflowStatus.IN_PROGRESS,
        WorkflowStatus.CANCELLED,
    }),
    WorkflowStatus.IN_PROGRESS: frozenset({
        WorkflowStatus.COMPLETED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.CANCELLED,
    }),
    WorkflowStatus.COMPLETED: frozenset(),
    WorkflowStatus.REJECTED: frozenset(),
    WorkflowStatus.CANCELLED: frozenset(),
}

ACTIVE_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.PENDING,
    WorkflowStatus.IN_PROGRESS,
})

COMPLETE_STEP_STATUSES: frozenset[StepStatus] = frozenset({
    StepStatus.APPROVED,
    StepStatus.SKIPPED,
    StepStatus.COMPLETED,
})


def validate_step_numbers(numbers: Iterable[int]) -> None:
    """Require step numbers to be exactly ``1..N``.

    Raises:
        WorkflowDefinitionError: on an empty list, a number below 1, a
            duplicate, or a gap.
    """
    numbers = tuple(numbers)
    if not numbers:
        raise WorkflowDefinitionError("at least one step is required", numbers)
    if any(n < 1 for n in numbers):
        raise WorkflowDefinitionError("step numbers must be >= 1", numbers)
    duplicates = sorted(n for n, count in Counter(numbers).items() if count > 1)
    if duplicates:
        raise WorkflowDefinitionError(
            f"duplicate step numbers {duplicates}", numbers,
        )
    if set(numbers) != set(range(1, len(numbers) + 1)):
        raise WorkflowDefinitionError(
            f"step numbers must be contiguous from 1 to {len(numbers)}", numbers,
        )


@dataclass(frozen=True)
class WorkflowStep:
    """One unit of work in a workflow."""

    id: WorkflowStepID
    workflow_id: WorkflowID
    step_number: int
    name: str
    step_type: StepType
    created_at: datetime
    status: StepStatus = StepStatus.PENDING
    assignee_id: UserID | None = None
    assignee_type: str = ""
    is_optional: bool = False
    action_date: datetime | None = None
    action_by: UserID | None = None
    action_comment: str = ""
    due_date: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.status in COMPLETE_STEP_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status == StepStatus.PENDING

    def _act(
        self, target: StepStatus, actor: UserID, at: datetime, comment: str,
    ) -> WorkflowStep:
        if not self.is_pending:
            raise InvalidTransitionError("workflow_step", self.status, target)
        return replace(
            self,
            status=target,
            action_by=actor,
            action_date=at,
            action_comment=comment,
        )

    def approve(self, actor: UserID, at: datetime, comment: str = "") -> WorkflowStep:
        return self._act(StepStatus.APPROVED, actor, at, comment)

    def reject(self, actor: UserID, at: datetime, comment: str = "") -> WorkflowStep:
        return self._act(StepStatus.REJECTED, actor, at, comment)

    def complete(self, actor: UserID, at: datetime, comment: str = "") -> WorkflowStep:
        return self._act(StepStatus.COMPLETED, actor, at, comment)

    def skip(self, actor: UserID, at: datetime, comment: str = "") -> WorkflowStep:
        if not self.is_optional:
            raise StepNotOptionalError(self.id, self.step_number)
        return self._act(StepStatus.SKIPPED, actor, at, comment)


@dataclass(frozen=True)
class WorkflowInstance:
    """Immutable workflow snapshot. ``steps`` is ordered by step number."""

    id: WorkflowID
    tenant_id: str
    contract_id: ContractID
    workflow_type: WorkflowType
    created_at: datetime
    updated_at: datetime
    created_by: UserID
    updated_by: UserID
    status: WorkflowStatus = WorkflowStatus.PENDING
    current_step: int = 1
    steps: tuple[WorkflowStep, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_WORKFLOW_STATUSES

    def _move(
        self, target: WorkflowStatus, actor: UserID, at: datetime, **changes,
    ) -> WorkflowInstance:
        if target not in WORKFLOW_TRANSITIONS[self.status]:
            raise InvalidTransitionError("workflow", self.status, target)
        return replace(
            self, status=target, updated_at=at, updated_by=actor, **changes,
        )

    def start(self, actor: UserID, at: datetime) -> WorkflowInstance:
        return self._move(WorkflowStatus.IN_PROGRESS, actor, at, started_at=at)

    def complete(self, actor: UserID, at: datetime) -> WorkflowInstance:
        return self._move(WorkflowStatus.COMPLETED, actor, at, completed_at=at)

    def reject(self, actor: UserID, at: datetime) -> WorkflowInstance:
        return self._move(WorkflowStatus.REJECTED, actor, at, completed_at=at)

    def cancel(self, actor: UserID, at: datetime) -> WorkflowInstance:
        return self._move(WorkflowStatus.CANCELLED, actor, at, completed_at=at)

    def advance_to_next_step(self, actor: UserID, at: datetime) -> WorkflowInstance:
        """Move the pointer forward one step; no-op at the last step."""
        if self.current_step >= len(self.steps):
            return self
        return replace(
            self, current_step=self.current_step + 1, updated_at=at, updated_by=actor,
        )

    def current(self) -> WorkflowStep | None:
        return self.step_by_number(self.current_step)

    def step_by_number(self, number: int) -> WorkflowStep | None:
        return next((s for s in self.steps if s.step_number == number), None)

    def with_step(self, step: WorkflowStep) -> WorkflowInstance:
        """Copy with ``step`` replacing the step of the same id."""
        return replace(
            self,
            steps=tuple(step if s.id == step.id else s for s in self.steps),
        )

    def required_steps(self) -> tuple[WorkflowStep, ...]:
        return tuple(s for s in self.steps if not s.is_optional)

    def all_required_steps_complete(self) -> bool:
        return all(s.is_complete for s in self.required_steps())

    def has_rejected_required_step(self) -> bool:
        return any(s.status == StepStatus.REJECTED for s in self.required_steps())


@dataclass(frozen=True)
class StepDefinition:
    """Input describing one step at workflow creation time."""

    step_number: int
    name: str
    step_type: StepType = StepType.APPROVAL
    assignee_id: UserID | None = None
    assignee_type: str = ""
    is_optional: bool = False
    due_date: datetime | None = None


def new_workflow(
    *,
    tenant_id: str,
    contract_id: ContractID,
    workflow_type: WorkflowType,
    steps: Iterable[StepDefinition],
    actor: UserID,
    at: datetime,
) -> WorkflowInstance:
    """Build a PENDING workflow from step definitions.

    Raises:
        WorkflowDefinitionError: if the step numbers are not ``1..N``.
    """
    definitions = tuple(steps)
    validate_step_numbers(d.step_number for d in definitions)
    workflow_id = WorkflowID.new()
    built = tuple(
        WorkflowStep(
            id=WorkflowStepID.new(),
            workflow_id=workflow_id,
            step_number=d.step_number,
            name=d.name,
            step_type=d.step_type,
            created_at=at,
            assignee_id=d.assignee_id,
            assignee_type=d.assignee_type,
            is_optional=d.is_optional,
            due_date=d.due_date,
        )
        for d in sorted(definitions, key=lambda d: d.step_number)
    )
    return WorkflowInstance(
        id=workflow_id,
        tenant_id=tenant_id,
        contract_id=contract_id,
        workflow_type=workflow_type,
        created_at=at,
        updated_at=at,
        created_by=actor,
        updated_by=actor,
        status=WorkflowStatus.PENDING,
        current_step=1,
        steps=built,
    )
