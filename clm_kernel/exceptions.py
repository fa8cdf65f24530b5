"""
Typed Exception Hierarchy for the CLM Kernel.

===============================================================================
ERRORS AS RESULTS
===============================================================================

Every core operation either returns its value or raises a subclass of
``CLMKernelError``.  Callers catch by type, never by message, and every
exception carries:

  1. A ``code`` class attribute (machine-readable, API-safe).
  2. A ``kind`` class attribute (one of the five ``ErrorKind`` values) so an
     HTTP layer can map any failure to a status code without knowing the
     concrete class.
  3. Structured attributes (entity type, id, field, statuses).

Example:
    try:
        contract = contracts.approve(tenant_id, actor, contract_id)
    except InvalidTransitionError as e:
        respond(409, code=e.code, current=e.from_status.value)
    except CLMKernelError as e:
        respond(STATUS_BY_KIND[e.kind], code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CLMKernelError (base)
    |
    +-- NotFoundError                       kind=NOT_FOUND
    |   +-- ContractNotFoundError
    |   +-- PartyNotFoundError
    |   +-- ObligationNotFoundError
    |   +-- WorkflowNotFoundError
    |   +-- WorkflowStepNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- TemplateNotFoundError
    |
    +-- ValidationError                     kind=VALIDATION
    |   +-- InvalidTransitionError
    |   +-- DraftOnlyEditError
    |   +-- DuplicateContractNumberError
    |   +-- ObligationClosedError
    |   +-- StepNotOptionalError
    |   +-- WorkflowDefinitionError
    |   +-- WorkflowNotActiveError
    |   +-- DocumentAlreadySignedError
    |   +-- DocumentSignedError
    |
    +-- UnauthorizedError                   kind=UNAUTHORIZED
    |
    +-- ConflictError                       kind=CONFLICT (reserved)
    |
    +-- InternalError                       kind=INTERNAL
        +-- PersistenceError
        +-- ImmutabilityViolationError

===============================================================================
PROPAGATION
===============================================================================

NOT_FOUND, VALIDATION and UNAUTHORIZED errors are never recovered inside
the kernel.  Persistence failures are wrapped in ``PersistenceError`` with
entity type, id and operation; the raw driver exception is kept only as
``__cause__`` and never appears in the message.  Audit-write failures are
the one exception that is swallowed (see ``services.auditor_service``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Coarse error category a caller maps to a response."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"


class CLMKernelError(Exception):
    """
    Base exception for all CLM kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "CLM_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(CLMKernelError):
    """Entity is absent or not visible to the requesting tenant."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND
    entity_type: str = "entity"

    def __init__(self, entity_id: Any, tenant_id: str | None = None):
        self.entity_id = str(entity_id)
        self.tenant_id = tenant_id
        super().__init__(f"{self.entity_type} not found: {self.entity_id}")


class ContractNotFoundError(NotFoundError):
    code: str = "CONTRACT_NOT_FOUND"
    entity_type: str = "contract"


class PartyNotFoundError(NotFoundError):
    code: str = "PARTY_NOT_FOUND"
    entity_type: str = "party"


class ObligationNotFoundError(NotFoundError):
    code: str = "OBLIGATION_NOT_FOUND"
    entity_type: str = "obligation"


class WorkflowNotFoundError(NotFoundError):
    code: str = "WORKFLOW_NOT_FOUND"
    entity_type: str = "workflow"


class WorkflowStepNotFoundError(NotFoundError):
    code: str = "WORKFLOW_STEP_NOT_FOUND"
    entity_type: str = "workflow_step"


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"
    entity_type: str = "document"


class TemplateNotFoundError(NotFoundError):
    code: str = "TEMPLATE_NOT_FOUND"
    entity_type: str = "document_template"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(CLMKernelError):
    """Malformed input or an operation that is illegal in the current state."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    """
    A state machine edge that does not exist was requested.

    The entity the transition was requested on is left unchanged.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_status: Enum, to_status: Enum):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid {entity_type} transition: "
            f"{from_status.value} -> {to_status.value}",
            field="status",
        )


class DraftOnlyEditError(ValidationError):
    """Free-form contract fields may only change while the contract is DRAFT."""

    code: str = "DRAFT_ONLY_EDIT"

    def __init__(self, contract_id: Any, status: Enum):
        self.contract_id = str(contract_id)
        self.status = status
        super().__init__(
            f"Contract {self.contract_id} is {status.value}; "
            "only DRAFT contracts can be edited",
            field="status",
        )


class DuplicateContractNumberError(ValidationError):
    code: str = "DUPLICATE_CONTRACT_NUMBER"

    def __init__(self, contract_number: str):
        self.contract_number = contract_number
        super().__init__(
            f"Contract number already in use: {contract_number}",
            field="contract_number",
        )


class ObligationClosedError(ValidationError):
    """A terminal obligation cannot be edited."""

    code: str = "OBLIGATION_CLOSED"

    def __init__(self, obligation_id: Any, status: Enum):
        self.obligation_id = str(obligation_id)
        self.status = status
        super().__init__(
            f"Obligation {self.obligation_id} is {status.value} and cannot be edited",
            field="status",
        )


class StepNotOptionalError(ValidationError):
    code: str = "STEP_NOT_OPTIONAL"

    def __init__(self, step_id: Any, step_number: int):
        self.step_id = str(step_id)
        self.step_number = step_number
        super().__init__(
            f"Workflow step {step_number} is required and cannot be skipped",
            field="is_optional",
        )


class WorkflowDefinitionError(ValidationError):
    """Workflow steps are not numbered 1..N without gaps or duplicates."""

    code: str = "INVALID_WORKFLOW_DEFINITION"

    def __init__(self, reason: str, step_numbers: tuple[int, ...] = ()):
        self.reason = reason
        self.step_numbers = step_numbers
        super().__init__(f"Invalid workflow definition: {reason}", field="steps")


class WorkflowNotActiveError(ValidationError):
    code: str = "WORKFLOW_NOT_ACTIVE"

    def __init__(self, workflow_id: Any, status: Enum):
        self.workflow_id = str(workflow_id)
        self.status = status
        super().__init__(
            f"Workflow {self.workflow_id} is {status.value}; steps cannot be acted on",
            field="status",
        )


class DocumentAlreadySignedError(ValidationError):
    code: str = "DOCUMENT_ALREADY_SIGNED"

    def __init__(self, document_id: Any):
        self.document_id = str(document_id)
        super().__init__(f"Document {self.document_id} is already signed")


class DocumentSignedError(ValidationError):
    """Signed documents cannot be deleted."""

    code: str = "DOCUMENT_SIGNED"

    def __init__(self, document_id: Any):
        self.document_id = str(document_id)
        super().__init__(f"Document {self.document_id} is signed and cannot be deleted")


# =============================================================================
# Unauthorized / Conflict
# =============================================================================


class UnauthorizedError(CLMKernelError):
    """Missing tenant or actor, or an entity presented under the wrong tenant."""

    code: str = "UNAUTHORIZED"
    kind: ErrorKind = ErrorKind.UNAUTHORIZED

    def __init__(self, reason: str, tenant_id: str | None = None):
        self.reason = reason
        self.tenant_id = tenant_id
        super().__init__(f"Unauthorized: {reason}")


class ConflictError(CLMKernelError):
    """Reserved for concurrent-update detection. Not raised by the kernel today."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"Concurrent update on {entity_type} {self.entity_id}")


# =============================================================================
# Internal
# =============================================================================


class InternalError(CLMKernelError):
    code: str = "INTERNAL_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL


class PersistenceError(InternalError):
    """A storage operation failed. The driver error is chained as ``__cause__``."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, entity_type: str, operation: str, entity_id: Any = None):
        self.entity_type = entity_type
        self.operation = operation
        self.entity_id = str(entity_id) if entity_id is not None else None
        target = f" {self.entity_id}" if self.entity_id else ""
        super().__init__(f"Failed to {operation} {entity_type}{target}")


class ImmutabilityViolationError(InternalError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
