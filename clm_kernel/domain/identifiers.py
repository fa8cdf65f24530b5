"""
Identifiers -- distinct nominal id types per entity.

Every entity id wraps a ``uuid.UUID`` in its own frozen class, so a
``PartyID`` and a ``ContractID`` built from the same UUID never compare
equal and a type checker flags one passed where the other is expected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar
from uuid import UUID, uuid4

_NIL = UUID(int=0)

_IdT = TypeVar("_IdT", bound="EntityID")


@dataclass(frozen=True, slots=True)
class EntityID:
    """Base for typed identifiers. Use a concrete subclass."""

    value: UUID

    def __post_init__(self) -> None:
        if not isinstance(self.value, UUID):
            raise TypeError(
                f"{type(self).__name__} wraps uuid.UUID, got {type(self.value).__name__}"
            )

    @classmethod
    def new(cls: type[_IdT]) -> _IdT:
        return cls(uuid4())

    @classmethod
    def nil(cls: type[_IdT]) -> _IdT:
        return cls(_NIL)

    @classmethod
    def parse(cls: type[_IdT], raw: str | UUID) -> _IdT:
        """Parse a textual UUID. Raises ValueError on malformed input."""
        if isinstance(raw, UUID):
            return cls(raw)
        try:
            return cls(UUID(str(raw)))
        except (ValueError, AttributeError) as e:
            raise ValueError(f"Invalid {cls.__name__}: {raw!r}") from e

    @property
    def is_nil(self) -> bool:
        return self.value == _NIL

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class PartyID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class ContractID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class ContractTypeID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class ObligationID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class WorkflowID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class WorkflowStepID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class DocumentID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class TemplateID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class AuditEntryID(EntityID):
    pass


@dataclass(frozen=True, slots=True)
class UserID(EntityID):
    """The acting user (actor) or an assignee."""
