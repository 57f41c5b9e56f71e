"""Structured violation records reported in batches by the validator and resolvers."""
from __future__ import annotations

from typing import Any, ClassVar, Optional

from pydantic import Field

from .descriptors import ConfiguredBaseModel


class Violation(ConfiguredBaseModel):
    """
    Base class for one reported problem with a record.
    """
    code: ClassVar[str] = "violation"

    @property
    def message(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.message


class MissingField(Violation):
    """
    A required field is absent from the instance.
    """
    code: ClassVar[str] = "missing_field"

    name: str = Field(default=..., description="""Name of the absent field.""")

    @property
    def message(self) -> str:
        return f"Missing required field '{self.name}'"


class TypeMismatch(Violation):
    """
    A value's shape does not match its declared kind.
    """
    code: ClassVar[str] = "type_mismatch"

    name: str = Field(default=..., description="""Field name.""")
    expected_kind: str = Field(default=..., description="""Declared kind of the field.""")
    actual_shape: str = Field(default=..., description="""Observed shape of the value.""")

    @property
    def message(self) -> str:
        return f"Field '{self.name}' expected {self.expected_kind}, got {self.actual_shape}"


class InvalidTimestamp(Violation):
    """
    A string value does not follow the field's ISO-8601 subset.
    """
    code: ClassVar[str] = "invalid_timestamp"

    name: str = Field(default=..., description="""Field name.""")
    value: str = Field(default=..., description="""Offending value.""")

    @property
    def message(self) -> str:
        return f"Field '{self.name}' has invalid timestamp '{self.value}'"


class UnknownField(Violation):
    """
    The instance carries a field the descriptor does not declare.
    """
    code: ClassVar[str] = "unknown_field"

    name: str = Field(default=..., description="""Undeclared field name.""")

    @property
    def message(self) -> str:
        return f"Unknown field '{self.name}'"


class InvalidOntologyTerm(Violation):
    """
    The ontology-term validator rejected a term.
    """
    code: ClassVar[str] = "invalid_ontology_term"

    name: str = Field(default=..., description="""Field name.""")
    index: Optional[int] = Field(default=None, description="""Position in an array field, if any.""")
    detail: str = Field(default="rejected by ontology-term validator")

    @property
    def message(self) -> str:
        where = self.name if self.index is None else f"{self.name}[{self.index}]"
        return f"Invalid ontology term in '{where}': {self.detail}"


class EmptyIdentifier(Violation):
    """
    An identifier field holds the empty string.
    """
    code: ClassVar[str] = "empty_identifier"

    name: str = Field(default=..., description="""Identifier field name.""")

    @property
    def message(self) -> str:
        return f"Identifier field '{self.name}' must not be empty"


class DuplicateIdentifier(Violation):
    """
    Two records of one batch share an identifier.
    """
    code: ClassVar[str] = "duplicate_identifier"

    name: str = Field(default="id")
    value: str = Field(default=..., description="""Repeated identifier.""")
    first_row: int = Field(default=..., description="""Row index holding the first occurrence.""")

    @property
    def message(self) -> str:
        return f"Identifier '{self.value}' already used by row {self.first_row}"


class DanglingReference(Violation):
    """
    A reference field names an entity id that does not exist.
    """
    code: ClassVar[str] = "dangling_reference"

    field_name: str = Field(default=..., description="""Reference field name.""")
    target_entity: str = Field(default=..., description="""Entity the reference should resolve to.""")
    id: str = Field(default=..., description="""Unresolved identifier.""")

    @property
    def message(self) -> str:
        return f"Field '{self.field_name}' references missing {self.target_entity} '{self.id}'"


class IncompatibleEvolution(Violation):
    """
    A field cannot be carried from the writer's schema to the reader's.
    """
    code: ClassVar[str] = "incompatible_evolution"

    name: str = Field(default=..., description="""Field name.""")
    reason: str = Field(default=..., description="""Why the field cannot be resolved.""")
    value: Any = Field(default=None, description="""Writer value involved, if any.""")

    @property
    def message(self) -> str:
        return f"Field '{self.name}': {self.reason}"


__all__ = [
    "Violation",
    "MissingField",
    "TypeMismatch",
    "InvalidTimestamp",
    "UnknownField",
    "InvalidOntologyTerm",
    "EmptyIdentifier",
    "DuplicateIdentifier",
    "DanglingReference",
    "IncompatibleEvolution",
]
