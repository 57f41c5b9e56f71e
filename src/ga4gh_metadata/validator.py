"""Record validation against a :class:`~ga4gh_metadata.descriptors.RecordDescriptor`.

:func:`validate_record` is a pure function of (instance, descriptor, context). It walks
the descriptor in declared order, fills defaults for absent optional fields, checks
value shapes, timestamp formats and ontology terms, and rejects undeclared fields.
Every violation is collected before failing, so one call reports all problems.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .descriptors import (
    ConfiguredBaseModel,
    FieldDescriptor,
    FieldKind,
    RecordDescriptor,
    describe_shape,
    value_matches_kind,
)
from .exceptions import RecordValidationError, TermError
from .ontology import OntologyTermValidator, TermValidator
from .timestamps import is_valid_timestamp
from .violations import (
    EmptyIdentifier,
    InvalidOntologyTerm,
    InvalidTimestamp,
    MissingField,
    TypeMismatch,
    UnknownField,
    Violation,
)

logger = logging.getLogger(__name__)


class ValidationContext(ConfiguredBaseModel):
    """Per-call collaborators used during validation."""

    term_validator: TermValidator = Field(default_factory=OntologyTermValidator, description="""Collaborator deciding whether an ontology term is acceptable.""")


_DEFAULT_CONTEXT = ValidationContext()


def _check_terms(fd: FieldDescriptor, value: Any, context: ValidationContext) -> List[Violation]:
    if fd.kind == FieldKind.NULLABLE_TERM:
        terms = [] if value is None else [(None, value)]
    else:
        terms = list(enumerate(value))
    problems: List[Violation] = []
    for index, term in terms:
        try:
            accepted = context.term_validator.validate(term)
        except TermError as e:
            problems.append(InvalidOntologyTerm(name=fd.name, index=index, detail=str(e)))
            continue
        if not accepted:
            problems.append(InvalidOntologyTerm(name=fd.name, index=index))
    return problems


def check_field(fd: FieldDescriptor, value: Any, context: Optional[ValidationContext] = None) -> List[Violation]:
    """Return the violations of a single present field value (empty when valid)."""
    context = context or _DEFAULT_CONTEXT
    if not value_matches_kind(fd.kind, value):
        return [TypeMismatch(name=fd.name, expected_kind=fd.kind.value, actual_shape=describe_shape(value))]
    if fd.kind.is_term:
        return _check_terms(fd, value, context)
    if fd.identifier and value == "":
        return [EmptyIdentifier(name=fd.name)]
    if fd.time_format is not None and value is not None and not is_valid_timestamp(value, fd.time_format):
        return [InvalidTimestamp(name=fd.name, value=value)]
    return []


def _normalize_value(value: Any) -> Any:
    """Independent copy of a validated value; tuples become lists."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _normalize_value(v) for k, v in value.items()}
    return copy.deepcopy(value)


def collect_violations(
    instance: Mapping,
    descriptor: RecordDescriptor,
    context: Optional[ValidationContext] = None,
) -> Tuple[Dict[str, Any], List[Violation]]:
    """Validate without raising.

    Returns ``(normalized, violations)``; ``normalized`` is only meaningful when
    ``violations`` is empty.
    """
    if not isinstance(instance, Mapping):
        raise TypeError(f"{descriptor.entity_name} record must be a mapping, got {type(instance).__name__}")
    context = context or _DEFAULT_CONTEXT
    normalized: Dict[str, Any] = {}
    violations: List[Violation] = []

    for fd in descriptor.fields:
        if fd.name not in instance:
            if fd.required:
                violations.append(MissingField(name=fd.name))
            else:
                normalized[fd.name] = fd.fill_value()
            continue
        value = instance[fd.name]
        problems = check_field(fd, value, context)
        if problems:
            violations.extend(problems)
        else:
            normalized[fd.name] = _normalize_value(value)

    declared = set(descriptor.field_names)
    for key in instance:
        if key not in declared:
            violations.append(UnknownField(name=str(key)))

    return normalized, violations


def validate_record(
    instance: Mapping,
    descriptor: RecordDescriptor,
    context: Optional[ValidationContext] = None,
) -> Dict[str, Any]:
    """Validate *instance* and return its normalized form.

    The normalized record is a new dict holding every declared field in declared
    order, with defaults filled (arrays ``[]``, maps ``{}``, nullable scalars ``None``).

    Raises:
        RecordValidationError: carrying every violation found.
    """
    normalized, violations = collect_violations(instance, descriptor, context)
    if violations:
        logger.debug(
            "Rejected %s record %r: %d violation(s)",
            descriptor.entity_name,
            instance.get("id"),
            len(violations),
        )
        raise RecordValidationError(descriptor.entity_name, violations)
    return normalized


__all__ = [
    "ValidationContext",
    "check_field",
    "collect_violations",
    "validate_record",
]
