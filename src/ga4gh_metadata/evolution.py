"""Schema-resolution between a writer's and a reader's record descriptors.

Follows Avro-style resolution, applied field by field over the reader's descriptor:

  * field in both schemas with the same kind: value passes through unchanged
    (an absent value stays absent)
  * field only in the reader: filled with the reader's default; a required
    addition is incompatible
  * field only in the writer (or unknown to both): dropped
  * field retyped: converted through the widening/narrowing tables below;
    narrowing that would lose writer data is incompatible

Resolving a record already in the reader's shape against the reader's own
descriptor returns it unchanged, so migration is idempotent.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Tuple

from .descriptors import FieldKind, RecordDescriptor
from .exceptions import EvolutionError
from .violations import IncompatibleEvolution

logger = logging.getLogger(__name__)


class _LossyConversion(Exception):
    pass


def _same(value: Any) -> Any:
    return value


def _scalar_to_array(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value
    return [] if value is None else [value]


def _require_non_null(value: Any) -> Any:
    if value is None:
        raise _LossyConversion("null value cannot be narrowed to a non-nullable kind")
    return value


def _array_to_scalar(value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    if len(value) > 1:
        raise _LossyConversion(f"{len(value)} values cannot be narrowed to a single value")
    return value[0] if value else None


def _array_to_single(value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    if len(value) != 1:
        raise _LossyConversion(f"{len(value)} values cannot be narrowed to exactly one value")
    return value[0]


# Widening: every writer value has a representation under the reader kind.
TYPE_WIDENING: Dict[Tuple[FieldKind, FieldKind], Callable[[Any], Any]] = {
    (FieldKind.STRING, FieldKind.NULLABLE_STRING): _same,
    (FieldKind.LONG, FieldKind.NULLABLE_LONG): _same,
    (FieldKind.REFERENCE_ID, FieldKind.NULLABLE_STRING): _same,
    (FieldKind.REFERENCE_ID, FieldKind.STRING): _same,
    (FieldKind.STRING, FieldKind.REFERENCE_ID): _same,
    (FieldKind.STRING, FieldKind.STRING_ARRAY): _scalar_to_array,
    (FieldKind.REFERENCE_ID, FieldKind.STRING_ARRAY): _scalar_to_array,
    (FieldKind.NULLABLE_STRING, FieldKind.STRING_ARRAY): _scalar_to_array,
    (FieldKind.NULLABLE_TERM, FieldKind.TERM_ARRAY): _scalar_to_array,
}

# Narrowing: only values that survive the reader kind are carried over.
TYPE_NARROWING: Dict[Tuple[FieldKind, FieldKind], Callable[[Any], Any]] = {
    (FieldKind.NULLABLE_STRING, FieldKind.STRING): _require_non_null,
    (FieldKind.NULLABLE_STRING, FieldKind.REFERENCE_ID): _require_non_null,
    (FieldKind.NULLABLE_LONG, FieldKind.LONG): _require_non_null,
    (FieldKind.STRING_ARRAY, FieldKind.STRING): _array_to_single,
    (FieldKind.STRING_ARRAY, FieldKind.REFERENCE_ID): _array_to_single,
    (FieldKind.STRING_ARRAY, FieldKind.NULLABLE_STRING): _array_to_scalar,
    (FieldKind.TERM_ARRAY, FieldKind.NULLABLE_TERM): _array_to_scalar,
}


def conversion_for(writer_kind: FieldKind, reader_kind: FieldKind) -> Optional[Callable[[Any], Any]]:
    """Return the converter from *writer_kind* to *reader_kind*, or None if there is no path."""
    if writer_kind == reader_kind:
        return _same
    return TYPE_WIDENING.get((writer_kind, reader_kind)) or TYPE_NARROWING.get((writer_kind, reader_kind))


def compare_descriptors(writer: RecordDescriptor, reader: RecordDescriptor) -> List[IncompatibleEvolution]:
    """Schema-level incompatibilities of reading *writer* records with *reader*.

    Narrowing conversions are not reported here: whether they lose data depends
    on the values of a particular record.
    """
    problems: List[IncompatibleEvolution] = []
    for rf in reader.fields:
        wf = writer.get_field(rf.name)
        if wf is None:
            if rf.required:
                problems.append(IncompatibleEvolution(
                    name=rf.name, reason="added as a required field without a default"
                ))
            continue
        if conversion_for(wf.kind, rf.kind) is None:
            problems.append(IncompatibleEvolution(
                name=rf.name, reason=f"cannot convert {wf.kind.value} to {rf.kind.value}"
            ))
    return problems


def migrate_record(
    instance: Mapping,
    writer: RecordDescriptor,
    reader: RecordDescriptor,
    *,
    from_version: Optional[int] = None,
    to_version: Optional[int] = None,
) -> Dict[str, Any]:
    """Reshape *instance*, written under *writer*, into the shape of *reader*.

    The result is not validated; pass it to the validator afterwards.

    Raises:
        EvolutionError: carrying every field that cannot be resolved.
    """
    if not isinstance(instance, Mapping):
        raise TypeError(f"{writer.entity_name} record must be a mapping, got {type(instance).__name__}")
    if writer.entity_name != reader.entity_name:
        raise ValueError(f"Cannot migrate {writer.entity_name} record to {reader.entity_name} schema")

    migrated: Dict[str, Any] = {}
    violations: List[IncompatibleEvolution] = []

    for rf in reader.fields:
        wf = writer.get_field(rf.name)
        if wf is None:
            if rf.required:
                violations.append(IncompatibleEvolution(
                    name=rf.name, reason="added as a required field without a default"
                ))
            else:
                migrated[rf.name] = rf.fill_value()
            continue
        if rf.name not in instance:
            continue
        value = instance[rf.name]
        convert = conversion_for(wf.kind, rf.kind)
        if convert is None:
            violations.append(IncompatibleEvolution(
                name=rf.name,
                reason=f"cannot convert {wf.kind.value} to {rf.kind.value}",
                value=value,
            ))
            continue
        try:
            migrated[rf.name] = copy.deepcopy(convert(value))
        except _LossyConversion as e:
            violations.append(IncompatibleEvolution(name=rf.name, reason=str(e), value=value))

    dropped = [k for k in instance if not reader.has_field(k)]
    if dropped:
        logger.debug(
            "Dropped %s field(s) unknown to reader schema: %s",
            writer.entity_name,
            ", ".join(str(k) for k in dropped),
        )

    if violations:
        raise EvolutionError(writer.entity_name, from_version, to_version, violations)
    return migrated


__all__ = [
    "TYPE_WIDENING",
    "TYPE_NARROWING",
    "conversion_for",
    "compare_descriptors",
    "migrate_record",
]
