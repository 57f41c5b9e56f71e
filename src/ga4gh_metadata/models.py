"""Frozen, typed Pydantic models generated from record descriptors.

Accepted records are immutable; :func:`build_record_model` gives them a typed,
attribute-access form whose fields cannot be reassigned. Arrays become tuples.
Models are cached per descriptor layout.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

from .descriptors import FieldDescriptor, FieldKind, RecordDescriptor

_PY_TYPES: Dict[FieldKind, Any] = {
    FieldKind.STRING: str,
    FieldKind.REFERENCE_ID: str,
    FieldKind.NULLABLE_STRING: Optional[str],
    FieldKind.LONG: int,
    FieldKind.NULLABLE_LONG: Optional[int],
    FieldKind.STRING_ARRAY: Tuple[str, ...],
    FieldKind.TERM_ARRAY: Tuple[Any, ...],
    FieldKind.NULLABLE_TERM: Optional[Any],
    FieldKind.INFO_MAP: Dict[str, Tuple[str, ...]],
}


def _field_definition(fd: FieldDescriptor) -> Tuple[Any, Any]:
    py_type = _PY_TYPES[fd.kind]
    kwargs: Dict[str, Any] = {}
    if fd.description:
        kwargs["description"] = fd.description
    if fd.required:
        return py_type, Field(..., **kwargs)
    default = fd.fill_value()
    if isinstance(default, list):
        default = tuple(default)
    return py_type, Field(default, **kwargs)


@lru_cache(maxsize=128)
def _model_for_layout(layout: str) -> Type[BaseModel]:
    descriptor = RecordDescriptor.model_validate_json(layout)
    field_defs = {fd.name: _field_definition(fd) for fd in descriptor.fields}
    return create_model(  # type: ignore[call-overload]
        f"{descriptor.entity_name}Record",
        __config__=ConfigDict(frozen=True, extra="forbid"),
        **field_defs,
    )


def build_record_model(descriptor: RecordDescriptor) -> Type[BaseModel]:
    """Return the frozen model class for *descriptor*.

    Classes are shared between descriptors with identical layouts, defaults included.
    """
    return _model_for_layout(descriptor.model_dump_json())


__all__ = ["build_record_model"]
