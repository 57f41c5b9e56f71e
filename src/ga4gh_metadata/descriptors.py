"""Field and record descriptors for the GA4GH metadata entities.

A :class:`RecordDescriptor` is an ordered set of :class:`FieldDescriptor` objects
describing one entity type at one schema version. Descriptors are frozen Pydantic
models; they are built once (usually from the bundled LinkML schema, see
:func:`ga4gh_metadata.registry.registry_from_schema_view`) and shared read-only.

Defaults are modelled as a sum type: ``default=None`` means *no default*, while
``default=DefaultValue(value=None)`` means *defaults to null*.
"""
from __future__ import annotations

import copy
import hashlib
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .timestamps import TimeFormat


ENTITY_NAMES: Tuple[str, ...] = (
    "Individual",
    "Sample",
    "Experiment",
    "IndividualGroup",
    "Dataset",
    "Analysis",
)


class ConfiguredBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen = True,
        extra = "forbid",
        arbitrary_types_allowed = True,
        strict = False,
    )
    pass


class FieldKind(str, Enum):
    STRING = "string"
    LONG = "long"
    STRING_ARRAY = "array<string>"
    TERM_ARRAY = "array<OntologyTerm>"
    INFO_MAP = "map<array<string>>"
    NULLABLE_STRING = "nullable-string"
    NULLABLE_LONG = "nullable-long"
    NULLABLE_TERM = "nullable-OntologyTerm"
    REFERENCE_ID = "reference-id"

    @property
    def is_collection(self) -> bool:
        return self in _COLLECTION_KINDS

    @property
    def is_nullable(self) -> bool:
        return self in _NULLABLE_KINDS

    @property
    def is_term(self) -> bool:
        return self in (FieldKind.TERM_ARRAY, FieldKind.NULLABLE_TERM)

    @property
    def is_string(self) -> bool:
        return self in (FieldKind.STRING, FieldKind.NULLABLE_STRING, FieldKind.REFERENCE_ID)


_COLLECTION_KINDS = frozenset({FieldKind.STRING_ARRAY, FieldKind.TERM_ARRAY, FieldKind.INFO_MAP})
_NULLABLE_KINDS = frozenset({FieldKind.NULLABLE_STRING, FieldKind.NULLABLE_LONG, FieldKind.NULLABLE_TERM})
_REFERENCE_KINDS = frozenset({
    FieldKind.STRING,
    FieldKind.NULLABLE_STRING,
    FieldKind.REFERENCE_ID,
    FieldKind.STRING_ARRAY,
})


def kind_default(kind: FieldKind) -> Any:
    """Return the implicit default of an optional field of *kind*."""
    if kind in (FieldKind.STRING_ARRAY, FieldKind.TERM_ARRAY):
        return []
    if kind == FieldKind.INFO_MAP:
        return {}
    return None


def _is_long(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def value_matches_kind(kind: FieldKind, value: Any) -> bool:
    """Shape check of *value* against *kind*.

    Ontology terms are opaque here: only their container shape is checked
    (a term is any mapping or model object; the term validator decides the rest).
    """
    if kind in (FieldKind.STRING, FieldKind.REFERENCE_ID):
        return isinstance(value, str)
    if kind == FieldKind.NULLABLE_STRING:
        return value is None or isinstance(value, str)
    if kind == FieldKind.LONG:
        return _is_long(value)
    if kind == FieldKind.NULLABLE_LONG:
        return value is None or _is_long(value)
    if kind == FieldKind.STRING_ARRAY:
        return _is_string_list(value)
    if kind == FieldKind.INFO_MAP:
        return isinstance(value, Mapping) and all(
            isinstance(k, str) and _is_string_list(v) for k, v in value.items()
        )
    if kind == FieldKind.TERM_ARRAY:
        return isinstance(value, (list, tuple))
    if kind == FieldKind.NULLABLE_TERM:
        return value is None or isinstance(value, (Mapping, BaseModel))
    return False


def describe_shape(value: Any) -> str:
    """Short human description of a value's shape, e.g. ``array<long>``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        inner = {describe_shape(v) for v in value}
        if not inner:
            return "array"
        return f"array<{inner.pop() if len(inner) == 1 else 'mixed'}>"
    if isinstance(value, (Mapping, BaseModel)):
        return "map"
    return type(value).__name__


class DefaultValue(ConfiguredBaseModel):
    """A declared default. Presence of this object, not its value, marks a default."""

    value: Any = None


class FieldDescriptor(ConfiguredBaseModel):
    """
    One field of an entity record.
    """
    name: str = Field(default=..., min_length=1, description="""Field name, unique within its record.""")
    kind: FieldKind = Field(default=..., description="""Value kind.""")
    required: bool = Field(default=False, description="""Whether the field must be supplied.""")
    default: Optional[DefaultValue] = Field(default=None, description="""Declared default; None means no default.""")
    time_format: Optional[TimeFormat] = Field(default=None, description="""ISO-8601 subset the string value must follow.""")
    reference_target: Optional[str] = Field(default=None, description="""Entity whose id this field's value(s) name.""")
    identifier: bool = Field(default=False, description="""Whether this field is the record identifier.""")
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_default_semantics(self):
        kind = self.kind
        if self.required and self.default is not None:
            raise ValueError(f"Required field '{self.name}' cannot declare a default")
        if kind.is_collection and (self.required or self.default is None):
            raise ValueError(f"Collection field '{self.name}' must be optional with a default")
        if not self.required and self.default is None and not kind.is_nullable:
            raise ValueError(f"Optional field '{self.name}' of kind {kind.value} needs a default")
        if self.default is not None:
            value = self.default.value
            if not value_matches_kind(kind, value):
                raise ValueError(
                    f"Default for '{self.name}' does not match kind {kind.value}: {describe_shape(value)}"
                )
            if kind.is_term and value not in (None, []):
                raise ValueError(f"Ontology-term field '{self.name}' may only default to null or []")
        if self.time_format is not None and not kind.is_string:
            raise ValueError(f"Time format declared on non-string field '{self.name}'")
        if self.reference_target is not None and kind not in _REFERENCE_KINDS:
            raise ValueError(f"Reference field '{self.name}' must hold string identifiers")
        if self.reference_target is not None and self.reference_target not in ENTITY_NAMES:
            raise ValueError(f"Reference field '{self.name}' targets unknown entity '{self.reference_target}'")
        if kind == FieldKind.REFERENCE_ID and self.reference_target is None:
            raise ValueError(f"reference-id field '{self.name}' needs a reference target")
        if self.identifier and (kind != FieldKind.STRING or not self.required):
            raise ValueError(f"Identifier field '{self.name}' must be a required string")
        return self

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def fill_value(self) -> Any:
        """Value used when the field is absent; a fresh copy on every call."""
        if self.default is None:
            return None
        return copy.deepcopy(self.default.value)


def required_field(name: str, kind: FieldKind = FieldKind.STRING, **kwargs: Any) -> FieldDescriptor:
    return FieldDescriptor(name=name, kind=kind, required=True, **kwargs)


def optional_field(name: str, kind: FieldKind = FieldKind.NULLABLE_STRING, **kwargs: Any) -> FieldDescriptor:
    """Optional field defaulting to the kind's implicit default unless *default* is given."""
    if "default" not in kwargs:
        kwargs["default"] = DefaultValue(value=kind_default(kind))
    elif kwargs["default"] is not None and not isinstance(kwargs["default"], DefaultValue):
        kwargs["default"] = DefaultValue(value=kwargs["default"])
    return FieldDescriptor(name=name, kind=kind, required=False, **kwargs)


class RecordDescriptor(ConfiguredBaseModel):
    """
    Ordered field layout of one entity type.
    """
    entity_name: str = Field(default=..., description="""One of the fixed metadata entity names.""")
    fields: Tuple[FieldDescriptor, ...] = Field(default=(), description="""Fields in declared order.""")
    description: Optional[str] = None

    @field_validator("entity_name")
    def known_entity(cls, v):
        if v not in ENTITY_NAMES:
            raise ValueError(f"Unknown entity '{v}'; expected one of {', '.join(ENTITY_NAMES)}")
        return v

    @model_validator(mode="after")
    def unique_field_names(self):
        seen: Dict[str, int] = {}
        for fd in self.fields:
            seen[fd.name] = seen.get(fd.name, 0) + 1
        dupes = sorted(n for n, c in seen.items() if c > 1)
        if dupes:
            raise ValueError(f"Duplicate field names in {self.entity_name}: {', '.join(dupes)}")
        return self

    @property
    def field_names(self) -> List[str]:
        return [fd.name for fd in self.fields]

    @property
    def reference_fields(self) -> List[FieldDescriptor]:
        return [fd for fd in self.fields if fd.reference_target is not None]

    @property
    def identifier_field(self) -> Optional[FieldDescriptor]:
        return next((fd for fd in self.fields if fd.identifier), None)

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        return next((fd for fd in self.fields if fd.name == name), None)

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    @property
    def fingerprint(self) -> str:
        """Stable fingerprint of the field layout.

        Covers names, kinds, optionality, defaults, time formats, reference
        targets and identifiers; descriptions are ignored.
        """
        parts = [
            fd.model_dump_json(exclude={"description"})
            for fd in self.fields
        ]
        digest = hashlib.sha256(f"{self.entity_name}|{'|'.join(parts)}".encode()).hexdigest()
        return f"sha256:{digest}"


__all__ = [
    "ENTITY_NAMES",
    "ConfiguredBaseModel",
    "FieldKind",
    "DefaultValue",
    "FieldDescriptor",
    "RecordDescriptor",
    "kind_default",
    "value_matches_kind",
    "describe_shape",
    "required_field",
    "optional_field",
]
