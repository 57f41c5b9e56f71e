"""Process-wide store of record descriptors keyed by entity name and schema version.

The registry is populated once at startup (normally from the bundled LinkML schema
via :func:`registry_from_schema_view`) and read concurrently afterwards without
locking. Registration errors indicate a schema authoring bug and are meant to stop
startup.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .descriptors import (
    ENTITY_NAMES,
    DefaultValue,
    FieldDescriptor,
    FieldKind,
    RecordDescriptor,
    kind_default,
)
from .evolution import compare_descriptors
from .exceptions import (
    DuplicateVersionError,
    InvalidEvolutionError,
    RegistryError,
    UnknownEntityError,
    UnknownSchemaError,
)
from .timestamps import TimeFormat

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Record descriptors by ``(entity_name, version)``."""

    def __init__(self) -> None:
        self._schemas: Dict[str, Dict[int, RecordDescriptor]] = {}

    def register(self, entity_name: str, version: int, descriptor: RecordDescriptor) -> RecordDescriptor:
        """Register *descriptor* as *version* of *entity_name*.

        Versions of one entity must be registered in increasing order. A new
        version is checked against the closest lower one: it may not introduce
        a required field, nor retype a field to a kind with no conversion path.

        Raises:
            UnknownEntityError: *entity_name* is not one of the metadata entities,
                or differs from the descriptor's entity.
            DuplicateVersionError: the version is already registered.
            InvalidEvolutionError: the new version cannot read older records.
        """
        if entity_name not in ENTITY_NAMES:
            raise UnknownEntityError(f"Unknown entity '{entity_name}'; expected one of {', '.join(ENTITY_NAMES)}")
        if descriptor.entity_name != entity_name:
            raise UnknownEntityError(
                f"Descriptor for {descriptor.entity_name} cannot be registered under {entity_name}"
            )
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise RegistryError(f"Schema version must be a positive integer, got {version!r}")

        existing = self._schemas.get(entity_name, {})
        if version in existing:
            raise DuplicateVersionError(f"{entity_name} version {version} is already registered")

        reasons: List[str] = []
        if existing:
            previous = max(existing)
            if version < previous:
                reasons.append(f"versions must increase; latest registered is {previous}")
            else:
                reasons.extend(p.message for p in compare_descriptors(existing[previous], descriptor))
        if reasons:
            raise InvalidEvolutionError(entity_name, version, reasons)

        self._schemas.setdefault(entity_name, {})[version] = descriptor
        logger.debug("Registered %s schema version %d (%d fields)", entity_name, version, len(descriptor.fields))
        return descriptor

    def lookup(self, entity_name: str, version: int) -> RecordDescriptor:
        try:
            return self._schemas[entity_name][version]
        except KeyError:
            raise UnknownSchemaError(f"No schema registered for {entity_name} version {version}") from None

    def latest(self, entity_name: str) -> RecordDescriptor:
        return self.lookup(entity_name, self.latest_version(entity_name))

    def latest_version(self, entity_name: str) -> int:
        versions = self._schemas.get(entity_name)
        if not versions:
            raise UnknownEntityError(f"No schema registered for entity '{entity_name}'")
        return max(versions)

    def versions(self, entity_name: str) -> List[int]:
        return sorted(self._schemas.get(entity_name, {}))

    def entity_names(self) -> List[str]:
        return [name for name in ENTITY_NAMES if name in self._schemas]

    def __contains__(self, key: Tuple[str, int]) -> bool:
        entity_name, version = key
        return version in self._schemas.get(entity_name, {})

    def __len__(self) -> int:
        return sum(len(v) for v in self._schemas.values())


# ---------------------------------------------------------------------------
# LinkML schema -> descriptors
# ---------------------------------------------------------------------------

_TIME_FORMATS: Dict[str, TimeFormat] = {
    "Timestamp": TimeFormat.DATETIME_MILLIS,
    "PartialDate": TimeFormat.PARTIAL_DATE,
}
_STRING_RANGES = {"string", "Timestamp", "PartialDate"}
_KNOWN_RANGES = _STRING_RANGES | {"integer", "InfoMap", "OntologyTerm"}


def _annotation(element: Any, tag: str) -> Any:
    """Value of annotation *tag* on a LinkML element, or None."""
    annotations = getattr(element, "annotations", None)
    if not annotations:
        return None
    if hasattr(annotations, "get"):
        ann = annotations.get(tag)
    else:
        ann = getattr(annotations, tag, None)
    if ann is None:
        return None
    return getattr(ann, "value", ann)


def _split_names(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(r).strip() for r in raw if str(r).strip()]
    return [p.strip() for p in str(raw).split(",") if p.strip()]


def _base_range(view: Any, range_name: Optional[str]) -> str:
    """Follow ``typeof`` until reaching a range the engine understands."""
    rng = range_name or "string"
    seen = set()
    while rng not in _KNOWN_RANGES and rng not in ENTITY_NAMES and rng not in seen:
        seen.add(rng)
        tdef = view.get_type(rng)
        if tdef is None or not getattr(tdef, "typeof", None):
            break
        rng = tdef.typeof
    return rng


def field_from_slot(view: Any, slot: Any, *, nullable_without_default: bool = False) -> FieldDescriptor:
    """Translate an induced LinkML slot into a :class:`FieldDescriptor`."""
    declared = slot.range or "string"
    rng = _base_range(view, declared)
    multivalued = bool(getattr(slot, "multivalued", False))
    identifier = bool(getattr(slot, "identifier", False))
    required = bool(getattr(slot, "required", False)) or identifier
    reference_target = rng if rng in ENTITY_NAMES else None

    if rng == "InfoMap":
        kind = FieldKind.INFO_MAP
    elif rng == "OntologyTerm":
        kind = FieldKind.TERM_ARRAY if multivalued else FieldKind.NULLABLE_TERM
    elif rng == "integer" and not multivalued:
        kind = FieldKind.LONG if required else FieldKind.NULLABLE_LONG
    elif rng in _STRING_RANGES or reference_target:
        if multivalued:
            kind = FieldKind.STRING_ARRAY
        elif required:
            kind = FieldKind.REFERENCE_ID if reference_target else FieldKind.STRING
        else:
            kind = FieldKind.NULLABLE_STRING
    else:
        raise RegistryError(f"Unsupported range '{declared}' for slot '{slot.name}'")

    if required or nullable_without_default:
        default = None
    else:
        default = DefaultValue(value=kind_default(kind))

    return FieldDescriptor(
        name=slot.name,
        kind=kind,
        required=required,
        default=default,
        time_format=_TIME_FORMATS.get(declared) or _TIME_FORMATS.get(rng),
        reference_target=reference_target,
        identifier=identifier,
        description=getattr(slot, "description", None),
    )


def descriptor_from_class(view: Any, class_name: str) -> RecordDescriptor:
    cdef = view.get_class(class_name)
    if cdef is None:
        raise UnknownEntityError(f"Class '{class_name}' not found in schema")
    without_default = set(_split_names(_annotation(cdef, "nullable_without_default")))
    fields = [
        field_from_slot(
            view,
            view.induced_slot(slot_name, class_name),
            nullable_without_default=slot_name in without_default,
        )
        for slot_name in view.class_slots(class_name)
    ]
    return RecordDescriptor(
        entity_name=class_name,
        fields=tuple(fields),
        description=getattr(cdef, "description", None),
    )


def registry_from_schema_view(view: Any, registry: Optional[SchemaRegistry] = None) -> SchemaRegistry:
    """Register every class carrying a ``schema_version`` annotation.

    Parameters
    ----------
    view: linkml_runtime.SchemaView
        View over a metadata schema.
    registry: SchemaRegistry, optional
        Registry to populate; a new one is created when omitted.
    """
    registry = registry if registry is not None else SchemaRegistry()
    for class_name, cdef in view.all_classes().items():
        raw_version = _annotation(cdef, "schema_version")
        if raw_version is None:
            continue
        registry.register(class_name, int(raw_version), descriptor_from_class(view, class_name))
    return registry


def register_all(registry: SchemaRegistry, entries: Iterable[Tuple[str, int, RecordDescriptor]]) -> SchemaRegistry:
    """Register several ``(entity_name, version, descriptor)`` entries in order."""
    for entity_name, version, descriptor in entries:
        registry.register(entity_name, version, descriptor)
    return registry


__all__ = [
    "SchemaRegistry",
    "field_from_slot",
    "descriptor_from_class",
    "registry_from_schema_view",
    "register_all",
]
