"""Entry point tying the registry, validator, reference resolver and evolution resolver together.

Typical lifecycle of a record produced under writer schema version ``W``::

    engine = MetadataEngine()
    record = engine.ingest(raw, "Sample", writer_version=W, store=peer_store)

``ingest`` migrates the raw record to the reader's version, validates it, and, when a
store is supplied, verifies its references. Each step may be called on its own.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from .descriptors import RecordDescriptor, describe_shape
from .evolution import migrate_record
from .references import EntityStore, find_dangling_references, resolve_references
from .registry import SchemaRegistry
from .timestamps import format_timestamp, utc_now_timestamp
from .validator import ValidationContext, collect_violations, validate_record
from .violations import DuplicateIdentifier, TypeMismatch, Violation

logger = logging.getLogger(__name__)

UPDATE_TIME_FIELD = "recordUpdateTime"


class MetadataEngine:
    """Validation, reference resolution and migration over one :class:`SchemaRegistry`.

    Parameters
    ----------
    registry: SchemaRegistry, optional
        Registry to read descriptors from; defaults to the process-wide registry
        built from the bundled schema.
    context: ValidationContext, optional
        Default collaborators for validation calls.
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None, *, context: Optional[ValidationContext] = None):
        if registry is None:
            from . import default_registry
            registry = default_registry()
        self.registry = registry
        self.context = context or ValidationContext()

    def descriptor(self, entity_name: str, schema_version: Optional[int] = None) -> RecordDescriptor:
        """Descriptor for *schema_version*, or the latest one when omitted."""
        if schema_version is None:
            return self.registry.latest(entity_name)
        return self.registry.lookup(entity_name, schema_version)

    def _version(self, entity_name: str, schema_version: Optional[int]) -> int:
        return self.registry.latest_version(entity_name) if schema_version is None else schema_version

    # -- core operations --------------------------------------------------

    def validate(
        self,
        instance: Mapping,
        entity_name: str,
        schema_version: Optional[int] = None,
        context: Optional[ValidationContext] = None,
    ) -> Dict[str, Any]:
        """Return the normalized record or raise :class:`RecordValidationError`."""
        return validate_record(instance, self.descriptor(entity_name, schema_version), context or self.context)

    def find_dangling_references(
        self,
        instance: Mapping,
        entity_name: str,
        store: EntityStore,
        schema_version: Optional[int] = None,
    ) -> List[Violation]:
        return find_dangling_references(instance, self.descriptor(entity_name, schema_version), store)

    def resolve_references(
        self,
        instance: Mapping,
        entity_name: str,
        store: EntityStore,
        schema_version: Optional[int] = None,
    ) -> None:
        """Raise :class:`DanglingReferenceError` unless every reference resolves."""
        resolve_references(instance, self.descriptor(entity_name, schema_version), store)

    def migrate(
        self,
        instance: Mapping,
        entity_name: str,
        from_version: int,
        to_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Reshape a record written under *from_version* to *to_version* (default: latest)."""
        to_version = self._version(entity_name, to_version)
        writer = self.registry.lookup(entity_name, from_version)
        reader = self.registry.lookup(entity_name, to_version)
        return migrate_record(instance, writer, reader, from_version=from_version, to_version=to_version)

    # -- pipelines ----------------------------------------------------------

    def ingest(
        self,
        instance: Mapping,
        entity_name: str,
        writer_version: int,
        *,
        reader_version: Optional[int] = None,
        store: Optional[EntityStore] = None,
        context: Optional[ValidationContext] = None,
    ) -> Dict[str, Any]:
        """Migrate, validate and (with a *store*) reference-check one record."""
        reader_version = self._version(entity_name, reader_version)
        migrated = self.migrate(instance, entity_name, writer_version, reader_version)
        normalized = self.validate(migrated, entity_name, reader_version, context)
        if store is not None:
            self.resolve_references(normalized, entity_name, store, reader_version)
        logger.debug("Accepted %s record %r (v%d -> v%d)", entity_name, normalized.get("id"), writer_version, reader_version)
        return normalized

    def validate_many(
        self,
        instances: Iterable[Mapping],
        entity_name: str,
        schema_version: Optional[int] = None,
        *,
        store: Optional[EntityStore] = None,
        context: Optional[ValidationContext] = None,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Validate a batch without stopping at the first bad record.

        Identifiers must be unique within the batch; with a *store*, references
        are checked too. A row that is not a mapping is reported as a
        ``TypeMismatch`` against the entity name.

        Returns ``(accepted, report)``. The report contains:
          errors: list of {row, id, violations}
          counts: summary numbers
        """
        version = self._version(entity_name, schema_version)
        descriptor = self.registry.lookup(entity_name, version)
        context = context or self.context
        accepted: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        first_row_by_id: Dict[Any, int] = {}
        rows = 0

        for row, instance in enumerate(instances):
            rows += 1
            if not isinstance(instance, Mapping):
                errors.append({
                    "row": row,
                    "id": None,
                    "violations": [TypeMismatch(name=entity_name, expected_kind="record", actual_shape=describe_shape(instance))],
                })
                continue
            normalized, violations = collect_violations(instance, descriptor, context)
            record_id = instance.get("id")
            if isinstance(record_id, str):
                if record_id in first_row_by_id:
                    violations.append(DuplicateIdentifier(value=record_id, first_row=first_row_by_id[record_id]))
                else:
                    first_row_by_id[record_id] = row
            if not violations and store is not None:
                violations.extend(find_dangling_references(normalized, descriptor, store))
            if violations:
                errors.append({"row": row, "id": record_id, "violations": violations})
                continue
            accepted.append(normalized)

        if errors:
            logger.warning("Rejected %d of %d %s record(s)", len(errors), rows, entity_name)
        report = {
            "entity": entity_name,
            "schema_version": version,
            "errors": errors,
            "counts": {
                "rows": rows,
                "accepted": len(accepted),
                "rejected": len(errors),
            },
        }
        return accepted, report

    def revise(
        self,
        record: Mapping,
        entity_name: str,
        changes: Mapping,
        *,
        schema_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Return a new validated record with *changes* applied and a refreshed update time.

        Accepted records are never modified in place; the revision keeps the
        original ``id``.
        """
        if "id" in changes and changes["id"] != record.get("id"):
            raise ValueError(f"Cannot change the id of {entity_name} record {record.get('id')!r}")
        descriptor = self.descriptor(entity_name, schema_version)
        updated = dict(record)
        updated.update(changes)
        if descriptor.has_field(UPDATE_TIME_FIELD):
            updated[UPDATE_TIME_FIELD] = format_timestamp(now) if now is not None else utc_now_timestamp()
        return validate_record(updated, descriptor, self.context)

    def freeze(self, record: Mapping, entity_name: str, schema_version: Optional[int] = None) -> BaseModel:
        """Validate *record* and return it as a frozen, typed Pydantic model instance."""
        from .models import build_record_model

        descriptor = self.descriptor(entity_name, schema_version)
        normalized = validate_record(record, descriptor, self.context)
        return build_record_model(descriptor).model_validate(normalized)


__all__ = ["MetadataEngine"]
