"""Utilities for exchanging accepted metadata records as PyArrow Tables.

Design goals:
- Arrow schema derived from the record descriptor, not from the data.
- Every table is tagged with the entity name, the writer's schema version and a
  layout fingerprint, so a reader can migrate rows from the writer's version.
- Ontology terms stay opaque: they travel as JSON strings.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import pyarrow as pa

from .descriptors import FieldDescriptor, FieldKind, RecordDescriptor

META_ENTITY = b"ga4gh_entity"
META_SCHEMA_VERSION = b"ga4gh_schema_version"
META_FINGERPRINT = b"schema_fingerprint"

# Descriptor kind -> Arrow type mapping
KIND_TYPE_MAP: Dict[FieldKind, pa.DataType] = {
    FieldKind.STRING: pa.string(),
    FieldKind.REFERENCE_ID: pa.string(),
    FieldKind.NULLABLE_STRING: pa.string(),
    FieldKind.LONG: pa.int64(),
    FieldKind.NULLABLE_LONG: pa.int64(),
    FieldKind.STRING_ARRAY: pa.list_(pa.string()),
    FieldKind.TERM_ARRAY: pa.list_(pa.string()),
    FieldKind.NULLABLE_TERM: pa.string(),
    FieldKind.INFO_MAP: pa.map_(pa.string(), pa.list_(pa.string())),
}


def normalize_value(v: Any) -> Any:
    """Recursively normalize a value so Arrow can ingest it.

    - Enum -> underlying value (typically str)
    - Pydantic model -> dict of normalized fields
    - list/dict -> element-wise normalization
    - Other primitives unchanged
    """
    if isinstance(v, Enum):
        return v.value
    if hasattr(v, "model_dump") and callable(getattr(v, "model_dump")):
        return {k: normalize_value(x) for k, x in v.model_dump(mode="python").items()}
    if isinstance(v, (list, tuple)):
        return [normalize_value(x) for x in v]
    if isinstance(v, Mapping):
        return {k: normalize_value(x) for k, x in v.items()}
    return v


def _encode_term(term: Any) -> Any:
    if term is None:
        return None
    return json.dumps(normalize_value(term), sort_keys=True)


def _decode_term(raw: Any) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


def _to_column_value(fd: FieldDescriptor, value: Any) -> Any:
    if fd.kind == FieldKind.NULLABLE_TERM:
        return _encode_term(value)
    if fd.kind == FieldKind.TERM_ARRAY:
        return [_encode_term(t) for t in (value or [])]
    if fd.kind == FieldKind.INFO_MAP:
        # map columns ingest (key, value) pairs
        return [(k, list(v)) for k, v in (value or {}).items()]
    return normalize_value(value)


def _from_column_value(fd: FieldDescriptor, value: Any) -> Any:
    if fd.kind == FieldKind.NULLABLE_TERM:
        return _decode_term(value)
    if fd.kind == FieldKind.TERM_ARRAY:
        return [_decode_term(t) for t in (value or [])]
    if fd.kind == FieldKind.INFO_MAP:
        return {k: list(v or []) for k, v in (value or [])}
    if fd.kind.is_collection:
        return list(value or [])
    return value


def _schema_fingerprint(schema: pa.Schema) -> str:
    """Create a stable fingerprint for an Arrow schema (field names + types)."""
    import hashlib

    parts = [f"{f.name}:{f.type}" for f in schema]
    digest = hashlib.sha256("|".join(parts).encode()).hexdigest()
    return f"sha256:{digest}"


def build_arrow_schema(descriptor: RecordDescriptor, *, schema_version: int) -> pa.Schema:
    """Build the Arrow schema of *descriptor*, tagged with entity name and version."""
    fields: List[pa.Field] = [
        pa.field(fd.name, KIND_TYPE_MAP[fd.kind], nullable=not fd.required or fd.kind.is_nullable)
        for fd in descriptor.fields
    ]
    schema = pa.schema(fields)
    return schema.with_metadata({
        META_ENTITY: descriptor.entity_name.encode(),
        META_SCHEMA_VERSION: str(schema_version).encode(),
        META_FINGERPRINT: _schema_fingerprint(schema).encode(),
    })


def records_to_table(
    records: Iterable[Mapping[str, Any]],
    descriptor: RecordDescriptor,
    *,
    schema_version: int,
) -> pa.Table:
    """Convert normalized records to a PyArrow Table.

    Column-oriented assembly in a single pass. Records are expected to have
    been accepted by the validator under *descriptor*.
    """
    schema = build_arrow_schema(descriptor, schema_version=schema_version)
    buffers: Dict[str, List[Any]] = {fd.name: [] for fd in descriptor.fields}
    for record in records:
        for fd in descriptor.fields:
            buffers[fd.name].append(_to_column_value(fd, record.get(fd.name, fd.fill_value())))
    arrays = [pa.array(buffers[f.name], type=f.type) for f in schema]
    return pa.Table.from_arrays(arrays, schema=schema)


def read_schema_metadata(table: pa.Table) -> Tuple[str, int]:
    """Return the ``(entity_name, schema_version)`` a table was written under."""
    meta = table.schema.metadata or {}
    try:
        entity_name = meta[META_ENTITY].decode()
        version = int(meta[META_SCHEMA_VERSION].decode())
    except KeyError as e:
        raise ValueError(f"Table carries no metadata record schema tag: missing {e.args[0]!r}") from None
    return entity_name, version


def table_to_records(table: pa.Table, descriptor: RecordDescriptor) -> List[Dict[str, Any]]:
    """Convert a table written under *descriptor* back to record mappings.

    Only columns the descriptor declares are read; the result is in the writer's
    shape and can be passed to the evolution resolver.
    """
    names = set(table.schema.names)
    fds = [fd for fd in descriptor.fields if fd.name in names]
    rows = table.select([fd.name for fd in fds]).to_pylist()
    return [{fd.name: _from_column_value(fd, row[fd.name]) for fd in fds} for row in rows]


__all__ = [
    "KIND_TYPE_MAP",
    "normalize_value",
    "build_arrow_schema",
    "records_to_table",
    "read_schema_metadata",
    "table_to_records",
]
