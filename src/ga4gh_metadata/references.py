"""Read-only verification of cross-record identifier references.

References are weak: a reference field only names another entity's ``id``.
Resolution asks an :class:`EntityStore` whether each named id exists and reports
every miss as a :class:`~ga4gh_metadata.violations.DanglingReference`. Nothing is
created, fetched or mutated.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple, runtime_checkable

from .descriptors import RecordDescriptor
from .exceptions import DanglingReferenceError
from .violations import DanglingReference

logger = logging.getLogger(__name__)


@runtime_checkable
class EntityStore(Protocol):
    def exists(self, entity_name: str, id: str) -> bool:
        ...


class InMemoryEntityStore:
    """Set-backed :class:`EntityStore` keyed by entity name."""

    def __init__(self, ids: Optional[Mapping[str, Iterable[str]]] = None):
        self._ids: Dict[str, Set[str]] = {}
        for entity_name, values in (ids or {}).items():
            for value in values:
                self.add(entity_name, value)

    def add(self, entity_name: str, id: str) -> None:
        self._ids.setdefault(entity_name, set()).add(id)

    def add_record(self, entity_name: str, record: Mapping) -> None:
        self.add(entity_name, record["id"])

    def discard(self, entity_name: str, id: str) -> None:
        self._ids.get(entity_name, set()).discard(id)

    def exists(self, entity_name: str, id: str) -> bool:
        return id in self._ids.get(entity_name, ())

    def __len__(self) -> int:
        return sum(len(v) for v in self._ids.values())


def _referenced_ids(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v is not None]
    return [value]


def find_dangling_references(
    instance: Mapping,
    descriptor: RecordDescriptor,
    store: EntityStore,
) -> List[DanglingReference]:
    """Return every dangling reference of *instance* (empty when all resolve).

    Each distinct (field, id) pair is looked up once; null references and empty
    lists cause no lookups.
    """
    dangling: List[DanglingReference] = []
    checked: Set[Tuple[str, Any]] = set()
    for fd in descriptor.reference_fields:
        for ref in _referenced_ids(instance.get(fd.name)):
            key = (fd.name, ref)
            if key in checked:
                continue
            checked.add(key)
            if not store.exists(fd.reference_target, ref):
                dangling.append(DanglingReference(field_name=fd.name, target_entity=fd.reference_target, id=str(ref)))
    if dangling:
        logger.debug(
            "%s record %r has %d dangling reference(s)",
            descriptor.entity_name,
            instance.get("id"),
            len(dangling),
        )
    return dangling


def resolve_references(instance: Mapping, descriptor: RecordDescriptor, store: EntityStore) -> None:
    """Verify every reference of *instance* resolves.

    Raises:
        DanglingReferenceError: carrying the full list of dangling references.
    """
    dangling = find_dangling_references(instance, descriptor, store)
    if dangling:
        raise DanglingReferenceError(descriptor.entity_name, dangling)


__all__ = [
    "EntityStore",
    "InMemoryEntityStore",
    "find_dangling_references",
    "resolve_references",
]
