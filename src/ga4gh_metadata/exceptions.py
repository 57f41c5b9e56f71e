"""Exceptions raised by the GA4GH metadata engine."""
from __future__ import annotations

from typing import Any, List, Optional, Sequence


class MetadataSchemaError(Exception):
    """Base exception for metadata schema related errors."""
    pass


class RegistryError(MetadataSchemaError):
    """Exception raised for schema registry misconfiguration."""
    pass


class UnknownEntityError(RegistryError, LookupError):
    """Exception raised when an entity name has no registered schema."""
    pass


class UnknownSchemaError(RegistryError, LookupError):
    """Exception raised when an (entity, version) pair is not registered."""
    pass


class DuplicateVersionError(RegistryError):
    """Exception raised when an (entity, version) pair is registered twice."""
    pass


class InvalidEvolutionError(RegistryError):
    """Exception raised when a new schema version cannot read its predecessor's records."""

    def __init__(self, entity_name: str, version: int, reasons: Sequence[str]):
        self.entity_name = entity_name
        self.version = version
        self.reasons: List[str] = list(reasons)
        super().__init__(
            f"Invalid evolution of {entity_name} to version {version}: " + "; ".join(self.reasons)
        )


class TermError(MetadataSchemaError):
    """Exception raised by an ontology-term validator for a malformed term."""
    pass


def _summarize(items: Sequence[Any], limit: int = 5) -> str:
    shown = "; ".join(getattr(i, "message", str(i)) for i in items[:limit])
    if len(items) > limit:
        shown += f"; ... ({len(items) - limit} more)"
    return shown


class RecordValidationError(MetadataSchemaError):
    """Exception carrying every violation found while validating one record."""

    def __init__(self, entity_name: str, violations: Sequence[Any]):
        self.entity_name = entity_name
        self.violations = list(violations)
        super().__init__(
            f"{entity_name} record failed validation with {len(self.violations)} "
            f"violation(s): {_summarize(self.violations)}"
        )


class DanglingReferenceError(MetadataSchemaError):
    """Exception carrying every unresolved reference of one record."""

    def __init__(self, entity_name: str, dangling: Sequence[Any]):
        self.entity_name = entity_name
        self.dangling = list(dangling)
        super().__init__(
            f"{entity_name} record has {len(self.dangling)} dangling reference(s): "
            f"{_summarize(self.dangling)}"
        )


class EvolutionError(MetadataSchemaError):
    """Exception carrying every incompatibility found while migrating one record."""

    def __init__(
        self,
        entity_name: str,
        from_version: Optional[int],
        to_version: Optional[int],
        violations: Sequence[Any],
    ):
        self.entity_name = entity_name
        self.from_version = from_version
        self.to_version = to_version
        self.violations = list(violations)
        span = ""
        if from_version is not None and to_version is not None:
            span = f" from version {from_version} to {to_version}"
        super().__init__(f"Cannot migrate {entity_name} record{span}: {_summarize(self.violations)}")
