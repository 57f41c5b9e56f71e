"""GA4GH metadata record validation and evolution engine.

Loads the bundled LinkML metadata schema into a :class:`~ga4gh_metadata.registry.SchemaRegistry`
of record descriptors, then validates records, checks cross-record references and
migrates records between schema versions. See ``schemas/`` for the entity definitions.
"""
from __future__ import annotations

from importlib import resources as _resources
from pathlib import Path as _Path
from functools import lru_cache as _lru_cache
import logging as _logging

from .descriptors import ENTITY_NAMES, FieldDescriptor, FieldKind, RecordDescriptor
from .engine import MetadataEngine
from .exceptions import (
    DanglingReferenceError,
    DuplicateVersionError,
    EvolutionError,
    InvalidEvolutionError,
    MetadataSchemaError,
    RecordValidationError,
    TermError,
    UnknownEntityError,
    UnknownSchemaError,
)
from .references import InMemoryEntityStore
from .registry import SchemaRegistry
from .validator import ValidationContext

__all__ = [
    "__version__",
    "DEFAULT_SCHEMA",
    "ENTITY_NAMES",
    "get_schema_path",
    "load_schema_text",
    "load_registry",
    "default_registry",
    "FieldDescriptor",
    "FieldKind",
    "RecordDescriptor",
    "SchemaRegistry",
    "MetadataEngine",
    "ValidationContext",
    "InMemoryEntityStore",
    "MetadataSchemaError",
    "UnknownEntityError",
    "UnknownSchemaError",
    "DuplicateVersionError",
    "InvalidEvolutionError",
    "RecordValidationError",
    "DanglingReferenceError",
    "EvolutionError",
    "TermError",
]

__version__ = "0.1.0"

DEFAULT_SCHEMA = "metadata_schema.yaml"

_logger = _logging.getLogger(__name__)


def get_schema_path(name: str = DEFAULT_SCHEMA) -> str:
    """Return absolute path to a schema file stored under the package's schemas directory.

    Parameters
    ----------
    name: str
        Schema filename relative to the installed package schema directory.
    """
    with _resources.as_file(_resources.files(__package__) / "schemas" / name) as p:
        return str(p.resolve())


def load_schema_text(name: str = DEFAULT_SCHEMA) -> str:
    path = get_schema_path(name)
    return _Path(path).read_text(encoding="utf-8")


def load_registry(name: str = DEFAULT_SCHEMA) -> SchemaRegistry:
    """Build a fresh registry from a bundled LinkML schema.

    Every class annotated with ``schema_version`` is translated slot by slot:

      * ``required``/``identifier`` slots -> required fields
      * multivalued slots -> arrays defaulting to ``[]``
      * ``InfoMap`` range -> ``map<array<string>>`` defaulting to ``{}``
      * ``OntologyTerm`` range -> ontology-term fields
      * entity-class ranges -> reference fields
      * ``Timestamp``/``PartialDate`` ranges -> timestamp-checked strings

    Classes may list nullable fields that have no default in a
    ``nullable_without_default`` annotation.
    """
    from linkml_runtime import SchemaView  # type: ignore

    from .registry import registry_from_schema_view

    schema_path = get_schema_path(name)
    sv = SchemaView(schema_path)  # ensure imports are resolved via file path
    registry = registry_from_schema_view(sv)
    _logger.info("Loaded %d record schema(s) from %s", len(registry), schema_path)
    return registry


@_lru_cache(maxsize=1)
def default_registry() -> SchemaRegistry:
    """Process-wide registry built from :data:`DEFAULT_SCHEMA` on first use."""
    return load_registry(DEFAULT_SCHEMA)
