"""Default ontology-term collaborator.

The engine treats ``OntologyTerm`` values as opaque and delegates their checking
to any object implementing :class:`TermValidator`. :class:`OntologyTermValidator`
is the stock implementation: it checks the GA4GH ``OntologyTerm`` record shape
(``id`` plus optional ``term``, ``sourceName`` and ``sourceVersion``).
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from .descriptors import ConfiguredBaseModel
from .exceptions import TermError


class OntologyTerm(ConfiguredBaseModel):
    """
    A reference to a controlled-vocabulary term (e.g. NCBI Taxon, Cell Ontology).
    """
    id: str = Field(default=..., min_length=1, description="""Ontology source identifier, e.g. 'NCBITaxon:9606'.""")
    term: Optional[str] = Field(default=None, description="""Human-readable term label.""")
    sourceName: Optional[str] = Field(default=None, description="""Name of the ontology the term comes from.""")
    sourceVersion: Optional[str] = Field(default=None, description="""Version of that ontology.""")


@runtime_checkable
class TermValidator(Protocol):
    def validate(self, term: Any) -> bool:
        """Return whether *term* is acceptable; may raise :class:`TermError` instead."""
        ...


class OntologyTermValidator:
    """Shape check of ontology terms against :class:`OntologyTerm`."""

    def validate(self, term: Any) -> bool:
        if isinstance(term, OntologyTerm):
            return True
        if isinstance(term, BaseModel):
            term = term.model_dump()
        if not isinstance(term, Mapping):
            raise TermError(f"expected an OntologyTerm record, got {type(term).__name__}")
        try:
            OntologyTerm.model_validate(dict(term))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'term'}: {err['msg']}" for err in e.errors()
            )
            raise TermError(details) from e
        return True


__all__ = ["OntologyTerm", "TermValidator", "OntologyTermValidator"]
