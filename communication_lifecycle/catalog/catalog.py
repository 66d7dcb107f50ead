"""
Type Catalog: the immutable lookup of communication types and their statuses.

A TypeCatalog is a snapshot. It is built once (from the database or from the
default definitions) and shared across threads without locking. Administrative
changes go through CatalogRepository, which hands back a fresh snapshot for the
process to swap in.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..errors import NotFoundError
from .statuses import DEFAULT_TYPE_DEFINITIONS


class CommunicationType(BaseModel):
    """A communication type and its ordered list of valid status codes."""

    model_config = ConfigDict(frozen=True)

    code: str
    display_name: str
    description: Optional[str] = None
    active: bool = True
    statuses: Tuple[str, ...] = Field(default_factory=tuple)

    def allows(self, status: str) -> bool:
        """Return True when ``status`` is one of this type's valid statuses."""
        return status in self.statuses


class TypeCatalog:
    """Read-only mapping from type code to CommunicationType."""

    def __init__(self, types: Iterable[CommunicationType] = ()):
        self._types = MappingProxyType({t.code: t for t in types})

    @classmethod
    def default(cls) -> "TypeCatalog":
        """Catalog built from the default type definitions."""
        return cls(
            CommunicationType(
                code=code,
                display_name=display_name,
                description=description,
                statuses=statuses,
            )
            for code, display_name, description, statuses in DEFAULT_TYPE_DEFINITIONS
        )

    def get(self, type_code: str) -> Optional[CommunicationType]:
        """Get a type by code, or None."""
        return self._types.get(type_code)

    def lookup(self, type_code: str) -> CommunicationType:
        """Get a type by code.

        Raises:
            NotFoundError: If the type is not in the catalog
        """
        communication_type = self._types.get(type_code)
        if communication_type is None:
            raise NotFoundError("CommunicationType", type_code)
        return communication_type

    def valid_statuses(self, type_code: str) -> Tuple[str, ...]:
        """Ordered valid status codes for a type.

        Raises:
            NotFoundError: If the type is not in the catalog
        """
        return self.lookup(type_code).statuses

    def types(self, active_only: bool = False) -> List[CommunicationType]:
        """All types ordered by display name."""
        selected = [t for t in self._types.values() if t.active or not active_only]
        return sorted(selected, key=lambda t: t.display_name)

    def __contains__(self, type_code: object) -> bool:
        return type_code in self._types

    def __iter__(self) -> Iterator[CommunicationType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def __repr__(self) -> str:
        return f"TypeCatalog(types={sorted(self._types)})"
