"""
Catalog repository: administrative persistence for communication types.

Reads and writes the ``communication_types`` and
``communication_type_statuses`` tables. Runtime validation never queries these
tables directly; it uses the TypeCatalog snapshot produced by ``snapshot()``.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..db.models import CommunicationTypeModel, CommunicationTypeStatusModel
from ..errors import ConflictError, NotFoundError, StoreFailureError
from .catalog import CommunicationType, TypeCatalog
from .statuses import DEFAULT_TYPE_DEFINITIONS

logger = structlog.get_logger(__name__)


def _to_domain(model: CommunicationTypeModel) -> CommunicationType:
    return CommunicationType(
        code=model.type_code,
        display_name=model.display_name,
        description=model.description,
        active=bool(model.is_active),
        statuses=tuple(s.status_code for s in model.statuses),
    )


def _dedupe(statuses: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for status in statuses:
        if status not in seen:
            seen.append(status)
    return seen


class CatalogRepository:
    """Service for managing communication types in the database."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(CommunicationTypeModel).options(
            selectinload(CommunicationTypeModel.statuses)
        )

    def _get_model(self, type_code: str) -> CommunicationTypeModel:
        model = self._query().filter(CommunicationTypeModel.type_code == type_code).first()
        if model is None:
            raise NotFoundError("CommunicationType", type_code)
        return model

    def _commit(self, operation: str, type_code: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("catalog_write_failed", operation=operation, type_code=type_code, error=str(e))
            raise StoreFailureError(f"Failed to {operation} communication type '{type_code}'") from e

    def list_types(self, active_only: bool = False) -> List[CommunicationType]:
        """List types ordered by display name."""
        query = self._query()
        if active_only:
            query = query.filter(CommunicationTypeModel.is_active.is_(True))
        return [_to_domain(m) for m in query.order_by(CommunicationTypeModel.display_name).all()]

    def get_type(self, type_code: str) -> CommunicationType:
        """Get a type with its statuses."""
        return _to_domain(self._get_model(type_code))

    def exists(self, type_code: str) -> bool:
        """Check whether a type code is taken."""
        return (
            self.db.query(CommunicationTypeModel.type_code)
            .filter(CommunicationTypeModel.type_code == type_code)
            .first()
            is not None
        )

    def valid_statuses(self, type_code: str) -> Tuple[str, ...]:
        """Ordered valid statuses for a type."""
        return self.get_type(type_code).statuses

    def create_type(
        self,
        type_code: str,
        display_name: str,
        description: Optional[str] = None,
        is_active: bool = True,
        statuses: Sequence[str] = (),
    ) -> CommunicationType:
        """Create a new communication type.

        Raises:
            ConflictError: If the type code already exists
        """
        if self.exists(type_code):
            raise ConflictError(f"Communication type '{type_code}' already exists")

        model = CommunicationTypeModel(
            type_code=type_code,
            display_name=display_name,
            description=description,
            is_active=is_active,
        )
        model.statuses = self._status_rows(type_code, display_name, statuses)
        self.db.add(model)
        self._commit("create", type_code)
        logger.info("communication_type_created", type_code=type_code, statuses=len(model.statuses))
        return self.get_type(type_code)

    def update_type(
        self,
        type_code: str,
        display_name: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> CommunicationType:
        """Update display attributes and the active flag of a type."""
        model = self._get_model(type_code)
        model.display_name = display_name
        model.description = description
        model.is_active = is_active
        self._commit("update", type_code)
        logger.info("communication_type_updated", type_code=type_code, is_active=is_active)
        return self.get_type(type_code)

    def replace_statuses(self, type_code: str, statuses: Sequence[str]) -> CommunicationType:
        """Replace the ordered status list of a type.

        Existing communications are not re-validated against the new list.
        """
        model = self._get_model(type_code)
        model.statuses.clear()
        # Flush the deletes before inserting rows that reuse the composite keys
        self.db.flush()
        model.statuses.extend(self._status_rows(type_code, model.display_name, statuses))
        self._commit("update statuses of", type_code)
        logger.info("communication_type_statuses_replaced", type_code=type_code, statuses=len(model.statuses))
        return self.get_type(type_code)

    def delete_type(self, type_code: str) -> None:
        """Delete a type and its status rows."""
        model = self._get_model(type_code)
        self.db.delete(model)
        self._commit("delete", type_code)
        logger.info("communication_type_deleted", type_code=type_code)

    def snapshot(self) -> TypeCatalog:
        """Build an immutable catalog from the current table contents."""
        return TypeCatalog(self.list_types())

    def seed(
        self,
        definitions: Iterable[Tuple[str, str, str, Tuple[str, ...]]] = DEFAULT_TYPE_DEFINITIONS,
    ) -> int:
        """Insert missing types from ``definitions``. Existing types are left alone.

        Returns:
            Number of types inserted
        """
        inserted = 0
        for type_code, display_name, description, statuses in definitions:
            if self.exists(type_code):
                continue
            model = CommunicationTypeModel(
                type_code=type_code,
                display_name=display_name,
                description=description,
                is_active=True,
            )
            model.statuses = self._status_rows(type_code, display_name, statuses)
            self.db.add(model)
            inserted += 1

        if inserted:
            self._commit("seed", "*")
            logger.info("catalog_seeded", inserted=inserted)
        return inserted

    @staticmethod
    def _status_rows(
        type_code: str, display_name: str, statuses: Iterable[str]
    ) -> List[CommunicationTypeStatusModel]:
        return [
            CommunicationTypeStatusModel(
                type_code=type_code,
                status_code=status,
                display_order=position,
                description=f"{display_name} {status} status",
            )
            for position, status in enumerate(_dedupe(statuses), start=1)
        ]
