"""
Transition validator.

Membership only: a requested status is legal when it belongs to the valid
status set of the communication's type. There is no transition graph; any
valid status may follow any other, including "backwards" moves such as
Delivered -> ReadyForRelease, and no status is terminal.
"""

from __future__ import annotations

from typing import Callable, Union

from ..catalog.catalog import TypeCatalog
from ..errors import InvalidTransitionError

CatalogSource = Union[TypeCatalog, Callable[[], TypeCatalog]]


class TransitionValidator:
    """Decide whether a status is acceptable for a communication type.

    Args:
        catalog: A TypeCatalog, or a zero-argument callable returning the
            current snapshot (so catalog reloads are picked up without
            rebuilding the validator)
    """

    def __init__(self, catalog: CatalogSource):
        self._catalog = catalog

    @property
    def catalog(self) -> TypeCatalog:
        if isinstance(self._catalog, TypeCatalog):
            return self._catalog
        return self._catalog()

    def validate(self, type_code: str, status: str, require_active: bool = False) -> None:
        """Check ``status`` against the valid statuses of ``type_code``.

        Args:
            type_code: Communication type code
            status: Candidate status code
            require_active: Reject inactive types; set on the creation path
                only, existing communications of an inactive type may still
                change status

        Raises:
            InvalidTransitionError: If the type is unknown, inactive while
                ``require_active`` is set, or does not list ``status``
        """
        communication_type = self.catalog.get(type_code)
        if communication_type is None:
            raise InvalidTransitionError(
                type_code, status, f"Invalid communication type: {type_code}"
            )
        if require_active and not communication_type.active:
            raise InvalidTransitionError(
                type_code, status, f"Inactive communication type: {type_code}"
            )
        if not communication_type.allows(status):
            raise InvalidTransitionError(
                type_code,
                status,
                f"Status '{status}' is not valid for communication type '{type_code}'",
            )

    def is_valid(self, type_code: str, status: str, require_active: bool = False) -> bool:
        """Boolean form of ``validate``."""
        try:
            self.validate(type_code, status, require_active=require_active)
        except InvalidTransitionError:
            return False
        return True
