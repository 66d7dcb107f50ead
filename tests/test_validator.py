"""
Tests for the transition validator.

Membership only: any status listed for a type is accepted, from any other
status, and inactive types are rejected on the creation path only.
"""

import pytest

from communication_lifecycle.catalog import CommunicationType, TypeCatalog
from communication_lifecycle.catalog.statuses import DEFAULT_TYPE_DEFINITIONS
from communication_lifecycle.errors import InvalidTransitionError
from communication_lifecycle.lifecycle import TransitionValidator


@pytest.fixture
def validator(catalog) -> TransitionValidator:
    return TransitionValidator(catalog)


@pytest.fixture
def catalog_with_inactive() -> TypeCatalog:
    return TypeCatalog(
        [
            CommunicationType(
                code="LEGACY",
                display_name="Legacy Letter",
                active=False,
                statuses=("ReadyForRelease", "Printed"),
            ),
            CommunicationType(code="EMPTY", display_name="Empty", statuses=()),
        ]
    )


class TestMembership:
    """Tests for status membership checks."""

    @pytest.mark.parametrize(
        "type_code,statuses",
        [(code, statuses) for code, _, _, statuses in DEFAULT_TYPE_DEFINITIONS],
    )
    def test_every_listed_status_is_valid(self, validator, type_code, statuses):
        """Test that each configured status validates for its type."""
        for status in statuses:
            validator.validate(type_code, status)
            assert validator.is_valid(type_code, status)

    def test_status_not_listed_for_type(self, validator):
        """Test that Expired is only valid for ID cards."""
        assert validator.is_valid("ID_CARD", "Expired")

        with pytest.raises(InvalidTransitionError) as exc_info:
            validator.validate("EOB", "Expired")

        assert exc_info.value.type_code == "EOB"
        assert exc_info.value.status == "Expired"
        assert "not valid for communication type 'EOB'" in exc_info.value.message

    def test_unknown_type(self, validator):
        """Test that an unknown type is an invalid transition."""
        with pytest.raises(InvalidTransitionError, match="Invalid communication type: NOPE"):
            validator.validate("NOPE", "Printed")

    def test_status_codes_are_case_sensitive(self, validator):
        """Test that status codes must match exactly."""
        assert not validator.is_valid("ID_CARD", "printed")

    def test_type_without_statuses_accepts_nothing(self, catalog_with_inactive):
        """Test that a type with an empty status list rejects every status."""
        validator = TransitionValidator(catalog_with_inactive)
        assert not validator.is_valid("EMPTY", "ReadyForRelease")


class TestActiveFlag:
    """Tests for inactive type handling."""

    def test_inactive_type_rejected_when_required_active(self, catalog_with_inactive):
        """Test that creation-path validation rejects inactive types."""
        validator = TransitionValidator(catalog_with_inactive)

        with pytest.raises(InvalidTransitionError, match="Inactive communication type: LEGACY"):
            validator.validate("LEGACY", "ReadyForRelease", require_active=True)

    def test_inactive_type_allowed_for_updates(self, catalog_with_inactive):
        """Test that existing communications of an inactive type can still change status."""
        validator = TransitionValidator(catalog_with_inactive)

        validator.validate("LEGACY", "Printed")
        assert validator.is_valid("LEGACY", "Printed", require_active=False)


class TestCatalogSource:
    """Tests for validators reading a swappable catalog."""

    def test_callable_source_sees_new_snapshot(self, catalog):
        """Test that a callable source picks up a swapped catalog."""
        current = {"catalog": catalog}
        validator = TransitionValidator(lambda: current["catalog"])

        assert not validator.is_valid("FLYER", "Printed")

        current["catalog"] = TypeCatalog(
            list(catalog) + [CommunicationType(code="FLYER", display_name="Flyer", statuses=("Printed",))]
        )

        assert validator.is_valid("FLYER", "Printed")
        assert validator.catalog is current["catalog"]
