"""
Tests for the type catalog snapshot and the catalog repository.
"""

import pytest

from communication_lifecycle.catalog import (
    CatalogRepository,
    CommunicationStatus,
    CommunicationType,
    TypeCatalog,
    describe_status,
    known_statuses,
)
from communication_lifecycle.db.models import CommunicationTypeStatusModel
from communication_lifecycle.errors import ConflictError, NotFoundError


class TestTypeCatalog:
    """Tests for the immutable TypeCatalog."""

    def test_default_catalog_types(self, catalog):
        """Test that the default catalog holds the six standard types."""
        assert len(catalog) == 6
        assert {t.code for t in catalog} == {
            "EOB",
            "EOP",
            "ID_CARD",
            "WELCOME_PACKET",
            "CLAIM_STATEMENT",
            "PROVIDER_STATEMENT",
        }

    def test_valid_statuses_are_ordered(self, catalog):
        """Test that valid statuses keep their configured order."""
        statuses = catalog.valid_statuses("ID_CARD")
        assert statuses[0] == CommunicationStatus.READY_FOR_RELEASE
        assert statuses[-1] == CommunicationStatus.ARCHIVED
        assert CommunicationStatus.EXPIRED in statuses
        assert CommunicationStatus.INSERTED not in statuses

    def test_basic_types_have_short_lifecycle(self, catalog):
        """Test the eight-status lifecycle of packets and statements."""
        assert catalog.valid_statuses("WELCOME_PACKET") == (
            "ReadyForRelease",
            "Released",
            "Printed",
            "Shipped",
            "Delivered",
            "Failed",
            "Cancelled",
            "Archived",
        )

    def test_lookup_missing_type(self, catalog):
        """Test that lookup raises NotFoundError for unknown codes."""
        assert catalog.get("NOPE") is None
        assert "NOPE" not in catalog

        with pytest.raises(NotFoundError):
            catalog.lookup("NOPE")
        with pytest.raises(NotFoundError):
            catalog.valid_statuses("NOPE")

    def test_types_sorted_by_display_name(self):
        """Test ordering and active filtering of types()."""
        catalog = TypeCatalog(
            [
                CommunicationType(code="B", display_name="Bravo"),
                CommunicationType(code="A", display_name="Alpha", active=False),
                CommunicationType(code="C", display_name="Charlie"),
            ]
        )

        assert [t.code for t in catalog.types()] == ["A", "B", "C"]
        assert [t.code for t in catalog.types(active_only=True)] == ["B", "C"]

    def test_catalog_is_read_only(self, catalog):
        """Test that types cannot be changed in place."""
        communication_type = catalog.lookup("EOB")
        with pytest.raises(Exception):
            communication_type.active = False
        with pytest.raises(TypeError):
            catalog._types["NEW"] = communication_type


class TestStatusRegistry:
    """Tests for well-known status descriptions."""

    def test_known_statuses(self):
        """Test that every well-known status has a description."""
        codes = [code for code, _ in known_statuses()]
        assert len(codes) == 14
        assert codes[0] == "ReadyForRelease"
        assert describe_status("Printed") == "Communication has been printed"

    def test_unknown_status_describes_itself(self):
        """Test the fallback for open status codes."""
        assert describe_status("LabelPrinted") == "LabelPrinted"


class TestCatalogRepository:
    """Tests for CatalogRepository."""

    def test_seed_is_idempotent(self, db_session):
        """Test that seeding twice inserts the defaults once."""
        repository = CatalogRepository(db_session)

        assert repository.seed() == 6
        assert repository.seed() == 0
        assert len(repository.list_types()) == 6

    def test_snapshot_matches_default_catalog(self, seeded_session, catalog):
        """Test that a seeded database yields the default catalog."""
        snapshot = CatalogRepository(seeded_session).snapshot()

        assert isinstance(snapshot, TypeCatalog)
        for communication_type in catalog:
            assert snapshot.valid_statuses(communication_type.code) == communication_type.statuses

    def test_create_type(self, db_session):
        """Test creating a type with statuses."""
        repository = CatalogRepository(db_session)

        created = repository.create_type(
            "FLYER",
            "Marketing Flyer",
            description="Seasonal flyers",
            statuses=["ReadyForRelease", "Printed", "Printed"],
        )

        assert created.code == "FLYER"
        assert created.active is True
        assert created.statuses == ("ReadyForRelease", "Printed")
        assert repository.exists("FLYER")

        rows = (
            db_session.query(CommunicationTypeStatusModel)
            .filter_by(type_code="FLYER")
            .order_by(CommunicationTypeStatusModel.display_order)
            .all()
        )
        assert [r.display_order for r in rows] == [1, 2]
        assert rows[1].description == "Marketing Flyer Printed status"

    def test_create_duplicate_type(self, seeded_session):
        """Test that a taken code raises ConflictError."""
        with pytest.raises(ConflictError, match="already exists"):
            CatalogRepository(seeded_session).create_type("EOB", "Duplicate")

    def test_update_type(self, seeded_session):
        """Test deactivating a type keeps its statuses."""
        repository = CatalogRepository(seeded_session)

        updated = repository.update_type("EOP", "Explanation of Payment (old)", is_active=False)

        assert updated.active is False
        assert updated.display_name == "Explanation of Payment (old)"
        assert len(updated.statuses) == 13
        assert [t.code for t in repository.list_types(active_only=True)].count("EOP") == 0

    def test_replace_statuses(self, seeded_session):
        """Test replacing the status list of a type."""
        repository = CatalogRepository(seeded_session)

        updated = repository.replace_statuses("CLAIM_STATEMENT", ["Printed", "ReadyForRelease"])

        assert updated.statuses == ("Printed", "ReadyForRelease")
        assert repository.valid_statuses("CLAIM_STATEMENT") == ("Printed", "ReadyForRelease")

    def test_delete_type_cascades_to_statuses(self, seeded_session):
        """Test that deleting a type removes its status rows."""
        repository = CatalogRepository(seeded_session)

        repository.delete_type("WELCOME_PACKET")

        assert not repository.exists("WELCOME_PACKET")
        remaining = (
            seeded_session.query(CommunicationTypeStatusModel)
            .filter_by(type_code="WELCOME_PACKET")
            .count()
        )
        assert remaining == 0

    def test_missing_type_operations(self, db_session):
        """Test NotFoundError for unknown codes."""
        repository = CatalogRepository(db_session)

        with pytest.raises(NotFoundError):
            repository.get_type("NOPE")
        with pytest.raises(NotFoundError):
            repository.update_type("NOPE", "Nope")
        with pytest.raises(NotFoundError):
            repository.delete_type("NOPE")
