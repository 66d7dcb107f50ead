"""Test configuration and fixtures."""

from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from communication_lifecycle.catalog import CatalogRepository, TypeCatalog
from communication_lifecycle.db import models  # noqa: F401
from communication_lifecycle.db.base import Base, create_db_engine
from communication_lifecycle.lifecycle import (
    InMemoryLifecycleStore,
    LifecycleEngine,
    LifecycleStore,
    SqlAlchemyLifecycleStore,
    TransitionValidator,
)
from communication_lifecycle.messaging import InMemoryEventPublisher


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with foreign keys enabled."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog() -> TypeCatalog:
    return TypeCatalog.default()


@pytest.fixture
def seeded_session(db_session) -> Session:
    """Session whose database holds the default communication types."""
    CatalogRepository(db_session).seed()
    return db_session


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request, db_session) -> LifecycleStore:
    """Each test using this runs against both store implementations."""
    if request.param == "memory":
        return InMemoryLifecycleStore()
    return SqlAlchemyLifecycleStore(db_session)


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def lifecycle_engine(store, catalog, publisher) -> LifecycleEngine:
    return LifecycleEngine(store, TransitionValidator(catalog), publisher)
