"""
HTTP routes for communications, communication types and the event simulator.

All routers are mounted under /api. Endpoints are plain functions so blocking
broker I/O runs in FastAPI's threadpool. Domain errors propagate to the
exception handlers registered in ``api.py``.
"""

import math
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ..catalog.catalog import CommunicationType, TypeCatalog
from ..catalog.repository import CatalogRepository
from ..catalog.statuses import known_statuses
from ..db.base import get_db
from ..messaging.publisher import EventPublisher
from .engine import LifecycleEngine
from .events import EventTypes
from .models import Communication
from .schemas import (
    AvailableEventsResponse,
    AvailableStatusesResponse,
    CommunicationListResponse,
    CommunicationSummary,
    CommunicationTypeResponse,
    CommunicationWithHistory,
    CreateCommunicationRequest,
    CreateCommunicationTypeRequest,
    ReplaceStatusesRequest,
    SimulateEventRequest,
    SimulateEventResponse,
    StatusInfo,
    UpdateCommunicationTypeRequest,
    UpdateStatusRequest,
)
from .store import SqlAlchemyLifecycleStore
from .validator import TransitionValidator

logger = structlog.get_logger(__name__)

communications_router = APIRouter(prefix="/communications", tags=["communications"])
types_router = APIRouter(prefix="/communication-types", tags=["communication-types"])
simulator_router = APIRouter(prefix="/event-simulator", tags=["event-simulator"])


# =============================================================================
# Dependencies
# =============================================================================


def get_catalog(request: Request, db: Session = Depends(get_db)) -> TypeCatalog:
    """Current catalog snapshot, loaded from the database on first use."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        catalog = CatalogRepository(db).snapshot()
        request.app.state.catalog = catalog
    return catalog


def get_publisher(request: Request) -> EventPublisher:
    return request.app.state.publisher


def get_store(db: Session = Depends(get_db)) -> SqlAlchemyLifecycleStore:
    return SqlAlchemyLifecycleStore(db)


def get_lifecycle_engine(
    store: SqlAlchemyLifecycleStore = Depends(get_store),
    catalog: TypeCatalog = Depends(get_catalog),
    publisher: EventPublisher = Depends(get_publisher),
) -> LifecycleEngine:
    return LifecycleEngine(store, TransitionValidator(catalog), publisher)


def _refresh_catalog(request: Request, repository: CatalogRepository) -> None:
    request.app.state.catalog = repository.snapshot()


def _type_response(communication_type: CommunicationType) -> CommunicationTypeResponse:
    return CommunicationTypeResponse(
        type_code=communication_type.code,
        display_name=communication_type.display_name,
        description=communication_type.description,
        is_active=communication_type.active,
        valid_statuses=list(communication_type.statuses),
    )


# =============================================================================
# Communication Endpoints
# =============================================================================


@communications_router.get("", response_model=CommunicationListResponse)
def list_communications(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=500),
    type_code: Optional[str] = None,
    status: Optional[str] = None,
    store: SqlAlchemyLifecycleStore = Depends(get_store),
) -> CommunicationListResponse:
    """List communications, most recently updated first, optionally filtered."""
    if type_code and status:
        matches = store.list_by_type_and_status(type_code, status)
    elif type_code:
        matches = store.list_by_type(type_code)
    elif status:
        matches = store.list_by_status(status)
    else:
        matches = None

    if matches is None:
        communications = store.list_paged(page, page_size)
        total_count = store.count()
    else:
        start = (page - 1) * page_size
        communications = matches[start:start + page_size]
        total_count = len(matches)

    return CommunicationListResponse(
        communications=communications,
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=math.ceil(total_count / page_size),
    )


@communications_router.get("/{communication_id}", response_model=Communication)
def get_communication(
    communication_id: int,
    store: SqlAlchemyLifecycleStore = Depends(get_store),
) -> Communication:
    """Get a communication by ID."""
    return store.get_by_id(communication_id)


@communications_router.get("/{communication_id}/with-history", response_model=CommunicationWithHistory)
def get_communication_with_history(
    communication_id: int,
    store: SqlAlchemyLifecycleStore = Depends(get_store),
) -> CommunicationWithHistory:
    """Get a communication and its status history, most recent first."""
    communication, history = store.get_with_history(communication_id)
    return CommunicationWithHistory(**communication.model_dump(), status_history=history)


@communications_router.post("", response_model=Communication, status_code=201)
def create_communication(
    request: CreateCommunicationRequest,
    response: Response,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Communication:
    """Create a communication and publish CommunicationCreated."""
    communication = engine.create_communication(
        title=request.title,
        type_code=request.type_code,
        initial_status=request.current_status,
        description=request.description,
        source_file_url=request.source_file_url,
    )
    response.headers["Location"] = f"/api/communications/{communication.id}"
    return communication


@communications_router.put("/{communication_id}/status", response_model=Communication)
def update_communication_status(
    communication_id: int,
    request: UpdateStatusRequest,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> Communication:
    """Change the status of a communication and publish the change."""
    return engine.change_status(
        communication_id,
        request.new_status,
        note=request.notes,
        event_type=request.event_type,
    )


@communications_router.delete("/{communication_id}", status_code=204)
def delete_communication(
    communication_id: int,
    store: SqlAlchemyLifecycleStore = Depends(get_store),
) -> Response:
    """Delete a communication and its history."""
    store.delete(communication_id)
    logger.info("communication_deleted", communication_id=communication_id)
    return Response(status_code=204)


# =============================================================================
# Communication Type Endpoints
# =============================================================================


@types_router.get("", response_model=List[CommunicationTypeResponse])
def list_communication_types(
    active_only: bool = False,
    db: Session = Depends(get_db),
) -> List[CommunicationTypeResponse]:
    """List communication types ordered by display name."""
    return [_type_response(t) for t in CatalogRepository(db).list_types(active_only=active_only)]


@types_router.get("/available-statuses", response_model=AvailableStatusesResponse)
def get_available_statuses() -> AvailableStatusesResponse:
    """All well-known status codes with descriptions."""
    return AvailableStatusesResponse(
        statuses=[StatusInfo(code=code, description=description) for code, description in known_statuses()]
    )


@types_router.get("/{type_code}", response_model=CommunicationTypeResponse)
def get_communication_type(type_code: str, db: Session = Depends(get_db)) -> CommunicationTypeResponse:
    """Get a communication type with its valid statuses."""
    return _type_response(CatalogRepository(db).get_type(type_code))


@types_router.get("/{type_code}/statuses", response_model=List[str])
def get_valid_statuses(type_code: str, db: Session = Depends(get_db)) -> List[str]:
    """Ordered valid status codes of a type."""
    return list(CatalogRepository(db).valid_statuses(type_code))


@types_router.post("", response_model=CommunicationTypeResponse, status_code=201)
def create_communication_type(
    request: CreateCommunicationTypeRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> CommunicationTypeResponse:
    """Create a communication type. 409 when the code is taken."""
    repository = CatalogRepository(db)
    created = repository.create_type(
        request.type_code,
        request.display_name,
        description=request.description,
        is_active=request.is_active,
        statuses=request.statuses,
    )
    _refresh_catalog(http_request, repository)
    return _type_response(created)


@types_router.put("/{type_code}", response_model=CommunicationTypeResponse)
def update_communication_type(
    type_code: str,
    request: UpdateCommunicationTypeRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> CommunicationTypeResponse:
    """Update display attributes and the active flag of a type."""
    repository = CatalogRepository(db)
    updated = repository.update_type(
        type_code,
        request.display_name,
        description=request.description,
        is_active=request.is_active,
    )
    _refresh_catalog(http_request, repository)
    return _type_response(updated)


@types_router.put("/{type_code}/statuses", response_model=CommunicationTypeResponse)
def replace_valid_statuses(
    type_code: str,
    request: ReplaceStatusesRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> CommunicationTypeResponse:
    """Replace the ordered valid status list of a type."""
    repository = CatalogRepository(db)
    updated = repository.replace_statuses(type_code, request.statuses)
    _refresh_catalog(http_request, repository)
    return _type_response(updated)


@types_router.delete("/{type_code}", status_code=204)
def delete_communication_type(
    type_code: str,
    http_request: Request,
    db: Session = Depends(get_db),
) -> Response:
    """Delete a type and its status list."""
    repository = CatalogRepository(db)
    repository.delete_type(type_code)
    _refresh_catalog(http_request, repository)
    return Response(status_code=204)


# =============================================================================
# Event Simulator Endpoints
# =============================================================================


@simulator_router.get("/communications", response_model=List[CommunicationSummary])
def list_communications_for_simulation(
    store: SqlAlchemyLifecycleStore = Depends(get_store),
) -> List[CommunicationSummary]:
    """Communications to pick from in the simulator."""
    communications = store.list_paged(1, max(store.count(), 1))
    return [
        CommunicationSummary(
            id=c.id,
            title=c.title,
            type_code=c.type_code,
            current_status=c.current_status,
            last_updated_utc=c.last_updated_utc,
        )
        for c in communications
    ]


@simulator_router.get(
    "/communications/{communication_id}/available-events",
    response_model=AvailableEventsResponse,
)
def get_available_events(
    communication_id: int,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> AvailableEventsResponse:
    """Status changes a communication can make, with suggested event types."""
    return AvailableEventsResponse(**engine.available_events(communication_id))


@simulator_router.post("/publish-event", response_model=SimulateEventResponse)
def publish_event(
    request: SimulateEventRequest,
    engine: LifecycleEngine = Depends(get_lifecycle_engine),
) -> SimulateEventResponse:
    """Apply a simulated status change. Persists first, then publishes."""
    event = engine.simulate_event(
        request.communication_id,
        request.new_status,
        request.event_type,
        note=request.notes,
    )
    logger.info(
        "event_simulated",
        communication_id=event.communication_id,
        event_type=event.event_type,
        old_status=event.old_status,
        status=event.new_status,
    )
    return SimulateEventResponse(
        success=True,
        message=(
            f"Event '{event.event_type}' published successfully for "
            f"Communication {event.communication_id}"
        ),
        old_status=event.old_status,
        new_status=event.new_status,
        timestamp_utc=event.timestamp_utc,
    )


@simulator_router.get("/event-types", response_model=List[str])
def get_event_types() -> List[str]:
    """Common event types for the simulator."""
    return EventTypes.common()
