"""FastAPI application — entry point for the charter scheduling service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Query
from pydantic import AwareDatetime

from charter_scheduler import config
from charter_scheduler.domain.bus import EventBus
from charter_scheduler.domain.events import (
    ConflictDetected,
    FlightCreated,
    FlightDeleted,
    FlightStatusChanged,
    FlightUpdated,
)
from charter_scheduler.domain.handlers import FLIGHTS_TABLE, HandlerRegistry
from charter_scheduler.domain.models import (
    Aircraft,
    AircraftStatus,
    AircraftUtilization,
    AuditAction,
    AuditLog,
    AuditStats,
    ConflictReport,
    Flight,
    FlightCandidate,
    FlightStatus,
    FlightUpdate,
    NewAircraft,
    NewFlight,
    NewPilot,
    ParseRequest,
    ParseResponse,
    PilotProfile,
    ResourceAvailability,
    ResourceKind,
    SlotSelection,
)
from charter_scheduler.repos.memory import (
    AircraftRepository,
    AuditLogRepository,
    FlightRepository,
    PilotRepository,
    ScheduleConflictError,
    create_repositories,
)
from charter_scheduler.services.conflicts import (
    describe_availability,
    find_conflicts,
    has_conflict,
    is_resource_available,
)
from charter_scheduler.services.fleet import (
    aircraft_utilization,
    fleet_status,
    upcoming_flights_for_pilot,
)
from charter_scheduler.services.parser import parse_booking_request as _parse

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Charter Scheduling Service")

# ── Singletons (created at import time for simplicity) ────────────────
if config.SEED_DATA:
    aircraft_repo, pilot_repo, flight_repo = create_repositories()
else:
    aircraft_repo = AircraftRepository()
    pilot_repo = PilotRepository()
    flight_repo = FlightRepository()
audit_repo = AuditLogRepository()
event_bus = EventBus()

handler_registry = HandlerRegistry(
    bus=event_bus,
    flight_repo=flight_repo,
    audit_repo=audit_repo,
)

# Allowed status moves: check-in, completion, cancellation.
_TRANSITIONS = {
    "check-in": (FlightStatus.SCHEDULED, FlightStatus.IN_PROGRESS),
    "complete": (FlightStatus.IN_PROGRESS, FlightStatus.COMPLETED),
    "cancel": (FlightStatus.SCHEDULED, FlightStatus.CANCELLED),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_flight_or_404(flight_id: str) -> Flight:
    flight = flight_repo.get(flight_id)
    if flight is None:
        raise HTTPException(status_code=404, detail="Flight not found")
    return flight


def _get_aircraft_or_404(aircraft_id: str) -> Aircraft:
    aircraft = aircraft_repo.get(aircraft_id)
    if aircraft is None:
        raise HTTPException(status_code=404, detail="Aircraft not found")
    return aircraft


def _get_pilot_or_404(pilot_id: str) -> PilotProfile:
    pilot = pilot_repo.get(pilot_id)
    if pilot is None:
        raise HTTPException(status_code=404, detail="Pilot not found")
    return pilot


def _conflict_response(
    aircraft_id: str | None,
    departure_time: datetime,
    arrival_time: datetime,
    conflicts: list[Flight],
    flight_id: str | None = None,
) -> HTTPException:
    """Publish ConflictDetected and build the 409 carrying the colliding flights."""
    event_bus.publish(
        ConflictDetected(
            aircraft_id=aircraft_id,
            departure_time=departure_time,
            arrival_time=arrival_time,
            conflicting_flight_ids=[c.id for c in conflicts],
            flight_id=flight_id,
        )
    )
    return HTTPException(
        status_code=409,
        detail={
            "message": "Flight conflicts with existing schedule",
            "conflicts": [c.model_dump(mode="json") for c in conflicts],
        },
    )


def _check_crew(flight: Flight, snapshot: list[Flight], exclude_flight_id: str | None) -> None:
    """Raise 404 for unknown crew and 409 for crew already flying in the window."""
    for pilot_id in flight.crew_ids:
        _get_pilot_or_404(pilot_id)
        if not is_resource_available(
            pilot_id,
            flight.departure_time,
            flight.arrival_time,
            snapshot,
            exclude_flight_id=exclude_flight_id,
            kind=ResourceKind.PILOT,
        ):
            logger.warning("Pilot %s unavailable for flight %s", pilot_id, flight.id)
            raise HTTPException(
                status_code=409,
                detail=f"Pilot {pilot_id} is already assigned during this window",
            )


def _commit(flight: Flight) -> Flight:
    """Write through the repository's atomic guard, mapping a lost race to 409."""
    try:
        return flight_repo.commit(flight)
    except ScheduleConflictError as exc:
        raise _conflict_response(
            exc.aircraft_id,
            flight.departure_time,
            flight.arrival_time,
            exc.conflicts,
            flight_id=flight.id,
        ) from exc


# ── Aircraft ──────────────────────────────────────────────────────────


@app.get("/aircraft", response_model=list[Aircraft])
def list_aircraft() -> list[Aircraft]:
    """Return active aircraft ordered by tail number."""
    return aircraft_repo.list_active()


@app.post("/aircraft", response_model=Aircraft, status_code=201)
def create_aircraft(payload: NewAircraft) -> Aircraft:
    if aircraft_repo.get_by_tail_number(payload.tail_number) is not None:
        raise HTTPException(status_code=400, detail="Tail number already registered")
    aircraft = Aircraft(**payload.model_dump())
    aircraft_repo.add(aircraft)
    return aircraft


@app.get("/aircraft/{aircraft_id}", response_model=Aircraft)
def get_aircraft(aircraft_id: str) -> Aircraft:
    return _get_aircraft_or_404(aircraft_id)


@app.get("/aircraft/{aircraft_id}/availability", response_model=AircraftStatus)
def get_aircraft_availability(
    aircraft_id: str, now: AwareDatetime | None = None
) -> AircraftStatus:
    """Return the dashboard availability line for one aircraft.

    Pass *now* to evaluate against a fixed clock; defaults to the current time.
    """
    aircraft = _get_aircraft_or_404(aircraft_id)
    return AircraftStatus(
        aircraft_id=aircraft.id,
        tail_number=aircraft.tail_number,
        model=aircraft.model,
        availability=describe_availability(
            aircraft, flight_repo.list_all(), now or _utcnow(), config.DISPLAY_TIMEZONE
        ),
    )


@app.get("/aircraft/{aircraft_id}/utilization", response_model=AircraftUtilization)
def get_aircraft_utilization(
    aircraft_id: str,
    days: int = Query(default=30, gt=0),
    now: AwareDatetime | None = None,
) -> AircraftUtilization:
    _get_aircraft_or_404(aircraft_id)
    return aircraft_utilization(
        aircraft_id, flight_repo.list_all(), now or _utcnow(), days=days
    )


@app.get("/fleet/status", response_model=list[AircraftStatus])
def get_fleet_status(now: AwareDatetime | None = None) -> list[AircraftStatus]:
    """Return availability for every active aircraft."""
    return fleet_status(
        aircraft_repo.list_all(),
        flight_repo.list_all(),
        now or _utcnow(),
        config.DISPLAY_TIMEZONE,
    )


# ── Pilots ────────────────────────────────────────────────────────────


@app.get("/pilots", response_model=list[PilotProfile])
def list_pilots() -> list[PilotProfile]:
    return pilot_repo.list_active()


@app.post("/pilots", response_model=PilotProfile, status_code=201)
def create_pilot(payload: NewPilot) -> PilotProfile:
    pilot = PilotProfile(**payload.model_dump())
    pilot_repo.add(pilot)
    return pilot


@app.get("/pilots/{pilot_id}/flights", response_model=list[Flight])
def list_pilot_flights(pilot_id: str) -> list[Flight]:
    """Return every flight the pilot crews or created."""
    _get_pilot_or_404(pilot_id)
    return flight_repo.list_for_pilot(pilot_id)


@app.get("/pilots/{pilot_id}/upcoming", response_model=list[Flight])
def list_pilot_upcoming(pilot_id: str, now: AwareDatetime | None = None) -> list[Flight]:
    _get_pilot_or_404(pilot_id)
    return upcoming_flights_for_pilot(pilot_id, flight_repo.list_all(), now or _utcnow())


@app.get("/pilots/{pilot_id}/availability", response_model=ResourceAvailability)
def get_pilot_availability(
    pilot_id: str,
    start: AwareDatetime,
    end: AwareDatetime,
    exclude_flight_id: str | None = None,
) -> ResourceAvailability:
    """Report whether the pilot is free for [start, end), ignoring *exclude_flight_id*."""
    _get_pilot_or_404(pilot_id)
    if end <= start:
        raise HTTPException(status_code=422, detail="end must be after start")
    available = is_resource_available(
        pilot_id,
        start,
        end,
        flight_repo.list_all(),
        exclude_flight_id=exclude_flight_id,
        kind=ResourceKind.PILOT,
    )
    return ResourceAvailability(
        resource_id=pilot_id, kind=ResourceKind.PILOT, available=available
    )


# ── Flights ───────────────────────────────────────────────────────────


@app.get("/flights", response_model=list[Flight])
def list_flights(include_past: bool = False, now: AwareDatetime | None = None) -> list[Flight]:
    """Return upcoming flights, or every flight with ``include_past=true``."""
    if include_past:
        return flight_repo.list_all()
    return flight_repo.list_upcoming(now or _utcnow())


@app.get("/flights/{flight_id}", response_model=Flight)
def get_flight(flight_id: str) -> Flight:
    return _get_flight_or_404(flight_id)


@app.post("/flights", response_model=Flight, status_code=201)
def create_flight(payload: NewFlight) -> Flight:
    """Book a new flight, refusing it if the aircraft or crew is already committed."""
    _get_aircraft_or_404(payload.aircraft_id)

    snapshot = flight_repo.list_all()
    if has_conflict(payload.to_candidate(), snapshot):
        conflicts = find_conflicts(
            payload.departure_time, payload.arrival_time, payload.aircraft_id, snapshot
        )
        raise _conflict_response(
            payload.aircraft_id, payload.departure_time, payload.arrival_time, conflicts
        )

    flight = Flight(**payload.model_dump(), status=FlightStatus.SCHEDULED)
    _check_crew(flight, snapshot, exclude_flight_id=None)

    _commit(flight)
    event_bus.publish(FlightCreated(flight_id=flight.id, performed_by=flight.created_by))
    return flight


@app.patch("/flights/{flight_id}", response_model=Flight)
def update_flight(flight_id: str, payload: FlightUpdate) -> Flight:
    """Edit a flight; a scheduled flight is re-checked without conflicting with itself."""
    current = _get_flight_or_404(flight_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return current

    merged = {**current.model_dump(), **changes, "updated_at": _utcnow()}
    try:
        updated = Flight.model_validate(merged)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if updated.aircraft_id != current.aircraft_id:
        _get_aircraft_or_404(updated.aircraft_id)

    if updated.status == FlightStatus.SCHEDULED:
        snapshot = flight_repo.list_all()
        candidate = FlightCandidate(
            aircraft_id=updated.aircraft_id,
            departure_time=updated.departure_time,
            arrival_time=updated.arrival_time,
            exclude_id=flight_id,
        )
        if has_conflict(candidate, snapshot):
            others = [f for f in snapshot if f.id != flight_id]
            conflicts = find_conflicts(
                updated.departure_time, updated.arrival_time, updated.aircraft_id, others
            )
            raise _conflict_response(
                updated.aircraft_id,
                updated.departure_time,
                updated.arrival_time,
                conflicts,
                flight_id=flight_id,
            )
        _check_crew(updated, snapshot, exclude_flight_id=flight_id)

    old_data = current.model_dump(mode="json")
    _commit(updated)
    event_bus.publish(FlightUpdated(flight_id=flight_id, old_data=old_data))
    return updated


def _transition(flight_id: str, action: str) -> Flight:
    current = _get_flight_or_404(flight_id)
    expected, target = _TRANSITIONS[action]
    if current.status != expected:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot {action} a flight that is {current.status}",
        )
    updated = current.model_copy(update={"status": target, "updated_at": _utcnow()})
    _commit(updated)
    event_bus.publish(
        FlightStatusChanged(flight_id=flight_id, old_status=expected, new_status=target)
    )
    return updated


@app.post("/flights/{flight_id}/check-in", response_model=Flight)
def check_in_flight(flight_id: str) -> Flight:
    return _transition(flight_id, "check-in")


@app.post("/flights/{flight_id}/complete", response_model=Flight)
def complete_flight(flight_id: str) -> Flight:
    return _transition(flight_id, "complete")


@app.post("/flights/{flight_id}/cancel", response_model=Flight)
def cancel_flight(flight_id: str) -> Flight:
    return _transition(flight_id, "cancel")


@app.delete("/flights/{flight_id}", status_code=200)
def delete_flight(flight_id: str) -> dict:
    flight = _get_flight_or_404(flight_id)
    flight_repo.delete(flight_id)
    event_bus.publish(
        FlightDeleted(flight_id=flight_id, old_data=flight.model_dump(mode="json"))
    )
    return {"status": "deleted"}


@app.get("/flights/{flight_id}/audit", response_model=list[AuditLog])
def list_flight_audit(flight_id: str) -> list[AuditLog]:
    """Return the audit trail for one flight, newest first (also after deletion)."""
    return audit_repo.list_for_record(FLIGHTS_TABLE, flight_id)


# ── Calendar slot checks and free-text intake ────────────────────────


@app.post("/conflicts/check", response_model=ConflictReport)
def check_slot(payload: SlotSelection) -> ConflictReport:
    """Decide whether a calendar slot can open a booking form or must show conflicts.

    Without an ``aircraft_id`` every aircraft's schedule is checked.
    """
    conflicts = find_conflicts(
        payload.start, payload.end, payload.aircraft_id, flight_repo.list_all()
    )
    return ConflictReport(
        has_conflict=bool(conflicts),
        aircraft_id=payload.aircraft_id,
        conflicts=conflicts,
    )


@app.post("/parse", response_model=ParseResponse)
def parse_request(payload: ParseRequest) -> ParseResponse:
    """Accept a free-text charter request and return a proposed flight with any conflicts."""
    now = _utcnow()
    try:
        proposed, ambiguities = _parse(payload.text, now, aircraft_repo)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    conflicts: list[Flight] = []
    if proposed.aircraft_id is not None:
        conflicts = find_conflicts(
            proposed.departure_time,
            proposed.arrival_time,
            proposed.aircraft_id,
            flight_repo.list_all(),
        )
    return ParseResponse(
        proposed_flight=proposed, ambiguities=ambiguities, conflicts=conflicts
    )


# ── Audit trail ───────────────────────────────────────────────────────


@app.get("/audit", response_model=list[AuditLog])
def list_audit(
    limit: int = Query(default=100, gt=0),
    action: AuditAction | None = None,
    table_name: str | None = None,
    record_id: str | None = None,
    performed_by: str | None = None,
    date_from: AwareDatetime | None = None,
    date_to: AwareDatetime | None = None,
) -> list[AuditLog]:
    return audit_repo.list_recent(
        limit=limit,
        action=action,
        table_name=table_name,
        record_id=record_id,
        performed_by=performed_by,
        date_from=date_from,
        date_to=date_to,
    )


@app.get("/audit/stats", response_model=AuditStats)
def get_audit_stats() -> AuditStats:
    return audit_repo.stats(_utcnow())
