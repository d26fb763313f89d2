"""Service for detecting scheduling conflicts between flights.

Every function here is pure: callers pass a fresh snapshot of flights and
get a verdict back. Nothing is cached between calls, and nothing here can
stop two schedulers from racing each other; ``FlightRepository.commit``
re-runs the check atomically at write time.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, tzinfo

from charter_scheduler.domain.models import (
    Aircraft,
    Flight,
    FlightCandidate,
    FlightStatus,
    ResourceKind,
)

AVAILABLE = "Available"


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Return True when half-open windows [a_start, a_end) and [b_start, b_end) overlap.

    Back-to-back windows (a_end == b_start) are NOT considered conflicts.
    """
    return a_start < b_end and a_end > b_start


def _scheduled(flights: Iterable[Flight]) -> list[Flight]:
    return [f for f in flights if f.status == FlightStatus.SCHEDULED]


def find_conflicts(
    candidate_start: datetime,
    candidate_end: datetime,
    aircraft_id: str | None,
    existing_flights: list[Flight],
) -> list[Flight]:
    """Return scheduled flights that overlap the candidate window.

    With an ``aircraft_id`` only that aircraft's flights are considered.
    Without one, every aircraft present in ``existing_flights`` is checked
    and all of their overlapping flights are reported. Results are grouped
    by aircraft in order of first appearance, then by input order.
    """
    if aircraft_id:
        aircraft_to_check = [aircraft_id]
    else:
        aircraft_to_check = list(dict.fromkeys(f.aircraft_id for f in existing_flights))

    scheduled = _scheduled(existing_flights)
    conflicts: list[Flight] = []
    for current in aircraft_to_check:
        conflicts.extend(
            flight
            for flight in scheduled
            if flight.aircraft_id == current
            and overlaps(
                candidate_start,
                candidate_end,
                flight.departure_time,
                flight.arrival_time,
            )
        )
    return conflicts


def has_conflict(candidate: FlightCandidate, existing_flights: list[Flight]) -> bool:
    """Return True if the candidate overlaps a scheduled flight on its aircraft."""
    return any(
        overlaps(
            candidate.departure_time,
            candidate.arrival_time,
            flight.departure_time,
            flight.arrival_time,
        )
        for flight in _scheduled(existing_flights)
        if flight.aircraft_id == candidate.aircraft_id
        and flight.id != candidate.exclude_id
    )


def _references(flight: Flight, resource_id: str, kind: ResourceKind) -> bool:
    if kind == ResourceKind.PILOT:
        return resource_id in (flight.captain_id, flight.first_officer_id)
    return flight.aircraft_id == resource_id


def is_resource_available(
    resource_id: str,
    start: datetime,
    end: datetime,
    existing_flights: list[Flight],
    exclude_flight_id: str | None = None,
    kind: ResourceKind = ResourceKind.AIRCRAFT,
) -> bool:
    """Return True when no scheduled flight holding the resource overlaps [start, end).

    Pilots are matched as captain or first officer. ``exclude_flight_id``
    skips the flight being edited.
    """
    return not any(
        overlaps(start, end, flight.departure_time, flight.arrival_time)
        for flight in _scheduled(existing_flights)
        if flight.id != exclude_flight_id and _references(flight, resource_id, kind)
    )


def format_datetime(value: datetime, tz: tzinfo | None = None) -> str:
    """Format an instant as ``M/D/YYYY, h:MM:SS AM``, optionally converted to *tz*."""
    if tz is not None:
        value = value.astimezone(tz)
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{value.month}/{value.day}/{value.year}, "
        f"{hour}:{value.minute:02d}:{value.second:02d} {meridiem}"
    )


def describe_availability(
    aircraft: Aircraft,
    flights: list[Flight],
    now: datetime,
    tz: tzinfo | None = None,
) -> str:
    """Return ``"Available"`` or ``"Next: <time>"`` for the aircraft's next scheduled departure."""
    upcoming = sorted(
        (
            flight
            for flight in _scheduled(flights)
            if flight.aircraft_id == aircraft.id and flight.departure_time > now
        ),
        key=lambda f: f.departure_time,
    )
    if not upcoming:
        return AVAILABLE
    return f"Next: {format_datetime(upcoming[0].departure_time, tz)}"
