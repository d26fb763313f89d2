"""Fleet-level projections for the dashboard: status, utilization, crew schedules."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo

from charter_scheduler.domain.models import (
    Aircraft,
    AircraftStatus,
    AircraftUtilization,
    Flight,
    FlightStatus,
)
from charter_scheduler.services.conflicts import describe_availability

_FLOWN_STATUSES = (FlightStatus.COMPLETED, FlightStatus.IN_PROGRESS)


def fleet_status(
    aircraft: list[Aircraft],
    flights: list[Flight],
    now: datetime,
    tz: tzinfo | None = None,
) -> list[AircraftStatus]:
    """Return an availability summary for every active aircraft, by tail number."""
    return [
        AircraftStatus(
            aircraft_id=a.id,
            tail_number=a.tail_number,
            model=a.model,
            availability=describe_availability(a, flights, now, tz),
        )
        for a in sorted(aircraft, key=lambda a: a.tail_number)
        if a.is_active
    ]


def aircraft_utilization(
    aircraft_id: str,
    flights: list[Flight],
    now: datetime,
    days: int = 30,
) -> AircraftUtilization:
    """Summarise hours flown by an aircraft over the last *days*.

    Only completed or in-progress flights that departed inside the window
    count; hours are rounded to two decimals.
    """
    window_start = now - timedelta(days=days)
    flown = [
        f
        for f in flights
        if f.aircraft_id == aircraft_id
        and f.status in _FLOWN_STATUSES
        and f.departure_time >= window_start
    ]
    total_hours = sum(
        (f.arrival_time - f.departure_time).total_seconds() / 3600 for f in flown
    )
    total_flights = len(flown)
    return AircraftUtilization(
        aircraft_id=aircraft_id,
        days=days,
        total_flights=total_flights,
        total_hours=round(total_hours, 2),
        average_hours_per_flight=(
            round(total_hours / total_flights, 2) if total_flights else 0
        ),
    )


def upcoming_flights_for_pilot(
    pilot_id: str,
    flights: list[Flight],
    now: datetime,
    limit: int = 5,
) -> list[Flight]:
    """Return the pilot's next scheduled flights as captain or first officer."""
    upcoming = sorted(
        (
            f
            for f in flights
            if f.status == FlightStatus.SCHEDULED
            and pilot_id in f.crew_ids
            and f.departure_time >= now
        ),
        key=lambda f: f.departure_time,
    )
    return upcoming[:limit]
