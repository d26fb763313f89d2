"""Domain events emitted as flights move through the schedule."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from charter_scheduler.domain.models import FlightStatus


class FlightCreated(BaseModel):
    """Fired after a new flight has been committed."""

    flight_id: str
    performed_by: str | None = None


class FlightUpdated(BaseModel):
    """Fired after a flight's times, aircraft, crew or details change."""

    flight_id: str
    old_data: dict[str, Any]
    performed_by: str | None = None


class FlightStatusChanged(BaseModel):
    """Fired on check-in, completion or cancellation."""

    flight_id: str
    old_status: FlightStatus
    new_status: FlightStatus
    performed_by: str | None = None


class FlightDeleted(BaseModel):
    """Fired after a flight has been removed from the store."""

    flight_id: str
    old_data: dict[str, Any]
    performed_by: str | None = None


class ConflictDetected(BaseModel):
    """Fired when a booking or edit is refused because the window is taken."""

    aircraft_id: str | None
    departure_time: datetime
    arrival_time: datetime
    conflicting_flight_ids: list[str]
    flight_id: str | None = None
