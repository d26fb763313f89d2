"""Domain models for the charter scheduling service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field, model_validator


class FlightStatus(StrEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FlightType(StrEnum):
    CHARTER = "charter"
    POSITIONING = "positioning"
    TRAINING = "training"
    MAINTENANCE = "maintenance"


class LicenseType(StrEnum):
    ATP = "ATP"
    COMMERCIAL = "Commercial"
    PRIVATE = "Private"
    STUDENT = "Student"


class PilotRole(StrEnum):
    PILOT = "pilot"
    CAPTAIN = "captain"
    FIRST_OFFICER = "first_officer"
    DISPATCHER = "dispatcher"
    ADMIN = "admin"


class ResourceKind(StrEnum):
    AIRCRAFT = "aircraft"
    PILOT = "pilot"


class AuditAction(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_window(departure_time: datetime, arrival_time: datetime) -> None:
    if arrival_time <= departure_time:
        raise ValueError("arrival_time must be after departure_time")


def _check_crew_pair(captain_id: str | None, first_officer_id: str | None) -> None:
    if captain_id and captain_id == first_officer_id:
        raise ValueError("captain_id and first_officer_id must be different pilots")


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Aircraft(BaseModel):
    id: str = Field(default_factory=_new_id)
    tail_number: str = Field(min_length=1)
    model: str | None = None
    manufacturer: str | None = None
    year_manufactured: int | None = None
    max_passengers: int | None = Field(default=None, ge=0)
    max_range_nm: int | None = Field(default=None, ge=0)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PilotProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    certificate_number: str | None = None
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    license_type: LicenseType = LicenseType.COMMERCIAL
    medical_expiry: date | None = None
    flight_review_expiry: date | None = None
    total_hours: float = Field(default=0, ge=0)
    pic_hours: float = Field(default=0, ge=0)
    instrument_hours: float = Field(default=0, ge=0)
    is_active: bool = True
    role: PilotRole = PilotRole.PILOT
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Flight(BaseModel):
    id: str = Field(default_factory=_new_id)
    aircraft_id: str = Field(min_length=1)
    captain_id: str | None = None
    first_officer_id: str | None = None
    dispatcher_id: str | None = None
    departure_time: AwareDatetime
    arrival_time: AwareDatetime
    origin: str = ""
    destination: str = ""
    status: FlightStatus = FlightStatus.SCHEDULED
    flight_type: FlightType = FlightType.CHARTER
    passenger_count: int = Field(default=0, ge=0)
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _window_and_crew(self) -> Flight:
        _check_window(self.departure_time, self.arrival_time)
        _check_crew_pair(self.captain_id, self.first_officer_id)
        return self

    @property
    def crew_ids(self) -> list[str]:
        return [pid for pid in (self.captain_id, self.first_officer_id) if pid]


class FlightCandidate(BaseModel):
    """A proposed time window on an aircraft, not yet persisted.

    ``exclude_id`` names an existing flight being edited so that it is not
    reported as conflicting with itself.
    """

    aircraft_id: str = Field(min_length=1)
    departure_time: AwareDatetime
    arrival_time: AwareDatetime
    exclude_id: str | None = None

    @model_validator(mode="after")
    def _arrival_after_departure(self) -> FlightCandidate:
        _check_window(self.departure_time, self.arrival_time)
        return self


class AuditLog(BaseModel):
    id: str = Field(default_factory=_new_id)
    table_name: str
    record_id: str
    action: AuditAction
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    description: str | None = None
    performed_at: datetime = Field(default_factory=_utcnow)
    performed_by: str | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class NewAircraft(BaseModel):
    tail_number: str = Field(min_length=1)
    model: str | None = None
    manufacturer: str | None = None
    year_manufactured: int | None = None
    max_passengers: int | None = Field(default=None, ge=0)
    max_range_nm: int | None = Field(default=None, ge=0)


class NewPilot(BaseModel):
    certificate_number: str | None = None
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    license_type: LicenseType = LicenseType.COMMERCIAL
    medical_expiry: date | None = None
    flight_review_expiry: date | None = None
    total_hours: float = Field(default=0, ge=0)
    pic_hours: float = Field(default=0, ge=0)
    instrument_hours: float = Field(default=0, ge=0)
    role: PilotRole = PilotRole.PILOT


class NewFlight(BaseModel):
    aircraft_id: str = Field(min_length=1)
    captain_id: str | None = None
    first_officer_id: str | None = None
    departure_time: AwareDatetime
    arrival_time: AwareDatetime
    origin: str
    destination: str
    flight_type: FlightType = FlightType.CHARTER
    passenger_count: int = Field(default=0, ge=0)
    notes: str | None = None
    created_by: str | None = None

    @model_validator(mode="after")
    def _window_and_crew(self) -> NewFlight:
        _check_window(self.departure_time, self.arrival_time)
        _check_crew_pair(self.captain_id, self.first_officer_id)
        return self

    def to_candidate(self) -> FlightCandidate:
        return FlightCandidate(
            aircraft_id=self.aircraft_id,
            departure_time=self.departure_time,
            arrival_time=self.arrival_time,
        )


class FlightUpdate(BaseModel):
    """Partial edit of a flight: times, aircraft, crew or descriptive fields."""

    aircraft_id: str | None = Field(default=None, min_length=1)
    captain_id: str | None = None
    first_officer_id: str | None = None
    departure_time: AwareDatetime | None = None
    arrival_time: AwareDatetime | None = None
    origin: str | None = None
    destination: str | None = None
    flight_type: FlightType | None = None
    passenger_count: int | None = Field(default=None, ge=0)
    notes: str | None = None


class SlotSelection(BaseModel):
    """A time slot picked on the calendar, optionally on an aircraft lane."""

    start: AwareDatetime
    end: AwareDatetime
    aircraft_id: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> SlotSelection:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class ConflictReport(BaseModel):
    has_conflict: bool
    aircraft_id: str | None = None
    conflicts: list[Flight] = Field(default_factory=list)


class AircraftStatus(BaseModel):
    aircraft_id: str
    tail_number: str
    model: str | None = None
    availability: str

    @property
    def is_available(self) -> bool:
        return self.availability == "Available"


class AircraftUtilization(BaseModel):
    aircraft_id: str
    days: int
    total_flights: int
    total_hours: float
    average_hours_per_flight: float


class ResourceAvailability(BaseModel):
    resource_id: str
    kind: ResourceKind
    available: bool


class AuditStats(BaseModel):
    total_logs: int
    action_counts: dict[str, int] = Field(default_factory=dict)
    recent_activity: int


class ParseRequest(BaseModel):
    text: str = Field(min_length=1)


class Ambiguity(BaseModel):
    field: str
    reason: str
    options: list[str] = Field(default_factory=list)


class ProposedFlight(BaseModel):
    """A booking request extracted from free text, before operator review."""

    tail_number: str | None = None
    aircraft_id: str | None = None
    departure_time: AwareDatetime
    arrival_time: AwareDatetime
    origin: str | None = None
    destination: str | None = None
    passenger_count: int = Field(default=0, ge=0)
    notes: str | None = None

    @model_validator(mode="after")
    def _arrival_after_departure(self) -> ProposedFlight:
        _check_window(self.departure_time, self.arrival_time)
        return self


class ParseResponse(BaseModel):
    proposed_flight: ProposedFlight
    ambiguities: list[Ambiguity] = Field(default_factory=list)
    conflicts: list[Flight] = Field(default_factory=list)
