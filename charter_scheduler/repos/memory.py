"""In-memory repositories for aircraft, pilots, flights and the audit trail."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from datetime import datetime, timedelta, timezone

from charter_scheduler.domain.models import (
    Aircraft,
    AuditAction,
    AuditLog,
    AuditStats,
    Flight,
    FlightStatus,
    LicenseType,
    PilotProfile,
    PilotRole,
)
from charter_scheduler.services.conflicts import find_conflicts

logger = logging.getLogger(__name__)


class ScheduleConflictError(Exception):
    """Raised when a write would double-book an aircraft."""

    def __init__(self, aircraft_id: str, conflicts: list[Flight]) -> None:
        self.aircraft_id = aircraft_id
        self.conflicts = conflicts
        ids = ", ".join(f.id for f in conflicts)
        super().__init__(f"Aircraft {aircraft_id} is already scheduled: {ids}")


class AircraftRepository:
    """Dict-backed store for Aircraft instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Aircraft] = {}

    def add(self, aircraft: Aircraft) -> None:
        self._store[aircraft.id] = aircraft

    def get(self, aircraft_id: str) -> Aircraft | None:
        return self._store.get(aircraft_id)

    def get_by_tail_number(self, tail_number: str) -> Aircraft | None:
        wanted = tail_number.strip().upper()
        for aircraft in self._store.values():
            if aircraft.tail_number.upper() == wanted:
                return aircraft
        return None

    def list_all(self) -> list[Aircraft]:
        return list(self._store.values())

    def list_active(self) -> list[Aircraft]:
        return sorted(
            (a for a in self._store.values() if a.is_active),
            key=lambda a: a.tail_number,
        )


class PilotRepository:
    """Dict-backed store for PilotProfile instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, PilotProfile] = {}

    def add(self, pilot: PilotProfile) -> None:
        self._store[pilot.id] = pilot

    def get(self, pilot_id: str) -> PilotProfile | None:
        return self._store.get(pilot_id)

    def list_active(self) -> list[PilotProfile]:
        return sorted(
            (p for p in self._store.values() if p.is_active),
            key=lambda p: (p.last_name, p.first_name),
        )


class FlightRepository:
    """Dict-backed store for Flight instances, keyed by id.

    ``commit`` is the only write path that enforces the no-overlap rule: it
    re-checks the aircraft's schedule and writes under one lock, so two
    callers that both passed an advisory check cannot both land.
    """

    def __init__(self) -> None:
        self._store: dict[str, Flight] = {}
        self._lock = threading.Lock()

    def add(self, flight: Flight) -> None:
        """Store a flight without any schedule check (seeding, imports)."""
        with self._lock:
            self._store[flight.id] = flight

    def commit(self, flight: Flight) -> Flight:
        """Insert or replace *flight*, rejecting it if it double-books its aircraft."""
        with self._lock:
            if flight.status == FlightStatus.SCHEDULED:
                others = [f for f in self._store.values() if f.id != flight.id]
                conflicts = find_conflicts(
                    flight.departure_time,
                    flight.arrival_time,
                    flight.aircraft_id,
                    others,
                )
                if conflicts:
                    logger.warning(
                        "Rejected write of flight %s: aircraft %s overlaps %d flight(s)",
                        flight.id,
                        flight.aircraft_id,
                        len(conflicts),
                    )
                    raise ScheduleConflictError(flight.aircraft_id, conflicts)
            self._store[flight.id] = flight
            return flight

    def get(self, flight_id: str) -> Flight | None:
        return self._store.get(flight_id)

    def list_all(self) -> list[Flight]:
        return sorted(self._store.values(), key=lambda f: f.departure_time)

    def list_upcoming(self, now: datetime) -> list[Flight]:
        return [f for f in self.list_all() if f.departure_time >= now]

    def list_for_pilot(self, pilot_id: str) -> list[Flight]:
        """Return flights crewed or created by the pilot."""
        return [
            f
            for f in self.list_all()
            if pilot_id in (f.captain_id, f.first_officer_id, f.created_by)
        ]

    def delete(self, flight_id: str) -> Flight | None:
        with self._lock:
            return self._store.pop(flight_id, None)


class AuditLogRepository:
    """List-backed store for AuditLog entries."""

    def __init__(self) -> None:
        self._entries: list[AuditLog] = []

    def add(self, entry: AuditLog) -> None:
        self._entries.append(entry)

    def list_recent(
        self,
        limit: int = 100,
        action: AuditAction | None = None,
        table_name: str | None = None,
        record_id: str | None = None,
        performed_by: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[AuditLog]:
        """Return matching entries, newest first (later writes win timestamp ties)."""
        entries = [
            e
            for e in reversed(self._entries)
            if (action is None or e.action == action)
            and (table_name is None or e.table_name == table_name)
            and (record_id is None or e.record_id == record_id)
            and (performed_by is None or e.performed_by == performed_by)
            and (date_from is None or e.performed_at >= date_from)
            and (date_to is None or e.performed_at <= date_to)
        ]
        entries.sort(key=lambda e: e.performed_at, reverse=True)
        return entries[:limit]

    def list_for_record(self, table_name: str, record_id: str) -> list[AuditLog]:
        return self.list_recent(
            limit=len(self._entries), table_name=table_name, record_id=record_id
        )

    def stats(self, now: datetime) -> AuditStats:
        counts = Counter(str(e.action) for e in self._entries)
        since = now - timedelta(days=1)
        return AuditStats(
            total_logs=len(self._entries),
            action_counts=dict(counts),
            recent_activity=sum(1 for e in self._entries if e.performed_at >= since),
        )


# ---------------------------------------------------------------------------
# Seed data – a small fleet with a few near-future flights
# ---------------------------------------------------------------------------


def _seed(
    aircraft_repo: AircraftRepository,
    pilot_repo: PilotRepository,
    flight_repo: FlightRepository,
) -> None:
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

    cj3 = Aircraft(tail_number="N123AB", model="Citation CJ3", manufacturer="Cessna",
                   max_passengers=7, max_range_nm=2040)
    king_air = Aircraft(tail_number="N456CD", model="King Air 350", manufacturer="Beechcraft",
                        max_passengers=9, max_range_nm=1800)
    for a in (cj3, king_air):
        aircraft_repo.add(a)

    captain = PilotProfile(first_name="Dana", last_name="Reyes", email="dreyes@example.com",
                           license_type=LicenseType.ATP, role=PilotRole.CAPTAIN,
                           total_hours=6200, pic_hours=4100, instrument_hours=900)
    first_officer = PilotProfile(first_name="Sam", last_name="Okafor", email="sokafor@example.com",
                                 role=PilotRole.FIRST_OFFICER, total_hours=1500,
                                 pic_hours=600, instrument_hours=210)
    for p in (captain, first_officer):
        pilot_repo.add(p)

    flight_repo.add(
        Flight(
            aircraft_id=cj3.id,
            captain_id=captain.id,
            first_officer_id=first_officer.id,
            departure_time=now + timedelta(hours=3),
            arrival_time=now + timedelta(hours=5),
            origin="LAX",
            destination="SFO",
            passenger_count=4,
        )
    )
    flight_repo.add(
        Flight(
            aircraft_id=cj3.id,
            captain_id=captain.id,
            first_officer_id=first_officer.id,
            departure_time=now + timedelta(hours=7),
            arrival_time=now + timedelta(hours=9),
            origin="SFO",
            destination="LAX",
        )
    )
    flight_repo.add(
        Flight(
            aircraft_id=king_air.id,
            departure_time=now + timedelta(days=1, hours=2),
            arrival_time=now + timedelta(days=1, hours=4),
            origin="VNY",
            destination="LAS",
            flight_type="positioning",
        )
    )


def create_repositories() -> tuple[AircraftRepository, PilotRepository, FlightRepository]:
    """Return aircraft, pilot and flight repositories pre-loaded with sample data."""
    aircraft_repo = AircraftRepository()
    pilot_repo = PilotRepository()
    flight_repo = FlightRepository()
    _seed(aircraft_repo, pilot_repo, flight_repo)
    return aircraft_repo, pilot_repo, flight_repo
