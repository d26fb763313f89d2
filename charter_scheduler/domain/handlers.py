"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

import logging

from charter_scheduler.domain.bus import EventBus
from charter_scheduler.domain.events import (
    ConflictDetected,
    FlightCreated,
    FlightDeleted,
    FlightStatusChanged,
    FlightUpdated,
)
from charter_scheduler.domain.models import AuditAction, AuditLog, Flight
from charter_scheduler.repos.memory import AuditLogRepository, FlightRepository

logger = logging.getLogger(__name__)

FLIGHTS_TABLE = "flights"


def _snapshot(flight: Flight) -> dict:
    return flight.model_dump(mode="json")


def _route(flight: Flight) -> str:
    return f"{flight.origin or '?'} → {flight.destination or '?'}"


class HandlerRegistry:
    """Wires domain-event handlers to the bus, writing the audit trail."""

    def __init__(
        self,
        bus: EventBus,
        flight_repo: FlightRepository,
        audit_repo: AuditLogRepository,
    ) -> None:
        self.bus = bus
        self.flight_repo = flight_repo
        self.audit_repo = audit_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(FlightCreated, self.on_flight_created)
        self.bus.subscribe(FlightUpdated, self.on_flight_updated)
        self.bus.subscribe(FlightStatusChanged, self.on_flight_status_changed)
        self.bus.subscribe(FlightDeleted, self.on_flight_deleted)
        self.bus.subscribe(ConflictDetected, self.on_conflict_detected)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_flight_created(self, event: FlightCreated) -> None:
        stored = self.flight_repo.get(event.flight_id)
        if stored is None:
            return

        self.audit_repo.add(
            AuditLog(
                table_name=FLIGHTS_TABLE,
                record_id=stored.id,
                action=AuditAction.INSERT,
                new_data=_snapshot(stored),
                description=f"Scheduled flight {_route(stored)}",
                performed_by=event.performed_by,
            )
        )
        logger.info("Flight %s scheduled on aircraft %s", stored.id, stored.aircraft_id)

    def on_flight_updated(self, event: FlightUpdated) -> None:
        stored = self.flight_repo.get(event.flight_id)
        if stored is None:
            return

        new_data = _snapshot(stored)
        changed = sorted(
            key
            for key, value in new_data.items()
            if key != "updated_at" and event.old_data.get(key) != value
        )
        self.audit_repo.add(
            AuditLog(
                table_name=FLIGHTS_TABLE,
                record_id=stored.id,
                action=AuditAction.UPDATE,
                old_data=event.old_data,
                new_data=new_data,
                description=f"Updated {', '.join(changed) or 'nothing'}",
                performed_by=event.performed_by,
            )
        )

    def on_flight_status_changed(self, event: FlightStatusChanged) -> None:
        stored = self.flight_repo.get(event.flight_id)
        if stored is None:
            return

        self.audit_repo.add(
            AuditLog(
                table_name=FLIGHTS_TABLE,
                record_id=stored.id,
                action=AuditAction.UPDATE,
                old_data={"status": str(event.old_status)},
                new_data={"status": str(event.new_status)},
                description=f"Status {event.old_status} → {event.new_status}",
                performed_by=event.performed_by,
            )
        )
        logger.info(
            "Flight %s status %s -> %s", stored.id, event.old_status, event.new_status
        )

    def on_flight_deleted(self, event: FlightDeleted) -> None:
        self.audit_repo.add(
            AuditLog(
                table_name=FLIGHTS_TABLE,
                record_id=event.flight_id,
                action=AuditAction.DELETE,
                old_data=event.old_data,
                description="Deleted flight",
                performed_by=event.performed_by,
            )
        )

    def on_conflict_detected(self, event: ConflictDetected) -> None:
        # Refused writes never reach the store, so they are logged, not audited.
        logger.warning(
            "Schedule conflict on aircraft %s for %s - %s: %s",
            event.aircraft_id or "(any)",
            event.departure_time.isoformat(),
            event.arrival_time.isoformat(),
            ", ".join(event.conflicting_flight_ids),
        )
