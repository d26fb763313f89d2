"""Smoke tests for the free-text booking request parser."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from charter_scheduler import config
from charter_scheduler.domain.models import Aircraft, Flight
from charter_scheduler.repos.memory import AircraftRepository
from charter_scheduler.services.parser import parse_booking_request

# Fixed reference time: Sunday 2025-06-01 12:00 UTC
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _patch_llm(extracted: dict):
    """Patch _extract_with_llm to return *extracted* without calling OpenAI."""
    return patch("charter_scheduler.services.parser._extract_with_llm", return_value=extracted)


@pytest.fixture()
def fleet() -> AircraftRepository:
    repo = AircraftRepository()
    repo.add(Aircraft(id="aircraft-1", tail_number="N123AB"))
    repo.add(Aircraft(id="aircraft-2", tail_number="N456CD"))
    return repo


def test_parse_tail_route_and_duration(fleet):
    with _patch_llm(
        {
            "tail_number": "n123ab",
            "origin": "lax",
            "destination": "SFO",
            "departure_time": "Thursday at 3:30pm",
            "arrival_time": None,
            "duration_minutes": 90,
            "passenger_count": 4,
        }
    ):
        proposed, ambiguities = parse_booking_request(
            "N123AB LAX to SFO Thursday at 3:30pm, 90 minutes, 4 pax", NOW, fleet
        )

    # Thursday after 2025-06-01 (Sunday) is 2025-06-05
    assert proposed.departure_time == datetime(2025, 6, 5, 15, 30, tzinfo=timezone.utc)
    assert proposed.arrival_time == proposed.departure_time + timedelta(minutes=90)
    assert proposed.aircraft_id == "aircraft-1"
    assert (proposed.origin, proposed.destination) == ("LAX", "SFO")
    assert proposed.passenger_count == 4
    assert ambiguities == []


def test_raises_when_no_departure_time(fleet):
    with _patch_llm({"tail_number": "N123AB", "departure_time": None}):
        with pytest.raises(ValueError, match="No departure time found"):
            parse_booking_request("N123AB to Vegas", NOW, fleet)


def test_default_block_time_flagged(fleet):
    with _patch_llm(
        {
            "tail_number": "N123AB",
            "origin": "TEB",
            "destination": "PBI",
            "departure_time": "tomorrow at noon",
        }
    ):
        proposed, ambiguities = parse_booking_request(
            "N123AB TEB-PBI tomorrow at noon", NOW, fleet
        )

    assert proposed.arrival_time == proposed.departure_time + timedelta(
        minutes=config.DEFAULT_BLOCK_MINUTES
    )
    assert [a.field for a in ambiguities] == ["arrival_time"]


def test_boolean_counts_from_the_model_are_ignored(fleet):
    with _patch_llm(
        {
            "tail_number": "N123AB",
            "origin": "TEB",
            "destination": "PBI",
            "departure_time": "tomorrow at noon",
            "duration_minutes": True,
            "passenger_count": True,
        }
    ):
        proposed, ambiguities = parse_booking_request(
            "N123AB TEB-PBI tomorrow at noon with passengers", NOW, fleet
        )

    assert proposed.passenger_count == 0
    assert proposed.arrival_time == proposed.departure_time + timedelta(
        minutes=config.DEFAULT_BLOCK_MINUTES
    )
    assert [a.field for a in ambiguities] == ["arrival_time"]


def test_unknown_tail_number_offers_fleet(fleet):
    with _patch_llm(
        {
            "tail_number": "N999ZZ",
            "origin": "TEB",
            "destination": "PBI",
            "departure_time": "tomorrow at 9am",
            "duration_minutes": 150,
        }
    ):
        proposed, ambiguities = parse_booking_request(
            "N999ZZ TEB to PBI tomorrow at 9am", NOW, fleet
        )

    assert proposed.aircraft_id is None
    assert proposed.tail_number == "N999ZZ"
    (amb,) = ambiguities
    assert amb.field == "aircraft_id"
    assert amb.options == ["N123AB", "N456CD"]


def test_missing_route_is_flagged(fleet):
    with _patch_llm(
        {"tail_number": "N456CD", "departure_time": "tomorrow at 9am", "duration_minutes": 60}
    ):
        _, ambiguities = parse_booking_request("N456CD tomorrow at 9am", NOW, fleet)

    assert [a.field for a in ambiguities] == ["origin", "destination"]


def test_notes_contain_raw_text(fleet):
    raw = "N123AB LAX to SFO tomorrow at 2pm for an hour"
    with _patch_llm(
        {
            "tail_number": "N123AB",
            "origin": "LAX",
            "destination": "SFO",
            "departure_time": "tomorrow at 2pm",
            "duration_minutes": 60,
        }
    ):
        proposed, _ = parse_booking_request(raw, NOW, fleet)

    assert proposed.notes == raw


# ---------------------------------------------------------------------------
# /parse endpoint
# ---------------------------------------------------------------------------


def test_parse_endpoint_reports_conflicts():
    from charter_scheduler.main import aircraft_repo, app, flight_repo

    aircraft_repo._store.clear()
    flight_repo._store.clear()
    aircraft_repo.add(Aircraft(id="aircraft-1", tail_number="N123AB"))
    departure = datetime(2031, 3, 4, 15, 0, tzinfo=timezone.utc)
    flight_repo.add(
        Flight(
            id="flight-1",
            aircraft_id="aircraft-1",
            departure_time=departure - timedelta(minutes=30),
            arrival_time=departure + timedelta(hours=1),
        )
    )
    try:
        with _patch_llm(
            {
                "tail_number": "N123AB",
                "origin": "LAX",
                "destination": "SFO",
                "departure_time": "2031-03-04 15:00",
                "duration_minutes": 60,
            }
        ):
            resp = TestClient(app).post(
                "/parse", json={"text": "N123AB LAX-SFO March 4 2031 3pm"}
            )
    finally:
        aircraft_repo._store.clear()
        flight_repo._store.clear()

    assert resp.status_code == 200
    body = resp.json()
    assert body["proposed_flight"]["aircraft_id"] == "aircraft-1"
    assert [c["id"] for c in body["conflicts"]] == ["flight-1"]


def test_parse_endpoint_without_time_returns_422():
    from charter_scheduler.main import app

    with _patch_llm({"tail_number": "N123AB", "departure_time": None}):
        resp = TestClient(app).post("/parse", json={"text": "N123AB sometime"})

    assert resp.status_code == 422
    assert resp.json()["detail"] == "No departure time found in text"
