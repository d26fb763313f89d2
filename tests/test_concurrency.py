"""Two dispatchers booking the same aircraft at once.

The advisory check is a pure function over a snapshot: it cannot see a
booking that lands after the snapshot was taken. Only the repository's
atomic commit keeps the aircraft from being double-booked.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from charter_scheduler.domain.models import Flight, FlightCandidate, FlightStatus
from charter_scheduler.repos.memory import FlightRepository, ScheduleConflictError
from charter_scheduler.services.conflicts import has_conflict


def _booking(start_hour: int, end_hour: int, **overrides) -> Flight:
    fields = dict(
        aircraft_id="aircraft-1",
        departure_time=datetime(2024, 1, 15, start_hour, tzinfo=timezone.utc),
        arrival_time=datetime(2024, 1, 15, end_hour, tzinfo=timezone.utc),
        origin="LAX",
        destination="SFO",
    )
    fields.update(overrides)
    return Flight(**fields)


def _candidate(flight: Flight) -> FlightCandidate:
    return FlightCandidate(
        aircraft_id=flight.aircraft_id,
        departure_time=flight.departure_time,
        arrival_time=flight.arrival_time,
    )


def test_pure_check_alone_lets_both_bookings_through():
    """Both dispatchers pass the advisory check against the same stale snapshot."""
    repo = FlightRepository()
    snapshot = repo.list_all()
    first = _booking(10, 12)
    second = _booking(11, 13)

    assert has_conflict(_candidate(first), snapshot) is False
    assert has_conflict(_candidate(second), snapshot) is False

    # Writing without the guard double-books the aircraft.
    repo.add(first)
    repo.add(second)
    assert has_conflict(_candidate(second), [first]) is True


def test_atomic_commit_rejects_the_second_booking():
    repo = FlightRepository()
    snapshot = repo.list_all()
    first = _booking(10, 12)
    second = _booking(11, 13)
    assert not has_conflict(_candidate(first), snapshot)
    assert not has_conflict(_candidate(second), snapshot)

    repo.commit(first)
    with pytest.raises(ScheduleConflictError) as exc_info:
        repo.commit(second)

    assert exc_info.value.aircraft_id == "aircraft-1"
    assert [f.id for f in exc_info.value.conflicts] == [first.id]
    assert [f.id for f in repo.list_all()] == [first.id]


def test_concurrent_commits_land_exactly_once():
    repo = FlightRepository()
    barrier = threading.Barrier(2)
    bookings = [_booking(10, 12), _booking(11, 13)]
    results: dict[str, str] = {}

    def dispatcher(flight: Flight) -> None:
        snapshot = repo.list_all()
        assert not has_conflict(_candidate(flight), snapshot)
        barrier.wait()
        try:
            repo.commit(flight)
            results[flight.id] = "committed"
        except ScheduleConflictError:
            results[flight.id] = "rejected"

    threads = [threading.Thread(target=dispatcher, args=(b,)) for b in bookings]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results.values()) == ["committed", "rejected"]
    assert len(repo.list_all()) == 1


def test_commit_allows_rewriting_the_same_flight():
    repo = FlightRepository()
    flight = repo.commit(_booking(10, 12))
    moved = flight.model_copy(
        update={"arrival_time": datetime(2024, 1, 15, 13, tzinfo=timezone.utc)}
    )
    repo.commit(moved)
    assert repo.get(flight.id).arrival_time.hour == 13


def test_commit_skips_check_for_cancelled_flights():
    repo = FlightRepository()
    repo.commit(_booking(10, 12))
    cancelled = _booking(11, 13, status=FlightStatus.CANCELLED)
    repo.commit(cancelled)
    assert repo.get(cancelled.id) is not None
