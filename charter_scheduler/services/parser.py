"""Service for parsing free-text charter requests into a ProposedFlight."""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone

import dateparser

from charter_scheduler import config
from charter_scheduler.domain.models import Ambiguity, ProposedFlight
from charter_scheduler.repos.memory import AircraftRepository

_SYSTEM_PROMPT = """\
You are a charter dispatch assistant. Given a short piece of natural language \
describing a charter flight request, extract the following fields as JSON:

{
  "tail_number": "<aircraft registration such as N123AB, or null if none>",
  "origin": "<origin airport code, or null if none>",
  "destination": "<destination airport code, or null if none>",
  "departure_time": "<raw departure-time substring from the text, or null if none>",
  "arrival_time": "<raw arrival-time substring from the text, or null if none>",
  "duration_minutes": <block time in minutes if the text states a duration, else null>,
  "passenger_count": <number of passengers, or null if none>
}

Rules:
- For departure_time and arrival_time, extract the EXACT substring from the \
input that describes the time. Do NOT interpret or reformat it.
- Use three- or four-letter airport codes exactly as written; if a city is \
named instead, return the city name.
- Convert a stated duration ("for two hours", "90 minute hop") into minutes.
- Return null for any field that is not present in the text.
- Respond with ONLY the JSON object, no other text.
"""


def _extract_with_llm(text: str) -> dict:
    """Call OpenAI to extract structured fields from free text."""
    from openai import OpenAI

    client = OpenAI(api_key=os.environ["OPENAI_API_KEY"])
    response = client.chat.completions.create(
        model=config.OPENAI_MODEL,
        messages=[
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ],
        temperature=0,
        response_format={"type": "json_object"},
    )
    return json.loads(response.choices[0].message.content)


def _parse_time(raw: str | None, now: datetime) -> datetime | None:
    """Parse a raw time string using dateparser, returning a UTC datetime."""
    if not raw:
        return None
    settings = {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": now.astimezone(timezone.utc).replace(tzinfo=None),
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    result = dateparser.parse(raw, settings=settings)
    if result is None:
        return None
    return result.replace(tzinfo=timezone.utc)


def _upper_or_none(value: str | None) -> str | None:
    return value.strip().upper() if value else None


def parse_booking_request(
    text: str,
    now: datetime,
    aircraft_repo: AircraftRepository,
) -> tuple[ProposedFlight, list[Ambiguity]]:
    """Parse a free-text charter request into a ProposedFlight plus ambiguities.

    Uses OpenAI to extract structured fields, then resolves times with
    ``dateparser`` and the tail number against the fleet. Raises
    ``ValueError`` if no departure time can be found.
    """
    extracted = _extract_with_llm(text)
    ambiguities: list[Ambiguity] = []

    # -- departure_time ----------------------------------------------------
    departure_time = _parse_time(extracted.get("departure_time"), now)
    if departure_time is None:
        raise ValueError("No departure time found in text")

    # -- arrival_time ------------------------------------------------------
    arrival_time = _parse_time(extracted.get("arrival_time"), now)
    if arrival_time is None or arrival_time <= departure_time:
        duration = extracted.get("duration_minutes")
        if (
            isinstance(duration, (int, float))
            and not isinstance(duration, bool)
            and duration > 0
        ):
            arrival_time = departure_time + timedelta(minutes=duration)
        else:
            arrival_time = departure_time + timedelta(
                minutes=config.DEFAULT_BLOCK_MINUTES
            )
            ambiguities.append(
                Ambiguity(
                    field="arrival_time",
                    reason=(
                        "No arrival time or duration given; assumed "
                        f"{config.DEFAULT_BLOCK_MINUTES} minutes block time"
                    ),
                )
            )

    # -- aircraft ----------------------------------------------------------
    tail_number = _upper_or_none(extracted.get("tail_number"))
    aircraft_id: str | None = None
    if tail_number is None:
        ambiguities.append(
            Ambiguity(
                field="aircraft_id",
                reason="No aircraft named in the request",
                options=[a.tail_number for a in aircraft_repo.list_active()],
            )
        )
    else:
        aircraft = aircraft_repo.get_by_tail_number(tail_number)
        if aircraft is None or not aircraft.is_active:
            ambiguities.append(
                Ambiguity(
                    field="aircraft_id",
                    reason=f"Aircraft {tail_number} is not in the active fleet",
                    options=[a.tail_number for a in aircraft_repo.list_active()],
                )
            )
        else:
            aircraft_id = aircraft.id

    # -- route -------------------------------------------------------------
    origin = _upper_or_none(extracted.get("origin"))
    destination = _upper_or_none(extracted.get("destination"))
    for field, value in (("origin", origin), ("destination", destination)):
        if value is None:
            ambiguities.append(Ambiguity(field=field, reason=f"No {field} given"))

    passenger_count = extracted.get("passenger_count")
    if (
        not isinstance(passenger_count, int)
        or isinstance(passenger_count, bool)
        or passenger_count < 0
    ):
        passenger_count = 0

    proposed = ProposedFlight(
        tail_number=tail_number,
        aircraft_id=aircraft_id,
        departure_time=departure_time,
        arrival_time=arrival_time,
        origin=origin,
        destination=destination,
        passenger_count=passenger_count,
        notes=text,
    )
    return proposed, ambiguities
