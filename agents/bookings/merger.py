"""Merge newly extracted bookings into a trip without creating duplicates.

Boarding passes are issued per passenger per flight, so the same flight shows
up once per traveler, across one upload or several. Flights are matched on
(booking reference, flight number, date); a match only ever grows the
flight's passengers list. Hotels are matched on confirmation number, or on
name and stay dates when the confirmation number is missing.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .errors import ValidationError
from .models import ExtractedDocument, Flight, Hotel, Passenger, Trip, format_date, parse_date
from .normalizer import build_passenger_entry, build_passengers_array

ROUTE_SEPARATOR = " → "


@dataclass
class MergeReport:
    """What a merge did. Skipped duplicates are not errors."""

    added_flights: int = 0
    added_hotels: int = 0
    added_passengers: int = 0
    skipped_flights: int = 0
    skipped_hotels: int = 0
    dropped_records: int = 0
    name_collisions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "addedFlights": self.added_flights,
            "addedHotels": self.added_hotels,
            "addedPassengers": self.added_passengers,
            "skippedFlights": self.skipped_flights,
            "skippedHotels": self.skipped_hotels,
            "droppedRecords": self.dropped_records,
            "nameCollisions": list(self.name_collisions),
        }


@dataclass
class MergeResult:
    trip: Trip
    report: MergeReport


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def flight_key(flight: Flight) -> tuple[str, str, str]:
    return (_norm(flight.booking_reference), _norm(flight.flight_number), _norm(flight.date))


def same_passenger(a: Passenger, b: Passenger) -> bool:
    """Passenger identity: same ticket number, or same name (case-insensitive)."""
    ticket_a, ticket_b = _norm(a.ticket_number), _norm(b.ticket_number)
    if ticket_a and ticket_b and ticket_a == ticket_b:
        return True
    name_a, name_b = _norm(a.name), _norm(b.name)
    return bool(name_a and name_b and name_a == name_b)


def _is_name_collision(a: Passenger, b: Passenger) -> bool:
    ticket_a, ticket_b = _norm(a.ticket_number), _norm(b.ticket_number)
    return bool(ticket_a and ticket_b and ticket_a != ticket_b)


def add_passengers(target: Flight, incoming: Flight, report: MergeReport, mark_upload: bool = True) -> int:
    """Append the incoming flight's unseen passengers to ``target``.

    Returns the number of passengers added. When nothing is added the incoming
    record counts as a skipped duplicate.
    """
    build_passengers_array(target)
    incoming_passengers = build_passengers_array(incoming)

    label = f"{incoming.flight_number} on {incoming.date}"
    if not incoming_passengers:
        print(f"[MERGE] Skipping duplicate flight: {label}")
        report.skipped_flights += 1
        return 0

    added = 0
    for passenger in incoming_passengers:
        match = next((p for p in target.passengers if same_passenger(p, passenger)), None)
        if match is not None:
            if _is_name_collision(match, passenger):
                print(
                    f"[MERGE] WARNING: passenger {passenger.name} on {label} matches by name "
                    f"but has ticket {passenger.ticket_number} (recorded: {match.ticket_number})"
                )
                report.name_collisions.append(
                    f"{passenger.name} ({label}): {match.ticket_number} / {passenger.ticket_number}"
                )
            continue
        target.passengers.append(build_passenger_entry(passenger, incoming))
        added += 1
        print(f"[MERGE] Added passenger {passenger.name} to flight {label}")

    if added == 0:
        print(f"[MERGE] Skipping duplicate flight: {label}")
        report.skipped_flights += 1
    elif mark_upload:
        target.needs_pdf_upload = True
    return added


def compact_flights(flights: Iterable[Flight], report: MergeReport) -> list[Flight]:
    """Combine flights of one upload describing the same segment."""
    compacted: list[Flight] = []
    by_key: dict[tuple, Flight] = {}

    for flight in flights:
        if not flight.is_identifiable:
            print(f"[MERGE] Dropping flight record without flight number or route (date {flight.date})")
            report.dropped_records += 1
            continue

        key = flight_key(flight)
        already_added = by_key.get(key)
        if already_added is None:
            build_passengers_array(flight)
            compacted.append(flight)
            by_key[key] = flight
        else:
            add_passengers(already_added, flight, report, mark_upload=False)

    return compacted


def _hotels_match(new_hotel: Hotel, other: Hotel) -> bool:
    confirmation = _norm(new_hotel.confirmation_number)
    if confirmation:
        return _norm(other.confirmation_number) == confirmation

    name = _norm(new_hotel.name)
    check_in, check_out = new_hotel.check_in.date, new_hotel.check_out.date
    if not (name and check_in and check_out):
        return False
    return (
        _norm(other.name) == name
        and other.check_in.date == check_in
        and other.check_out.date == check_out
    )


def dedupe_hotels(new_hotels: Iterable[Hotel], existing_hotels: list[Hotel], report: MergeReport) -> list[Hotel]:
    """Drop hotels already present in the trip or earlier in the batch."""
    deduplicated: list[Hotel] = []

    for hotel in new_hotels:
        if not hotel.is_identifiable:
            print("[MERGE] Dropping hotel record without name or confirmation number")
            report.dropped_records += 1
            continue

        if any(_hotels_match(hotel, h) for h in existing_hotels) or any(
            _hotels_match(hotel, h) for h in deduplicated
        ):
            print(f"[MERGE] Skipping duplicate hotel: {hotel.confirmation_number or hotel.name} ({hotel.name})")
            report.skipped_hotels += 1
            continue

        deduplicated.append(hotel)

    return deduplicated


def next_sequential_id(items: Iterable, prefix: str) -> int:
    """Next free n for ids shaped ``<prefix>-<n>``."""
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    for item in items:
        match = pattern.match(item.id or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def _flight_sort_key(flight: Flight) -> tuple:
    return (flight.date is None, flight.date or "", flight.departure_time or "")


def _hotel_sort_key(hotel: Hotel) -> tuple:
    return (hotel.check_in.date is None, hotel.check_in.date or "")


def compute_route(flights: Iterable[Flight]) -> Optional[str]:
    """Airport codes in date order, without consecutive repeats."""
    codes: list[str] = []
    for flight in sorted(flights, key=_flight_sort_key):
        if not codes and flight.departure.code:
            codes.append(flight.departure.code)
        arrival = flight.arrival.code
        if arrival and (not codes or codes[-1] != arrival):
            codes.append(arrival)
    return ROUTE_SEPARATOR.join(codes) if codes else None


def update_trip_dates(trip: Trip) -> None:
    """Recompute start/end dates and route from the trip's flights and hotels."""
    candidates = [f.date for f in trip.flights]
    for hotel in trip.hotels:
        candidates.extend([hotel.check_in.date, hotel.check_out.date])
    dates = sorted(d for d in (parse_date(c) for c in candidates) if d is not None)

    if dates:
        trip.start_date = format_date(dates[0])
        trip.end_date = format_date(dates[-1])

    trip.route = compute_route(trip.flights)


def sort_bookings(trip: Trip) -> None:
    trip.flights.sort(key=_flight_sort_key)
    trip.hotels.sort(key=_hotel_sort_key)


def _find_flight(flights: list[Flight], key: tuple) -> Optional[Flight]:
    for flight in flights:
        if flight_key(flight) == key:
            return flight
    return None


def merge(trip: Trip, batch: Iterable[ExtractedDocument]) -> MergeResult:
    """Fold a batch of extracted documents into a copy of ``trip``."""
    updated = copy.deepcopy(trip)
    report = MergeReport()
    batch = list(batch)

    new_flights = [copy.deepcopy(f) for doc in batch for f in doc.flights]
    new_hotels = [copy.deepcopy(h) for doc in batch for h in doc.hotels]

    next_flight = next_sequential_id(updated.flights, "flight")
    for flight in compact_flights(new_flights, report):
        existing = _find_flight(updated.flights, flight_key(flight))
        if existing is not None:
            report.added_passengers += add_passengers(existing, flight, report)
            continue
        flight.id = f"flight-{next_flight}"
        next_flight += 1
        updated.flights.append(flight)
        report.added_flights += 1

    next_hotel = next_sequential_id(updated.hotels, "hotel")
    for hotel in dedupe_hotels(new_hotels, updated.hotels, report):
        hotel.id = f"hotel-{next_hotel}"
        next_hotel += 1
        updated.hotels.append(hotel)
        report.added_hotels += 1

    sort_bookings(updated)
    update_trip_dates(updated)

    print(
        f"[MERGE] Trip {updated.id or '(new)'}: +{report.added_flights} flights, "
        f"+{report.added_hotels} hotels, +{report.added_passengers} passengers, "
        f"{report.skipped_flights + report.skipped_hotels} duplicates skipped"
    )
    return MergeResult(trip=updated, report=report)


def _derive_destination(trip: Trip) -> str:
    if trip.flights:
        origin = trip.flights[0].departure.code
        for flight in trip.flights:
            if flight.arrival.code and flight.arrival.code != origin:
                return flight.arrival.city or flight.arrival.code
    for hotel in trip.hotels:
        if hotel.address.city:
            return hotel.address.city
    return ""


def make_trip_id(start_date: Optional[str], destination: str) -> str:
    """Trip slug: ``YYYY-MM-<destination>``."""
    parsed = parse_date(start_date)
    prefix = f"{parsed.year:04d}-{parsed.month:02d}" if parsed else "undated"
    slug = re.sub(r"[^a-z0-9]+", "-", destination.lower())[:20].strip("-")
    return f"{prefix}-{slug or 'trip'}"


def create_trip(batch: Iterable[ExtractedDocument]) -> Trip:
    """Build a new trip from the documents of a first upload."""
    batch = list(batch)
    result = merge(Trip(id=""), batch)
    trip = result.trip

    if not trip.flights and not trip.hotels:
        raise ValidationError("Could not extract any travel data from the uploaded documents")

    destination = _derive_destination(trip)
    trip.destination = destination
    trip.id = make_trip_id(trip.start_date, destination)
    trip.title = {"it": f"Viaggio a {destination}", "en": f"{destination} Trip"}

    for doc in batch:
        if trip.passenger is None and doc.passenger is not None:
            trip.passenger = copy.deepcopy(doc.passenger)
            trip.passenger.pdf_index = None
        if trip.booking is None and doc.booking:
            trip.booking = copy.deepcopy(doc.booking)

    print(f"[MERGE] Created trip {trip.id}: {len(trip.flights)} flights, {len(trip.hotels)} hotels")
    return trip
