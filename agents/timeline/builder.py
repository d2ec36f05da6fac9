"""Project a trip into a day-by-day timeline of events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Union

from agents.bookings.models import Activity, Flight, Hotel, Trip, format_date, parse_date

EVENT_FLIGHT = "flight"
EVENT_CHECKIN = "hotel-checkin"
EVENT_STAY = "hotel-stay"
EVENT_CHECKOUT = "hotel-checkout"
EVENT_ACTIVITY = "activity"

# Same-time tie-break: leave the hotel, fly, check in, then everything else
TYPE_PRIORITY = {
    EVENT_CHECKOUT: 0,
    EVENT_FLIGHT: 1,
    EVENT_CHECKIN: 2,
    EVENT_STAY: 3,
    EVENT_ACTIVITY: 4,
}


@dataclass
class Event:
    """A single timeline entry."""

    date: str
    time: Optional[str]
    type: str
    data: Union[Flight, Hotel, Activity]

    @property
    def is_hotel(self) -> bool:
        return self.type.startswith("hotel-")

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "type": self.type,
            "data": self.data.to_dict(),
        }


@dataclass
class Timeline:
    """Events grouped by date, plus every date the trip spans."""

    all_dates: list[str] = field(default_factory=list)
    grouped: dict[str, list[Event]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.all_dates

    def events(self):
        """Iterate events in display order."""
        for day in self.all_dates:
            yield from self.grouped.get(day, [])

    def to_dict(self) -> dict:
        return {
            "allDates": list(self.all_dates),
            "grouped": {
                day: [e.to_dict() for e in events]
                for day, events in self.grouped.items()
            },
        }


def _days_between(start: str, end: str, inclusive: bool) -> list[str]:
    """Calendar days from start to end as YYYY-MM-DD strings."""
    start_date, end_date = parse_date(start), parse_date(end)
    if start_date is None or end_date is None:
        return []
    days = []
    current = start_date
    while current < end_date or (inclusive and current == end_date):
        days.append(format_date(current))
        current += timedelta(days=1)
    return days


def _day(value: Optional[str]) -> Optional[str]:
    """Canonical YYYY-MM-DD for a stored date, None if unparseable."""
    parsed = parse_date(value)
    return format_date(parsed) if parsed else None


def _hotel_events(hotel: Hotel) -> list[Event]:
    events = []
    check_in, check_out = _day(hotel.check_in.date), _day(hotel.check_out.date)

    if check_in:
        events.append(Event(check_in, hotel.check_in.time, EVENT_CHECKIN, hotel))

    if check_in and check_out:
        # Nights in between, excluding both the check-in and check-out day
        for day in _days_between(check_in, check_out, inclusive=False)[1:]:
            events.append(Event(day, None, EVENT_STAY, hotel))

    if check_out:
        events.append(Event(check_out, hotel.check_out.time, EVENT_CHECKOUT, hotel))

    return events


def _event_sort_key(event: Event) -> tuple:
    return (
        event.time is not None,
        event.time or "",
        TYPE_PRIORITY.get(event.type, 99),
    )


def build_timeline(trip: Trip) -> Timeline:
    """Expand a trip's flights, hotels and activities into a Timeline.

    Every flight yields one event at its departure time, every activity one
    event at its start time, and every hotel a check-in, a check-out and one
    untimed stay event per night in between. Days run from the trip's start
    to end date plus any event date outside that range. Within a day untimed
    events come first, then timed events by time; equal times fall back to
    ``TYPE_PRIORITY``. Python's sort is stable so anything still tied keeps
    insertion order (flights, then hotels, then activities).
    """
    if not (trip.flights or trip.hotels or trip.activities):
        return Timeline()

    events: list[Event] = []
    for flight in trip.flights:
        day = _day(flight.date)
        if day:
            events.append(Event(day, flight.departure_time, EVENT_FLIGHT, flight))
    for hotel in trip.hotels:
        events.extend(_hotel_events(hotel))
    for activity in trip.activities:
        day = _day(activity.date)
        if day:
            events.append(Event(day, activity.start_time, EVENT_ACTIVITY, activity))

    grouped: dict[str, list[Event]] = {}
    for event in events:
        grouped.setdefault(event.date, []).append(event)

    all_dates = set()
    if trip.start_date and trip.end_date:
        all_dates.update(_days_between(trip.start_date, trip.end_date, inclusive=True))
    all_dates.update(grouped)

    for day_events in grouped.values():
        day_events.sort(key=_event_sort_key)

    return Timeline(all_dates=sorted(all_dates), grouped=grouped)
