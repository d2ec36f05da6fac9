"""Plain-text rendering of a trip timeline."""

from __future__ import annotations

from typing import Optional

from agents.bookings.models import Trip, parse_date

from .builder import EVENT_ACTIVITY, EVENT_CHECKIN, EVENT_CHECKOUT, EVENT_FLIGHT, Event, Timeline
from .categories import category_label, event_category_key


def _describe(event: Event, lang: str) -> str:
    data = event.data
    if event.type == EVENT_FLIGHT:
        route = f"{data.departure.code or '?'} -> {data.arrival.code or '?'}"
        line = f"{data.flight_number or 'Flight'} {route}"
        if data.arrival_time:
            line += f" (arr. {data.arrival_time}{' +1' if data.arrival_next_day else ''})"
        names = [p.name for p in data.passengers or [] if p.name]
        if names:
            line += f" - {', '.join(names)}"
        return line
    if event.type == EVENT_CHECKIN:
        return f"Check-in: {data.name}"
    if event.type == EVENT_CHECKOUT:
        return f"Check-out: {data.name}"
    if event.type == EVENT_ACTIVITY:
        label = category_label(event_category_key(event), lang)
        line = f"{data.name} [{label}]"
        if data.address:
            line += f" @ {data.address}"
        return line
    return f"Staying at {data.name}"


def format_timeline(timeline: Timeline, trip: Optional[Trip] = None, lang: str = "en") -> str:
    """Readable day-by-day listing, one line per event."""
    lines = []

    if trip is not None:
        lines.append(trip.title.get(lang) or trip.title.get("en") or trip.id)
        if trip.start_date and trip.end_date:
            lines.append(f"{trip.start_date} to {trip.end_date}")
        if trip.route:
            lines.append(f"Route: {trip.route}")
        lines.append("")

    if timeline.is_empty:
        lines.append("No bookings yet.")
        return "\n".join(lines)

    for day in timeline.all_dates:
        parsed = parse_date(day)
        heading = parsed.strftime("%A, %B %d, %Y") if parsed else day
        lines.append(f"--- {heading} ---")
        events = timeline.grouped.get(day, [])
        if not events:
            lines.append("  (nothing planned)")
        for event in events:
            time_str = event.time or "     "
            lines.append(f"  {time_str}  {_describe(event, lang)}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
