"""Turn raw extraction output into the canonical booking shapes.

The extractor returns loosely-typed JSON: a passenger may sit on the document
rather than on each flight, a ticket number may live only at flight level, and
older hotel records use ``roomType`` instead of ``roomTypes``. Everything
downstream of this module sees one shape: flights always carry a
``passengers`` list and every record knows which uploaded document it came
from.
"""

from __future__ import annotations

import copy
from typing import Optional

from .models import ExtractedDocument, Flight, Hotel, Passenger


def build_passenger_entry(passenger: Passenger, flight: Flight) -> Passenger:
    """Copy a passenger, falling back to the flight-level ticket number.

    A passenger that already knows its source document keeps it; the flight's
    document index only fills in a missing one.
    """
    entry = copy.deepcopy(passenger)
    entry.ticket_number = passenger.ticket_number or flight.ticket_number or None
    if entry.pdf_index is None and flight.pdf_index is not None:
        entry.pdf_index = flight.pdf_index
    return entry


def build_passengers_array(flight: Flight) -> list[Passenger]:
    """Return the flight's passengers list, creating or backfilling it.

    - Existing list: passengers lacking a ticket number get the flight-level
      one. A passenger's own ticket number is never overwritten.
    - Legacy singular passenger: a one-element list built from it.
    - Neither: an empty list.

    The list is also stored on ``flight.passengers``.
    """
    if flight.passengers is not None:
        for passenger in flight.passengers:
            if not passenger.ticket_number and flight.ticket_number:
                passenger.ticket_number = flight.ticket_number
        return flight.passengers

    if flight.passenger is not None:
        flight.passengers = [build_passenger_entry(flight.passenger, flight)]
    else:
        flight.passengers = []
    return flight.passengers


def normalize_flight(
    raw: dict,
    passenger: Optional[Passenger] = None,
    pdf_index: Optional[int] = None,
) -> Flight:
    """Build a canonical Flight from one extracted flight record."""
    flight = Flight.from_dict(raw)
    if pdf_index is not None:
        flight.pdf_index = pdf_index
    if flight.passenger is None and passenger is not None:
        flight.passenger = copy.deepcopy(passenger)
    build_passengers_array(flight)
    return flight


def normalize_hotel(raw: dict, pdf_index: Optional[int] = None) -> Hotel:
    """Build a canonical Hotel from one extracted hotel record."""
    hotel = Hotel.from_dict(raw)
    if pdf_index is not None:
        hotel.pdf_index = pdf_index
    return hotel


def normalize_document(raw: Optional[dict], pdf_index: int, filename: str = "") -> ExtractedDocument:
    """Normalize one extraction result (``{flights, hotels, passenger, booking}``)."""
    raw = raw or {}

    passenger = None
    if isinstance(raw.get("passenger"), dict) and raw["passenger"].get("name"):
        passenger = Passenger.from_dict(raw["passenger"])

    flights = [
        normalize_flight(f, passenger=passenger, pdf_index=pdf_index)
        for f in raw.get("flights") or []
        if isinstance(f, dict)
    ]
    hotels = [
        normalize_hotel(h, pdf_index=pdf_index)
        for h in raw.get("hotels") or []
        if isinstance(h, dict)
    ]

    booking = raw.get("booking") if isinstance(raw.get("booking"), dict) else None

    return ExtractedDocument(
        index=pdf_index,
        filename=filename,
        flights=flights,
        hotels=hotels,
        passenger=passenger,
        booking=copy.deepcopy(booking),
    )
