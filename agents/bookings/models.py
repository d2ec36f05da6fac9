"""Data models for trips and the bookings inside them.

Every model mirrors one object of the persisted trip document. ``from_dict``
accepts the camelCase JSON shape (as stored and as produced by the extractor)
and ``to_dict`` writes it back. Keys a model does not know about are kept in
``extra`` so a load/save cycle never drops data.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional, Union


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string to a date object."""
    if not date_str or not isinstance(date_str, str):
        return None
    try:
        return datetime.strptime(date_str[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD from its calendar components."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _clean(value: Any) -> Any:
    """Turn empty strings into None."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _extra(data: dict, known: set) -> dict:
    return {k: copy.deepcopy(v) for k, v in data.items() if k not in known}


@dataclass
class Endpoint:
    """One end of a flight."""

    code: Optional[str] = None
    city: Optional[str] = None
    airport: Optional[str] = None
    terminal: Optional[str] = None
    extra: dict = field(default_factory=dict)

    KEYS = {"code", "city", "airport", "terminal"}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Endpoint":
        data = data or {}
        return cls(
            code=_clean(data.get("code")),
            city=_clean(data.get("city")),
            airport=_clean(data.get("airport")),
            terminal=_clean(data.get("terminal")),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "code": self.code,
            "city": self.city,
            "airport": self.airport,
            "terminal": self.terminal,
        }


@dataclass
class Passenger:
    """A traveler on a flight."""

    name: Optional[str] = None
    type: Optional[str] = None  # ADT, CHD, INF
    ticket_number: Optional[str] = None
    pdf_index: Optional[int] = None
    pdf_path: Optional[str] = None
    extra: dict = field(default_factory=dict)

    KEYS = {"name", "type", "ticketNumber", "_pdfIndex", "pdfPath"}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Passenger":
        data = data or {}
        return cls(
            name=_clean(data.get("name")),
            type=_clean(data.get("type")),
            ticket_number=_clean(data.get("ticketNumber")),
            pdf_index=data.get("_pdfIndex"),
            pdf_path=_clean(data.get("pdfPath")),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        result = {
            **self.extra,
            "name": self.name,
            "type": self.type,
            "ticketNumber": self.ticket_number,
        }
        if self.pdf_index is not None:
            result["_pdfIndex"] = self.pdf_index
        if self.pdf_path:
            result["pdfPath"] = self.pdf_path
        return result


@dataclass
class Flight:
    """A single flight segment."""

    date: Optional[str] = None
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    operated_by: Optional[str] = None
    departure: Endpoint = field(default_factory=Endpoint)
    arrival: Endpoint = field(default_factory=Endpoint)
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    arrival_next_day: bool = False
    duration: Optional[str] = None
    booking_reference: Optional[str] = None
    ticket_number: Optional[str] = None
    # None means the document never had a passengers array (legacy shape)
    passengers: Optional[list[Passenger]] = None
    passenger: Optional[Passenger] = None
    id: Optional[str] = None
    pdf_path: Optional[str] = None
    pdf_index: Optional[int] = None
    needs_pdf_upload: bool = False
    extra: dict = field(default_factory=dict)

    KEYS = {
        "date", "flightNumber", "airline", "operatedBy", "departure", "arrival",
        "departureTime", "arrivalTime", "arrivalNextDay", "duration",
        "bookingReference", "ticketNumber", "passengers", "passenger", "id",
        "pdfPath", "_pdfIndex", "_needsPdfUpload",
    }

    @property
    def is_identifiable(self) -> bool:
        return bool(self.flight_number or (self.departure.code and self.arrival.code))

    @classmethod
    def from_dict(cls, data: dict) -> "Flight":
        passengers = data.get("passengers")
        passenger = data.get("passenger")
        return cls(
            date=_clean(data.get("date")),
            flight_number=_clean(data.get("flightNumber")),
            airline=_clean(data.get("airline")),
            operated_by=_clean(data.get("operatedBy")),
            departure=Endpoint.from_dict(data.get("departure")),
            arrival=Endpoint.from_dict(data.get("arrival")),
            departure_time=_clean(data.get("departureTime")),
            arrival_time=_clean(data.get("arrivalTime")),
            arrival_next_day=bool(data.get("arrivalNextDay", False)),
            duration=_clean(data.get("duration")),
            booking_reference=_clean(data.get("bookingReference")),
            ticket_number=_clean(data.get("ticketNumber")),
            passengers=(
                [Passenger.from_dict(p) for p in passengers if isinstance(p, dict)]
                if isinstance(passengers, list) else None
            ),
            passenger=Passenger.from_dict(passenger) if isinstance(passenger, dict) else None,
            id=data.get("id"),
            pdf_path=_clean(data.get("pdfPath")),
            pdf_index=data.get("_pdfIndex"),
            needs_pdf_upload=bool(data.get("_needsPdfUpload", False)),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        result = {
            **self.extra,
            "id": self.id,
            "date": self.date,
            "flightNumber": self.flight_number,
            "airline": self.airline,
            "operatedBy": self.operated_by,
            "departure": self.departure.to_dict(),
            "arrival": self.arrival.to_dict(),
            "departureTime": self.departure_time,
            "arrivalTime": self.arrival_time,
            "arrivalNextDay": self.arrival_next_day,
            "duration": self.duration,
            "bookingReference": self.booking_reference,
            "ticketNumber": self.ticket_number,
        }
        if self.passengers is not None:
            result["passengers"] = [p.to_dict() for p in self.passengers]
        if self.passenger is not None:
            result["passenger"] = self.passenger.to_dict()
        if self.pdf_path:
            result["pdfPath"] = self.pdf_path
        if self.pdf_index is not None:
            result["_pdfIndex"] = self.pdf_index
        if self.needs_pdf_upload:
            result["_needsPdfUpload"] = True
        return result


@dataclass
class HotelAddress:
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    full_address: Optional[str] = None
    extra: dict = field(default_factory=dict)

    KEYS = {"street", "city", "state", "postalCode", "country", "fullAddress"}

    @property
    def text(self) -> str:
        """Single-line address for display and search."""
        if self.full_address:
            return self.full_address
        parts = [self.street, self.postal_code, self.city, self.state, self.country]
        return ", ".join(p for p in parts if p)

    @classmethod
    def from_dict(cls, data: Union[dict, str, None]) -> "HotelAddress":
        if isinstance(data, str):
            return cls(full_address=_clean(data))
        data = data or {}
        return cls(
            street=_clean(data.get("street")),
            city=_clean(data.get("city")),
            state=_clean(data.get("state")),
            postal_code=_clean(data.get("postalCode")),
            country=_clean(data.get("country")),
            full_address=_clean(data.get("fullAddress")),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
            "country": self.country,
            "fullAddress": self.full_address,
        }


@dataclass
class StayPoint:
    """Check-in or check-out moment."""

    date: Optional[str] = None
    time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "StayPoint":
        data = data if isinstance(data, dict) else {}
        return cls(date=_clean(data.get("date")), time=_clean(data.get("time")))

    def to_dict(self) -> dict:
        return {"date": self.date, "time": self.time}


@dataclass
class Hotel:
    """A hotel reservation."""

    name: Optional[str] = None
    address: HotelAddress = field(default_factory=HotelAddress)
    check_in: StayPoint = field(default_factory=StayPoint)
    check_out: StayPoint = field(default_factory=StayPoint)
    nights: Optional[int] = None
    rooms: Optional[int] = None
    room_types: list = field(default_factory=list)
    guest_name: Optional[str] = None
    confirmation_number: Optional[str] = None
    id: Optional[str] = None
    pdf_path: Optional[str] = None
    pdf_index: Optional[int] = None
    extra: dict = field(default_factory=dict)

    KEYS = {
        "name", "address", "checkIn", "checkOut", "nights", "rooms", "roomType",
        "roomTypes", "guestName", "confirmationNumber", "id", "pdfPath", "_pdfIndex",
    }

    @property
    def is_identifiable(self) -> bool:
        return bool(self.name or self.confirmation_number)

    @classmethod
    def from_dict(cls, data: dict) -> "Hotel":
        # Older documents carry a single roomType instead of the roomTypes list
        room_types = data.get("roomTypes")
        if not isinstance(room_types, list):
            room_types = [data["roomType"]] if data.get("roomType") else []
        return cls(
            name=_clean(data.get("name")),
            address=HotelAddress.from_dict(data.get("address")),
            check_in=StayPoint.from_dict(data.get("checkIn")),
            check_out=StayPoint.from_dict(data.get("checkOut")),
            nights=data.get("nights"),
            rooms=data.get("rooms"),
            room_types=copy.deepcopy(room_types),
            guest_name=_clean(data.get("guestName")),
            confirmation_number=_clean(data.get("confirmationNumber")),
            id=data.get("id"),
            pdf_path=_clean(data.get("pdfPath")),
            pdf_index=data.get("_pdfIndex"),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        result = {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "address": self.address.to_dict(),
            "checkIn": self.check_in.to_dict(),
            "checkOut": self.check_out.to_dict(),
            "nights": self.nights,
            "rooms": self.rooms,
            "roomTypes": copy.deepcopy(self.room_types),
            "guestName": self.guest_name,
            "confirmationNumber": self.confirmation_number,
        }
        if self.pdf_path:
            result["pdfPath"] = self.pdf_path
        if self.pdf_index is not None:
            result["_pdfIndex"] = self.pdf_index
        return result


@dataclass
class Attachment:
    name: str
    path: str
    type: str
    size: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            type=data.get("type", ""),
            size=data.get("size", 0) or 0,
        )

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "type": self.type, "size": self.size}


@dataclass
class Activity:
    """A user-authored timeline entry."""

    id: str
    name: str
    date: str
    description: str = ""
    address: str = ""
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    urls: list[str] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    location: Optional[dict] = None
    category: Optional[str] = None
    extra: dict = field(default_factory=dict)

    KEYS = {
        "id", "name", "date", "description", "address", "startTime", "endTime",
        "urls", "attachments", "location", "category",
    }

    @classmethod
    def from_dict(cls, data: dict) -> "Activity":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            date=data.get("date", ""),
            description=data.get("description") or "",
            address=data.get("address") or "",
            start_time=_clean(data.get("startTime")),
            end_time=_clean(data.get("endTime")),
            urls=list(data.get("urls") or []),
            attachments=[Attachment.from_dict(a) for a in data.get("attachments") or []],
            location=copy.deepcopy(data.get("location")),
            category=_clean(data.get("category")),
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "urls": list(self.urls),
            "attachments": [a.to_dict() for a in self.attachments],
            "location": copy.deepcopy(self.location),
            "category": self.category,
        }


@dataclass
class Trip:
    """A trip aggregate: the unit of persistence."""

    id: str
    title: dict = field(default_factory=dict)  # {"it": ..., "en": ...}
    destination: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    route: Optional[str] = None
    flights: list[Flight] = field(default_factory=list)
    hotels: list[Hotel] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    passenger: Optional[Passenger] = None
    booking: Optional[dict] = None
    version: int = 0
    extra: dict = field(default_factory=dict)

    KEYS = {
        "id", "title", "destination", "startDate", "endDate", "route", "flights",
        "hotels", "activities", "passenger", "booking",
    }

    @property
    def has_bookings(self) -> bool:
        return bool(self.flights or self.hotels or self.activities)

    def find_activity(self, activity_id: str) -> Optional[Activity]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    @classmethod
    def from_dict(cls, data: dict, version: int = 0) -> "Trip":
        title = data.get("title")
        if isinstance(title, str):
            title = {"it": title, "en": title}
        passenger = data.get("passenger")
        return cls(
            id=data.get("id", ""),
            title=copy.deepcopy(title) if title else {},
            destination=data.get("destination") or "",
            start_date=_clean(data.get("startDate")),
            end_date=_clean(data.get("endDate")),
            route=_clean(data.get("route")),
            flights=[Flight.from_dict(f) for f in data.get("flights") or []],
            hotels=[Hotel.from_dict(h) for h in data.get("hotels") or []],
            activities=[Activity.from_dict(a) for a in data.get("activities") or []],
            passenger=Passenger.from_dict(passenger) if isinstance(passenger, dict) else None,
            booking=copy.deepcopy(data.get("booking")),
            version=version,
            extra=_extra(data, cls.KEYS),
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "title": copy.deepcopy(self.title),
            "destination": self.destination,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "route": self.route,
            "passenger": self.passenger.to_dict() if self.passenger else None,
            "flights": [f.to_dict() for f in self.flights],
            "hotels": [h.to_dict() for h in self.hotels],
            "activities": [a.to_dict() for a in self.activities],
            "booking": copy.deepcopy(self.booking),
        }


@dataclass
class SourceDocument:
    """An uploaded file waiting to be parsed."""

    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass
class ExtractedDocument:
    """Normalized records extracted from one uploaded document."""

    index: int
    filename: str = ""
    flights: list[Flight] = field(default_factory=list)
    hotels: list[Hotel] = field(default_factory=list)
    passenger: Optional[Passenger] = None
    booking: Optional[dict] = None
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.flights and not self.hotels
