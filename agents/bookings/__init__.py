"""Bookings Agent - Extract, normalize and merge flight and hotel bookings."""

from .errors import (
    BookingError,
    ConflictError,
    ExtractionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .merger import MergeReport, MergeResult, create_trip, merge, update_trip_dates
from .models import Activity, ExtractedDocument, Flight, Hotel, Passenger, SourceDocument, Trip
from .normalizer import build_passenger_entry, build_passengers_array, normalize_document
from .parser import BookingParser

__all__ = [
    "BookingError",
    "ConflictError",
    "ExtractionError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "MergeReport",
    "MergeResult",
    "create_trip",
    "merge",
    "update_trip_dates",
    "Activity",
    "ExtractedDocument",
    "Flight",
    "Hotel",
    "Passenger",
    "SourceDocument",
    "Trip",
    "build_passenger_entry",
    "build_passengers_array",
    "normalize_document",
    "BookingParser",
]
