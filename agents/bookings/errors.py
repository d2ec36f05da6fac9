"""Exceptions raised by the booking and trip operations."""


class BookingError(Exception):
    """Base class for trip/booking errors."""

    status = 500


class ValidationError(BookingError):
    """Missing, oversized or malformed input. Nothing was changed."""

    status = 400


class NotFoundError(BookingError):
    """A trip, booking, passenger or activity id did not resolve."""

    status = 404


class ConflictError(BookingError):
    """The stored trip advanced past the version this change was based on."""

    status = 409


class PersistenceError(BookingError):
    """Saving the trip failed; the in-memory result was discarded."""

    status = 500


class ExtractionError(BookingError):
    """A single document could not be parsed."""

    status = 422
