"""Trip operations: upload bookings, manage activities, read the timeline.

Every handler returns ``(payload, status)``. Errors come back as
``({'success': False, 'error': message}, status)`` with the status carried by
the BookingError subclass that was raised.
"""

import base64
import binascii
import functools
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import database as db
import storage
from agents.bookings.errors import (
    BookingError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from agents.bookings.merger import create_trip, merge, update_trip_dates
from agents.bookings.models import Attachment, ExtractedDocument, SourceDocument, Trip
from agents.bookings.parser import BookingParser
from agents.timeline import (
    CATEGORIES,
    apply_filters,
    build_timeline,
    present_categories,
)

from .activities import (
    apply_activity_update,
    build_activity,
    check_attachment_count,
    decode_attachments,
    new_activity_id,
    next_attachment_index,
    validate_activity_payload,
)

Response = Tuple[Dict[str, Any], int]

_parser: Optional[BookingParser] = None


def get_parser() -> BookingParser:
    """Shared BookingParser, created on first use."""
    global _parser
    if _parser is None:
        _parser = BookingParser()
    return _parser


def handle_booking_errors(func):
    """Turn a raised BookingError into an error response."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Response:
        try:
            return func(*args, **kwargs)
        except BookingError as e:
            return {'success': False, 'error': str(e)}, e.status

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_documents(files: Optional[Iterable]) -> List[SourceDocument]:
    """Accept SourceDocuments or ``{filename, content(base64), mimeType}`` dicts."""
    documents = []
    for file in files or []:
        if isinstance(file, SourceDocument):
            documents.append(file)
            continue
        if not isinstance(file, dict) or not file.get('content'):
            raise ValidationError('Each file needs a filename and content')
        content = file['content']
        if isinstance(content, str):
            try:
                content = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError):
                raise ValidationError(f"File {file.get('filename')} is not valid base64")
        documents.append(SourceDocument(
            filename=file.get('filename') or 'document.pdf',
            content=content,
            mime_type=file.get('mimeType') or 'application/pdf',
        ))
    if not documents:
        raise ValidationError('No PDF files provided')
    return documents


def _extract(documents: List[SourceDocument], parser: Optional[BookingParser]) -> List[ExtractedDocument]:
    batch = (parser or get_parser()).parse_documents(documents)
    extracted = [doc for doc in batch if not doc.error]
    if not any(not doc.is_empty for doc in extracted):
        raise ValidationError('Could not extract any travel data from the uploaded documents')
    return extracted


def _load_trip(trip_id: str) -> Trip:
    if not trip_id:
        raise ValidationError('Trip ID is required')
    row = db.get_trip_by_id(trip_id)
    if row is None:
        raise NotFoundError('Trip not found')
    return Trip.from_dict(row['trip_data'], version=row['version'])


def _save(trip: Trip, expected_version: int, uploaded: Iterable[str] = ()) -> int:
    """Persist ``trip``; on failure remove the files this request uploaded."""
    try:
        return db.save_trip(trip.id, trip.to_dict(), expected_version)
    except BookingError:
        _discard(uploaded)
        raise
    except Exception as e:
        print(f"[TRIPS] Error saving trip {trip.id}: {e}")
        _discard(uploaded)
        raise PersistenceError('Failed to save trip') from e


def _discard(paths: Iterable[str]) -> None:
    for path in paths:
        storage.delete_file(path)


def _slug(value: Optional[str]) -> str:
    return re.sub(r'[^a-z0-9]+', '-', (value or '').lower()).strip('-') or 'passenger'


def _upload_pending_files(trip: Trip, documents: List[SourceDocument]) -> List[str]:
    """Store the source PDF of every record that does not have one yet.

    New flights and hotels get their document at ``<item id>.pdf``. Passengers
    added to a flight get theirs at ``<flight id>-<name>.pdf`` unless it is the
    flight's own document. Transient upload markers are cleared afterwards.
    If any upload fails the files stored so far are removed and
    PersistenceError is raised.
    """
    uploaded: List[str] = []

    def store(index: Optional[int], item_id: str) -> Optional[str]:
        if index is None or not (0 <= index < len(documents)):
            return None
        document = documents[index]
        if document.mime_type != 'application/pdf':
            return None
        path = storage.upload_file(trip.id, item_id, document.content, document.mime_type)
        uploaded.append(path)
        return path

    try:
        for flight in trip.flights:
            if flight.pdf_index is not None and not flight.pdf_path:
                flight.pdf_path = store(flight.pdf_index, flight.id)
            for passenger in flight.passengers or []:
                if passenger.pdf_index is None or passenger.pdf_path:
                    continue
                if passenger.pdf_index == flight.pdf_index and flight.pdf_path:
                    passenger.pdf_path = flight.pdf_path
                else:
                    passenger.pdf_path = store(
                        passenger.pdf_index, f"{flight.id}-{_slug(passenger.name)}"
                    )
        for hotel in trip.hotels:
            if hotel.pdf_index is not None and not hotel.pdf_path:
                hotel.pdf_path = store(hotel.pdf_index, hotel.id)
    except Exception as e:
        print(f"[TRIPS] Error uploading documents for trip {trip.id}: {e}")
        _discard(uploaded)
        raise PersistenceError('Failed to store uploaded documents') from e

    for flight in trip.flights:
        flight.pdf_index = None
        flight.needs_pdf_upload = False
        for passenger in flight.passengers or []:
            passenger.pdf_index = None
    for hotel in trip.hotels:
        hotel.pdf_index = None

    return uploaded


def _unique_trip_id(base: str) -> str:
    trip_id, n = base, 2
    while db.trip_id_exists(trip_id):
        trip_id = f"{base}-{n}"
        n += 1
    return trip_id


def _flight_files(flight) -> List[str]:
    paths = [flight.pdf_path] if flight.pdf_path else []
    paths.extend(p.pdf_path for p in flight.passengers or [] if p.pdf_path)
    return paths


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

@handle_booking_errors
def create_trip_handler(files: List[Any], parser: Optional[BookingParser] = None) -> Response:
    """Create a new trip from a first batch of booking documents.

    Args:
        files: SourceDocuments or ``{filename, content, mimeType}`` dicts
            with base64 content
        parser: Extraction parser (defaults to the shared BookingParser)

    Returns:
        ``{'success': True, 'tripId', 'tripData', 'version'}`` or an error
    """
    documents = _to_documents(files)
    trip = create_trip(_extract(documents, parser))
    trip.id = _unique_trip_id(trip.id)

    uploaded = _upload_pending_files(trip, documents)
    try:
        version = db.add_trip(trip.to_dict())
    except BookingError:
        _discard(uploaded)
        raise

    print(f"[TRIPS] Created trip {trip.id}")
    return {
        'success': True,
        'tripId': trip.id,
        'tripData': trip.to_dict(),
        'version': version,
    }, 200


@handle_booking_errors
def add_booking_handler(
    trip_id: str,
    files: List[Any],
    parser: Optional[BookingParser] = None,
    expected_version: Optional[int] = None,
) -> Response:
    """Merge a new batch of booking documents into an existing trip.

    Duplicates are skipped, new passengers on known flights are appended.
    Nothing is saved if the trip changed since ``expected_version``.
    """
    documents = _to_documents(files)
    trip = _load_trip(trip_id)
    version = trip.version if expected_version is None else expected_version

    result = merge(trip, _extract(documents, parser))
    uploaded = _upload_pending_files(result.trip, documents)
    new_version = _save(result.trip, version, uploaded)

    report = result.report
    print(
        f"[TRIPS] Trip {trip_id}: added {report.added_flights} flights, "
        f"{report.added_hotels} hotels, {report.added_passengers} passengers"
    )
    return {
        'success': True,
        'tripData': result.trip.to_dict(),
        'version': new_version,
        **report.to_dict(),
    }, 200


@handle_booking_errors
def delete_passenger_handler(trip_id: str, booking_reference: str, passenger_name: str) -> Response:
    """Remove a passenger from every flight of one booking.

    Flights left without passengers are removed and the trip dates recomputed.
    """
    if not passenger_name:
        raise ValidationError('Passenger name is required')
    if not booking_reference:
        raise ValidationError('Booking reference is required')

    trip = _load_trip(trip_id)
    reference = booking_reference.strip().lower()
    name = passenger_name.strip().lower()

    removed = 0
    files: List[str] = []
    for flight in trip.flights:
        if (flight.booking_reference or '').strip().lower() != reference or not flight.passengers:
            continue
        for i, passenger in enumerate(flight.passengers):
            if (passenger.name or '').strip().lower() == name:
                # The flight's own document stays while the flight does
                if passenger.pdf_path and passenger.pdf_path != flight.pdf_path:
                    files.append(passenger.pdf_path)
                del flight.passengers[i]
                removed += 1
                print(f"[TRIPS] Removed passenger {passenger_name} from flight {flight.flight_number} on {flight.date}")
                break

    if removed == 0:
        raise NotFoundError('Passenger not found in any flight with this booking reference')

    empty = [
        f for f in trip.flights
        if (f.booking_reference or '').strip().lower() == reference and f.passengers == []
    ]
    for flight in empty:
        print(f"[TRIPS] Removing flight {flight.flight_number} on {flight.date} (no passengers remaining)")
        files.extend(_flight_files(flight))
    if empty:
        trip.flights = [f for f in trip.flights if not any(f is e for e in empty)]
        update_trip_dates(trip)

    version = _save(trip, trip.version)
    _discard(dict.fromkeys(files))

    return {
        'success': True,
        'removedCount': removed,
        'removedFlights': len(empty),
        'tripData': trip.to_dict(),
        'version': version,
    }, 200


@handle_booking_errors
def delete_booking_handler(trip_id: str, booking_type: str, booking_id: str) -> Response:
    """Delete one flight or hotel by id."""
    if booking_type not in ('flight', 'hotel'):
        raise ValidationError('Type must be "flight" or "hotel"')
    if not booking_id:
        raise ValidationError('Item ID is required')

    trip = _load_trip(trip_id)

    if booking_type == 'flight':
        target = next((f for f in trip.flights if f.id == booking_id), None)
        if target is None:
            raise NotFoundError('Flight not found')
        trip.flights = [f for f in trip.flights if f.id != booking_id]
        files = _flight_files(target)
    else:
        target = next((h for h in trip.hotels if h.id == booking_id), None)
        if target is None:
            raise NotFoundError('Hotel not found')
        trip.hotels = [h for h in trip.hotels if h.id != booking_id]
        files = [target.pdf_path] if target.pdf_path else []

    update_trip_dates(trip)
    version = _save(trip, trip.version)
    _discard(dict.fromkeys(files))

    print(f"[TRIPS] Deleted {booking_type} {booking_id} from trip {trip_id}")
    return {'success': True, 'tripData': trip.to_dict(), 'version': version}, 200


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

@handle_booking_errors
def get_trip_handler(trip_id: str) -> Response:
    trip = _load_trip(trip_id)
    return {'success': True, 'tripData': trip.to_dict(), 'version': trip.version}, 200


def list_trips_handler() -> Response:
    return {'success': True, 'trips': db.list_trips()}, 200


@handle_booking_errors
def get_timeline_handler(
    trip_id: str,
    categories: Optional[Iterable[str]] = None,
    query: str = '',
) -> Response:
    """Day-by-day timeline of a trip, optionally filtered.

    ``categories=None`` keeps every category present in the trip.
    """
    trip = _load_trip(trip_id)
    timeline = build_timeline(trip)
    present = present_categories(timeline)
    active = present if categories is None else [c for c in categories if c]
    grouped = apply_filters(timeline.grouped, active, query or '')

    return {
        'success': True,
        'allDates': timeline.all_dates,
        'grouped': {day: [e.to_dict() for e in events] for day, events in grouped.items()},
        'categories': [{'key': key, 'label': dict(CATEGORIES[key])} for key in present],
        'activeCategories': [c for c in present if c in set(active)],
        'query': query or '',
    }, 200


@handle_booking_errors
def rename_trip_handler(trip_id: str, title: Any) -> Response:
    """Set the trip title. A plain string is used for both languages."""
    if isinstance(title, str):
        title = {'it': title, 'en': title}
    if not isinstance(title, dict):
        raise ValidationError('Title is required')
    title = {lang: (title.get(lang) or '').strip() for lang in ('it', 'en')}
    if not title['it'] and not title['en']:
        raise ValidationError('Title is required')
    title = {'it': title['it'] or title['en'], 'en': title['en'] or title['it']}

    trip = _load_trip(trip_id)
    try:
        version = db.rename_trip(trip_id, title, trip.version)
    except BookingError:
        raise
    except Exception as e:
        print(f"[TRIPS] Error renaming trip {trip_id}: {e}")
        raise PersistenceError('Failed to rename trip') from e

    return {'success': True, 'title': title, 'version': version}, 200


@handle_booking_errors
def delete_trip_handler(trip_id: str) -> Response:
    if not trip_id:
        raise ValidationError('Trip ID is required')
    if not db.delete_trip(trip_id):
        raise NotFoundError('Trip not found')
    storage.delete_trip_files(trip_id)
    print(f"[TRIPS] Deleted trip {trip_id}")
    return {'success': True}, 200


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

@handle_booking_errors
def create_activity_handler(
    trip_id: str,
    activity: Dict[str, Any],
    attachments: Optional[List[Dict[str, Any]]] = None,
) -> Response:
    """Add a user-authored activity, uploading its attachments.

    Everything is validated before any upload or change to the trip.
    """
    validate_activity_payload(activity)
    uploads = decode_attachments(attachments)
    check_attachment_count(0, len(uploads))

    trip = _load_trip(trip_id)
    new_activity = build_activity(activity, new_activity_id(trip))

    uploaded: List[str] = []
    try:
        for index, upload in enumerate(uploads):
            path = storage.upload_file(trip.id, new_activity.id, upload.content, upload.type, index=index)
            uploaded.append(path)
            new_activity.attachments.append(_attachment(upload, path))
    except Exception as e:
        print(f"[TRIPS] Error uploading attachment for {new_activity.id}: {e}")
        _discard(uploaded)
        raise PersistenceError('Failed to upload attachment') from e

    trip.activities.append(new_activity)
    version = _save(trip, trip.version, uploaded)

    print(f"[TRIPS] Added activity {new_activity.id} to trip {trip_id}")
    return {'success': True, 'activity': new_activity.to_dict(), 'version': version}, 200


@handle_booking_errors
def update_activity_handler(
    trip_id: str,
    activity_id: str,
    activity: Optional[Dict[str, Any]] = None,
    attachments: Optional[List[Dict[str, Any]]] = None,
    removed_attachments: Optional[List[str]] = None,
) -> Response:
    """Edit an activity: change fields, drop attachments, add new ones."""
    if not activity_id:
        raise ValidationError('activityId is required')

    trip = _load_trip(trip_id)
    existing = trip.find_activity(activity_id)
    if existing is None:
        raise NotFoundError('Activity not found')

    updated = apply_activity_update(existing, activity)
    uploads = decode_attachments(attachments)

    removed = set(removed_attachments or [])
    updated.attachments = [a for a in updated.attachments if a.path not in removed]
    check_attachment_count(len(updated.attachments), len(uploads))

    uploaded: List[str] = []
    index = next_attachment_index(existing)
    try:
        for upload in uploads:
            path = storage.upload_file(trip.id, activity_id, upload.content, upload.type, index=index)
            uploaded.append(path)
            updated.attachments.append(_attachment(upload, path))
            index += 1
    except Exception as e:
        print(f"[TRIPS] Error uploading attachment for {activity_id}: {e}")
        _discard(uploaded)
        raise PersistenceError('Failed to upload attachment') from e

    trip.activities = [updated if a.id == activity_id else a for a in trip.activities]
    version = _save(trip, trip.version, uploaded)
    _discard(a.path for a in existing.attachments if a.path in removed)

    return {'success': True, 'activity': updated.to_dict(), 'version': version}, 200


@handle_booking_errors
def delete_activity_handler(trip_id: str, activity_id: str) -> Response:
    if not activity_id:
        raise ValidationError('activityId is required')

    trip = _load_trip(trip_id)
    existing = trip.find_activity(activity_id)
    if existing is None:
        raise NotFoundError('Activity not found')

    trip.activities = [a for a in trip.activities if a.id != activity_id]
    version = _save(trip, trip.version)
    _discard(a.path for a in existing.attachments)

    print(f"[TRIPS] Deleted activity {activity_id} from trip {trip_id}")
    return {'success': True, 'version': version}, 200


def _attachment(upload, path: str) -> Attachment:
    return Attachment(name=upload.name, path=path, type=upload.type, size=upload.size)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

@handle_booking_errors
def get_attachment_url_handler(path: str, expires_in: int = storage.DEFAULT_URL_EXPIRY) -> Response:
    """Signed, expiring download URL for a stored booking or activity file."""
    if not path:
        raise ValidationError('Path is required')
    if not storage.is_valid_path(path):
        raise ValidationError('Invalid path format')
    return {'success': True, 'url': storage.get_signed_url(path, expires_in)}, 200
