"""Record builders and a fake extraction parser shared by the tests."""

from types import SimpleNamespace

from agents.bookings.models import ExtractedDocument, SourceDocument
from agents.bookings.normalizer import normalize_document


def flight_record(
    flight_number="AZ1782",
    date="2026-06-15",
    booking_reference="YPPN5D",
    departure="FCO",
    arrival="NRT",
    departure_time="10:30",
    ticket_number=None,
    passenger=None,
    **extra,
):
    record = {
        "date": date,
        "flightNumber": flight_number,
        "airline": "ITA Airways",
        "departure": {"code": departure, "city": CITY_NAMES.get(departure, departure), "airport": None},
        "arrival": {"code": arrival, "city": CITY_NAMES.get(arrival, arrival), "airport": None},
        "departureTime": departure_time,
        "arrivalTime": "07:15",
        "bookingReference": booking_reference,
        "ticketNumber": ticket_number,
    }
    if passenger is not None:
        record["passenger"] = passenger
    record.update(extra)
    return record


def hotel_record(
    name="Hotel Gracery Shinjuku",
    check_in="2026-06-16",
    check_out="2026-06-19",
    confirmation_number="5512345678",
    city="Tokyo",
    check_in_time="15:00",
    check_out_time="11:00",
    **extra,
):
    record = {
        "name": name,
        "address": {
            "street": "1-19-1 Kabukicho",
            "city": city,
            "country": "Japan",
            "fullAddress": f"1-19-1 Kabukicho, Shinjuku, {city}, Japan",
        },
        "checkIn": {"date": check_in, "time": check_in_time},
        "checkOut": {"date": check_out, "time": check_out_time},
        "nights": 3,
        "rooms": 1,
        "confirmationNumber": confirmation_number,
    }
    record.update(extra)
    return record


CITY_NAMES = {
    "FCO": "Rome",
    "NRT": "Tokyo",
    "HND": "Tokyo",
    "KIX": "Osaka",
    "MXP": "Milan",
}


def extracted(index=0, flights=(), hotels=(), passenger=None, booking=None, filename=""):
    """Normalize a raw extraction result the way the parser would."""
    raw = {"flights": list(flights), "hotels": list(hotels)}
    if passenger is not None:
        raw["passenger"] = passenger
    if booking is not None:
        raw["booking"] = booking
    return normalize_document(raw, index, filename=filename)


def pdf(filename):
    return SourceDocument(filename=filename, content=b"%PDF-1.4 " + filename.encode(), mime_type="application/pdf")


class FakeParser:
    """Stands in for BookingParser: canned raw results keyed by filename.

    A value that is an Exception marks that file as failed.
    """

    def __init__(self, results):
        self.results = results
        self.calls = []

    def parse_documents(self, documents):
        self.calls.append([d.filename for d in documents])
        batch = []
        for index, document in enumerate(documents):
            raw = self.results.get(document.filename, {})
            if isinstance(raw, Exception):
                batch.append(ExtractedDocument(index=index, filename=document.filename, error=str(raw)))
            else:
                batch.append(normalize_document(raw, index, filename=document.filename))
        return batch


class FakeMessages:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return SimpleNamespace(content=[SimpleNamespace(text=reply)])


class FakeAnthropic:
    """Minimal stand-in for anthropic.Anthropic returning canned replies."""

    def __init__(self, *replies):
        self.messages = FakeMessages(replies)
