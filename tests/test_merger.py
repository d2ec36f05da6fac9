import pytest

from agents.bookings.errors import ValidationError
from agents.bookings.merger import (
    MergeReport,
    compute_route,
    create_trip,
    dedupe_hotels,
    make_trip_id,
    merge,
    next_sequential_id,
    update_trip_dates,
)
from agents.bookings.models import Flight, Hotel, Trip

from helpers import extracted, flight_record, hotel_record


def flight(**kwargs):
    return Flight.from_dict(flight_record(**kwargs))


def hotel(**kwargs):
    return Hotel.from_dict(hotel_record(**kwargs))


class TestDedupeHotels:
    def test_same_confirmation_number_is_duplicate(self):
        report = MergeReport()
        existing = [hotel(confirmation_number="ABC123")]

        result = dedupe_hotels([hotel(name="Other Name", confirmation_number="abc123")], existing, report)

        assert result == []
        assert report.skipped_hotels == 1

    def test_without_confirmation_matches_on_name_and_dates(self):
        report = MergeReport()
        existing = [hotel(confirmation_number=None)]

        same = hotel(name="hotel gracery shinjuku", confirmation_number=None)
        other_dates = hotel(confirmation_number=None, check_in="2026-06-20", check_out="2026-06-22")

        result = dedupe_hotels([same, other_dates], existing, report)

        assert result == [other_dates]
        assert report.skipped_hotels == 1

    def test_duplicates_within_one_batch(self):
        report = MergeReport()

        result = dedupe_hotels([hotel(), hotel()], [], report)

        assert len(result) == 1
        assert report.skipped_hotels == 1

    def test_hotel_without_name_or_confirmation_is_dropped(self):
        report = MergeReport()

        result = dedupe_hotels([hotel(name=None, confirmation_number=None)], [], report)

        assert result == []
        assert report.dropped_records == 1


def test_next_sequential_id_ignores_foreign_ids():
    items = [Flight(id="flight-2"), Flight(id="flight-7"), Flight(id="custom"), Flight(id=None)]

    assert next_sequential_id(items, "flight") == 8
    assert next_sequential_id([], "hotel") == 1


class TestRoute:
    def test_route_in_date_order(self):
        flights = [
            flight(flight_number="AZ1783", date="2026-06-25", departure="NRT", arrival="FCO"),
            flight(flight_number="AZ1782", date="2026-06-15", departure="FCO", arrival="NRT"),
        ]

        assert compute_route(flights) == "FCO → NRT → FCO"

    def test_connecting_flights(self):
        flights = [
            flight(flight_number="AZ100", date="2026-06-15", departure="MXP", arrival="FCO", departure_time="07:00"),
            flight(flight_number="AZ1782", date="2026-06-15", departure="FCO", arrival="NRT", departure_time="13:00"),
        ]

        assert compute_route(flights) == "MXP → FCO → NRT"

    def test_consecutive_repeat_collapses(self):
        flights = [
            flight(flight_number="AZ608", date="2026-06-15", departure="FCO", arrival="JFK", departure_time="09:00"),
            flight(flight_number="AZ9608", date="2026-06-15", departure="JFK", arrival="JFK", departure_time="18:00"),
        ]

        assert compute_route(flights) == "FCO → JFK"

    def test_no_flights(self):
        assert compute_route([]) is None


class TestUpdateTripDates:
    def test_span_covers_flights_and_hotels(self):
        trip = Trip(
            id="t",
            flights=[flight(date="2026-06-15")],
            hotels=[hotel(check_in="2026-06-16", check_out="2026-06-19")],
        )

        update_trip_dates(trip)

        assert trip.start_date == "2026-06-15"
        assert trip.end_date == "2026-06-19"
        assert trip.route == "FCO → NRT"

    def test_no_dates_leaves_trip_unchanged(self):
        trip = Trip(id="t", start_date="2026-01-01", end_date="2026-01-05")

        update_trip_dates(trip)

        assert trip.start_date == "2026-01-01"
        assert trip.end_date == "2026-01-05"
        assert trip.route is None

    def test_unparseable_dates_are_ignored(self):
        trip = Trip(id="t", flights=[flight(date="15/06/2026"), flight(flight_number="AZ9", date="2026-06-20")])

        update_trip_dates(trip)

        assert trip.start_date == "2026-06-20"
        assert trip.end_date == "2026-06-20"


class TestMerge:
    def test_assigns_ids_and_sorts(self):
        batch = [
            extracted(index=0, flights=[flight_record(flight_number="AZ1783", date="2026-06-25",
                                                      departure="NRT", arrival="FCO",
                                                      passenger={"name": "Anna"})]),
            extracted(index=1, flights=[flight_record(passenger={"name": "Anna"})],
                      hotels=[hotel_record()]),
        ]

        result = merge(Trip(id="t"), batch)

        assert [f.flight_number for f in result.trip.flights] == ["AZ1782", "AZ1783"]
        assert sorted(f.id for f in result.trip.flights) == ["flight-1", "flight-2"]
        assert result.trip.hotels[0].id == "hotel-1"
        assert result.report.added_flights == 2
        assert result.report.added_hotels == 1

    def test_new_ids_continue_after_existing(self):
        trip = Trip(id="t", hotels=[Hotel.from_dict({**hotel_record(confirmation_number="X"), "id": "hotel-3"})])

        result = merge(trip, [extracted(hotels=[hotel_record(confirmation_number="Y")])])

        assert [h.id for h in result.trip.hotels] == ["hotel-3", "hotel-4"]

    def test_report_counts_drops_and_skips(self):
        trip = Trip(id="t", hotels=[hotel()])
        batch = [extracted(
            flights=[{"date": "2026-06-15"}],
            hotels=[hotel_record()],
        )]

        result = merge(trip, batch)

        assert result.report.dropped_records == 1
        assert result.report.skipped_hotels == 1
        assert result.report.to_dict()["droppedRecords"] == 1
        assert result.trip.flights == []

    def test_input_is_not_mutated(self):
        trip = Trip(id="t", flights=[flight(passengers=[{"name": "Anna"}], id="flight-1")])
        before = trip.to_dict()

        merge(trip, [extracted(flights=[flight_record(passenger={"name": "Luca"})])])

        assert trip.to_dict() == before

    def test_merging_twice_is_stable(self):
        batch = [extracted(flights=[flight_record(passenger={"name": "Anna"})], hotels=[hotel_record()])]

        once = merge(Trip(id="t"), batch).trip
        twice = merge(once, batch)

        assert len(twice.trip.flights) == 1
        assert len(twice.trip.hotels) == 1
        assert twice.report.added_flights == 0
        assert twice.report.skipped_flights == 1
        assert twice.report.skipped_hotels == 1


class TestCreateTrip:
    def test_builds_id_title_and_destination(self):
        batch = [extracted(
            flights=[flight_record(passenger={"name": "Brignone Agata"})],
            hotels=[hotel_record()],
            passenger={"name": "Brignone Agata", "type": "ADT"},
            booking={"totalPrice": 980, "currency": "EUR"},
        )]

        trip = create_trip(batch)

        assert trip.id == "2026-06-tokyo"
        assert trip.destination == "Tokyo"
        assert trip.title == {"it": "Viaggio a Tokyo", "en": "Tokyo Trip"}
        assert trip.start_date == "2026-06-15"
        assert trip.end_date == "2026-06-19"
        assert trip.passenger.name == "Brignone Agata"
        assert trip.passenger.pdf_index is None
        assert trip.booking == {"totalPrice": 980, "currency": "EUR"}

    def test_hotel_only_trip_uses_hotel_city(self):
        trip = create_trip([extracted(hotels=[hotel_record(city="Kyoto")])])

        assert trip.destination == "Kyoto"
        assert trip.id == "2026-06-kyoto"
        assert trip.route is None

    def test_nothing_extracted(self):
        with pytest.raises(ValidationError):
            create_trip([extracted()])


def test_make_trip_id():
    assert make_trip_id("2026-03-02", "São Paulo") == "2026-03-s-o-paulo"
    assert make_trip_id(None, "") == "undated-trip"
