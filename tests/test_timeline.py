from agents.bookings.models import Activity, Flight, Hotel, Trip
from agents.timeline import build_timeline, format_timeline
from agents.timeline.builder import (
    EVENT_ACTIVITY,
    EVENT_CHECKIN,
    EVENT_CHECKOUT,
    EVENT_FLIGHT,
    EVENT_STAY,
)

from helpers import flight_record, hotel_record


def make_trip(flights=(), hotels=(), activities=(), start=None, end=None):
    return Trip(
        id="2026-06-tokyo",
        title={"en": "Tokyo Trip", "it": "Viaggio a Tokyo"},
        start_date=start,
        end_date=end,
        flights=[Flight.from_dict(f) for f in flights],
        hotels=[Hotel.from_dict(h) for h in hotels],
        activities=list(activities),
    )


def activity(name, date, start_time=None, **kwargs):
    return Activity(id=f"activity-{name}", name=name, date=date, start_time=start_time, **kwargs)


def types_on(timeline, day):
    return [e.type for e in timeline.grouped.get(day, [])]


class TestHotelEvents:
    def test_stay_events_between_check_in_and_check_out(self):
        trip = make_trip(hotels=[hotel_record(check_in="2026-06-15", check_out="2026-06-18")],
                         start="2026-06-15", end="2026-06-18")

        timeline = build_timeline(trip)

        assert types_on(timeline, "2026-06-15") == [EVENT_CHECKIN]
        assert types_on(timeline, "2026-06-16") == [EVENT_STAY]
        assert types_on(timeline, "2026-06-17") == [EVENT_STAY]
        assert types_on(timeline, "2026-06-18") == [EVENT_CHECKOUT]

    def test_one_night_stay_has_no_stay_events(self):
        trip = make_trip(hotels=[hotel_record(check_in="2026-06-15", check_out="2026-06-16")])

        timeline = build_timeline(trip)

        assert [e.type for e in timeline.events()] == [EVENT_CHECKIN, EVENT_CHECKOUT]

    def test_missing_check_out(self):
        trip = make_trip(hotels=[hotel_record(check_in="2026-06-15", check_out=None)])

        timeline = build_timeline(trip)

        assert [e.type for e in timeline.events()] == [EVENT_CHECKIN]

    def test_stay_events_are_untimed(self):
        trip = make_trip(hotels=[hotel_record(check_in="2026-06-15", check_out="2026-06-17")])

        stay = build_timeline(trip).grouped["2026-06-16"][0]

        assert stay.time is None
        assert stay.is_hotel


class TestOrdering:
    def test_untimed_events_come_first(self):
        trip = make_trip(
            hotels=[hotel_record(check_in="2026-06-14", check_out="2026-06-17")],
            activities=[activity("Shibuya Crossing", "2026-06-15", "09:00")],
        )

        timeline = build_timeline(trip)

        assert types_on(timeline, "2026-06-15") == [EVENT_STAY, EVENT_ACTIVITY]

    def test_timed_events_sorted_by_time(self):
        trip = make_trip(
            flights=[flight_record(departure_time="18:45")],
            activities=[
                activity("Dinner", "2026-06-15", "21:00"),
                activity("Museum", "2026-06-15", "10:00"),
            ],
        )

        times = [e.time for e in build_timeline(trip).grouped["2026-06-15"]]

        assert times == ["10:00", "18:45", "21:00"]

    def test_same_time_uses_type_priority(self):
        trip = make_trip(
            flights=[flight_record(date="2026-06-19", departure_time="11:00")],
            hotels=[
                hotel_record(name="Second Hotel", confirmation_number="B",
                             check_in="2026-06-19", check_out="2026-06-21", check_in_time="11:00"),
                hotel_record(check_in="2026-06-16", check_out="2026-06-19", check_out_time="11:00"),
            ],
            activities=[activity("Walk", "2026-06-19", "11:00")],
        )

        timeline = build_timeline(trip)

        assert types_on(timeline, "2026-06-19") == [
            EVENT_CHECKOUT, EVENT_FLIGHT, EVENT_CHECKIN, EVENT_ACTIVITY,
        ]

    def test_untimed_activity_then_checkout_then_flight(self):
        trip = make_trip(
            flights=[flight_record(date="2026-06-19", departure_time="10:00")],
            hotels=[hotel_record(check_in="2026-06-16", check_out="2026-06-19", check_out_time="09:00")],
            activities=[activity("Pack bags", "2026-06-19")],
        )

        assert types_on(build_timeline(trip), "2026-06-19") == [
            EVENT_ACTIVITY, EVENT_CHECKOUT, EVENT_FLIGHT,
        ]

    def test_sorting_is_stable_for_full_ties(self):
        trip = make_trip(activities=[
            activity("First", "2026-06-15", "10:00"),
            activity("Second", "2026-06-15", "10:00"),
        ])

        names = [e.data.name for e in build_timeline(trip).grouped["2026-06-15"]]

        assert names == ["First", "Second"]


class TestDates:
    def test_all_dates_fills_trip_span(self):
        trip = make_trip(
            flights=[flight_record(date="2026-06-15"),
                     flight_record(flight_number="AZ1783", date="2026-06-18")],
            start="2026-06-15",
            end="2026-06-18",
        )

        timeline = build_timeline(trip)

        assert timeline.all_dates == ["2026-06-15", "2026-06-16", "2026-06-17", "2026-06-18"]
        assert "2026-06-16" not in timeline.grouped

    def test_events_outside_span_extend_dates(self):
        trip = make_trip(
            flights=[flight_record(date="2026-06-15")],
            activities=[activity("Day trip", "2026-06-20")],
            start="2026-06-15",
            end="2026-06-16",
        )

        assert build_timeline(trip).all_dates[-1] == "2026-06-20"

    def test_without_trip_dates_uses_event_dates_only(self):
        trip = make_trip(flights=[flight_record(date="2026-06-15"),
                                  flight_record(flight_number="AZ1783", date="2026-06-18")])

        assert build_timeline(trip).all_dates == ["2026-06-15", "2026-06-18"]

    def test_timestamped_dates_group_with_plain_dates(self):
        trip = make_trip(
            flights=[flight_record(date="2026-06-15T00:00:00")],
            activities=[activity("Shibuya Crossing", "2026-06-15", "18:00")],
            start="2026-06-15",
            end="2026-06-15",
        )

        timeline = build_timeline(trip)

        assert list(timeline.grouped) == ["2026-06-15"]
        assert types_on(timeline, "2026-06-15") == [EVENT_FLIGHT, EVENT_ACTIVITY]
        assert timeline.all_dates == ["2026-06-15"]

    def test_undated_flight_is_omitted(self):
        trip = make_trip(flights=[flight_record(date=None)])

        timeline = build_timeline(trip)

        assert list(timeline.events()) == []


def test_empty_trip():
    timeline = build_timeline(make_trip(start="2026-06-15", end="2026-06-18"))

    assert timeline.is_empty
    assert timeline.to_dict() == {"allDates": [], "grouped": {}}


def test_building_twice_gives_same_result():
    trip = make_trip(
        flights=[flight_record()],
        hotels=[hotel_record()],
        activities=[activity("Tsukiji Market", "2026-06-17", "08:00")],
        start="2026-06-15",
        end="2026-06-19",
    )

    assert build_timeline(trip).to_dict() == build_timeline(trip).to_dict()


def test_to_dict_shape():
    trip = make_trip(flights=[flight_record()], start="2026-06-15", end="2026-06-15")

    data = build_timeline(trip).to_dict()

    event = data["grouped"]["2026-06-15"][0]
    assert data["allDates"] == ["2026-06-15"]
    assert event["type"] == "flight"
    assert event["time"] == "10:30"
    assert event["data"]["flightNumber"] == "AZ1782"


class TestFormatTimeline:
    def test_lists_events_and_empty_days(self):
        trip = make_trip(
            flights=[flight_record(passengers=[{"name": "Brignone Agata"}])],
            start="2026-06-15",
            end="2026-06-16",
        )

        text = format_timeline(build_timeline(trip), trip)

        assert "Tokyo Trip" in text
        assert "AZ1782 FCO -> NRT" in text
        assert "Brignone Agata" in text
        assert "(nothing planned)" in text

    def test_activity_label_follows_language(self):
        trip = make_trip(activities=[activity("Sushi Dai", "2026-06-17", "07:00")])

        text = format_timeline(build_timeline(trip), trip, lang="it")

        assert "Sushi Dai [Ristorante]" in text
        assert text.startswith("Viaggio a Tokyo")

    def test_empty(self):
        assert "No bookings yet." in format_timeline(build_timeline(make_trip()))
