"""Category filter and free-text search over a built timeline.

Filtering never touches the timeline it is given. ``FilterState`` is owned by
the caller and every transition returns a new state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from .builder import EVENT_FLIGHT, Event, Timeline
from .categories import CATEGORY_ORDER, event_category_key


@dataclass(frozen=True)
class FilterState:
    active_categories: frozenset = frozenset()
    query: str = ""

    def toggle(self, category: str) -> "FilterState":
        if category in self.active_categories:
            active = self.active_categories - {category}
        else:
            active = self.active_categories | {category}
        return replace(self, active_categories=frozenset(active))

    def with_query(self, query: str) -> "FilterState":
        return replace(self, query=query or "")

    def select_all(self, categories: Iterable[str]) -> "FilterState":
        return replace(self, active_categories=frozenset(categories))

    def clear(self) -> "FilterState":
        return replace(self, active_categories=frozenset())


def present_categories(timeline: Timeline) -> list[str]:
    """Category keys of the timeline's events, in display order."""
    present = {
        event_category_key(event)
        for events in timeline.grouped.values()
        for event in events
    }
    return [key for key in CATEGORY_ORDER if key in present]


def initial_filter_state(timeline: Timeline) -> FilterState:
    return FilterState(active_categories=frozenset(present_categories(timeline)))


def _contains(value, query: str) -> bool:
    return isinstance(value, str) and query in value.lower()


def matches_search(event: Event, query: str) -> bool:
    """Case-insensitive substring match on the fields shown for the event."""
    query = (query or "").strip().lower()
    if not query:
        return True

    data = event.data
    if event.type == EVENT_FLIGHT:
        fields = [
            data.departure.city, data.departure.code,
            data.arrival.city, data.arrival.code,
            data.airline, data.flight_number,
        ]
    elif event.is_hotel:
        fields = [data.name, data.address.text]
    else:
        fields = [data.name, data.description, data.address]

    return any(_contains(value, query) for value in fields)


def apply_filters(
    grouped: dict[str, list[Event]],
    active_categories: Iterable[str],
    query: str = "",
) -> dict[str, list[Event]]:
    """Keep events whose category is active and which match ``query``.

    The result has exactly the input's date keys; a day may end up empty.
    """
    active = set(active_categories)
    return {
        day: [
            event for event in events
            if event_category_key(event) in active and matches_search(event, query)
        ]
        for day, events in grouped.items()
    }


def filter_timeline(timeline: Timeline, state: FilterState) -> Timeline:
    return Timeline(
        all_dates=list(timeline.all_dates),
        grouped=apply_filters(timeline.grouped, state.active_categories, state.query),
    )
