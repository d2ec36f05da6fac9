"""Timeline projection of a trip, with category filters and search."""

from .builder import Event, Timeline, TYPE_PRIORITY, build_timeline
from .categories import CATEGORIES, CATEGORY_ORDER, detect_category, event_category_key
from .filters import (
    FilterState,
    apply_filters,
    filter_timeline,
    initial_filter_state,
    matches_search,
    present_categories,
)
from .summarizer import format_timeline

__all__ = [
    "Event",
    "Timeline",
    "TYPE_PRIORITY",
    "build_timeline",
    "CATEGORIES",
    "CATEGORY_ORDER",
    "detect_category",
    "event_category_key",
    "FilterState",
    "apply_filters",
    "filter_timeline",
    "initial_filter_state",
    "matches_search",
    "present_categories",
    "format_timeline",
]
