"""Timeline event categories and keyword-based activity classification."""

from __future__ import annotations

from typing import Optional

from .builder import EVENT_ACTIVITY, EVENT_FLIGHT, Event

RESTAURANT = "restaurant"
FLIGHT = "flight"
HOTEL = "hotel"
MUSEUM = "museum"
ATTRACTION = "attraction"
TRAIN = "train"
PLACE = "place"

CATEGORIES = {
    RESTAURANT: {"en": "Restaurant", "it": "Ristorante"},
    FLIGHT: {"en": "Flight", "it": "Volo"},
    HOTEL: {"en": "Hotel", "it": "Hotel"},
    MUSEUM: {"en": "Museum", "it": "Museo"},
    ATTRACTION: {"en": "Attraction", "it": "Attrazione"},
    TRAIN: {"en": "Train", "it": "Treno"},
    PLACE: {"en": "Place", "it": "Luogo"},
}

CATEGORY_ORDER = [RESTAURANT, FLIGHT, HOTEL, MUSEUM, ATTRACTION, TRAIN, PLACE]

# Activities saved by the Italian UI carry Italian category keys
LEGACY_CATEGORY_KEYS = {
    "ristorante": RESTAURANT,
    "volo": FLIGHT,
    "museo": MUSEUM,
    "attrazione": ATTRACTION,
    "treno": TRAIN,
    "luogo": PLACE,
}

# Checked in this order; first hit wins. Trailing spaces keep "bar " and
# "art " from matching inside longer words.
CATEGORY_KEYWORDS = {
    RESTAURANT: [
        "ristorante", "restaurant", "trattoria", "pizzeria", "osteria",
        "ramen", "sushi", "bar ", "café", "cafe", "bistro", "food", "cibo",
        "pranzo", "cena", "colazione", "taverna", "pub", "gelateria",
        "pasticceria", "bakery", "brunch", "lunch", "dinner", "breakfast",
        "izakaya", "tapas", "street food",
    ],
    MUSEUM: [
        "museo", "museum", "gallery", "galleria", "mostra", "exhibition",
        "pinacoteca", "art ", "arte ",
    ],
    ATTRACTION: [
        "tempio", "temple", "chiesa", "church", "parco", "park",
        "giardino", "garden", "castello", "castle", "torre", "tower",
        "ponte", "bridge", "piazza", "square", "shrine", "palazzo",
        "zoo", "acquario", "aquarium", "monument", "monumento", "santuario",
        "basilica", "cattedrale", "cathedral", "fortezza", "fortress",
        "arena", "colosseo", "rovina", "ruins", "spiaggia", "beach",
        "viewpoint", "belvedere", "panorama", "market", "mercato",
    ],
    TRAIN: [
        "treno", "train", "shinkansen", "ferrovia", "railway", "stazione",
        "station", "eurostar", "italo", "trenitalia", "tgv", "bullet train",
    ],
}


def normalize_category(category: Optional[str]) -> Optional[str]:
    """Map a stored category key to a known one, or None."""
    if not category:
        return None
    key = category.strip().lower()
    key = LEGACY_CATEGORY_KEYS.get(key, key)
    return key if key in CATEGORIES else None


def detect_category(name: Optional[str], description: Optional[str]) -> str:
    """Guess an activity category from its name and description."""
    text = " " + f"{name or ''} {description or ''}".lower() + " "
    for category, keywords in CATEGORY_KEYWORDS.items():
        for keyword in keywords:
            if keyword in text:
                return category
    return PLACE


def event_category_key(event: Event) -> str:
    if event.type == EVENT_FLIGHT:
        return FLIGHT
    if event.is_hotel:
        return HOTEL
    if event.type == EVENT_ACTIVITY:
        activity = event.data
        return normalize_category(activity.category) or detect_category(
            activity.name, activity.description
        )
    return PLACE


def category_label(key: str, lang: str = "en") -> str:
    labels = CATEGORIES.get(key, CATEGORIES[PLACE])
    return labels.get(lang, labels["en"])
