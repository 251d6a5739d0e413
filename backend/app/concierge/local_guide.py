"""Local guide classifiers: named places, "nearest <category>", generic nearby."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .normalize import (
    distance_to_metres,
    is_directions_intent,
    normalise_category,
    normalize,
)
from .types import GenericNearby, LocalGuideEntry, NearestCategory, ScoredMatch

# Named-place scoring. The floor rejects coincidental overlap: one short token hit
# (5 points) plus the directions bonus (10) can never pass on its own.
NAME_MATCH_BASE = 100
TOKEN_HIT_POINTS = 5
MIN_TOKEN_LENGTH = 3
DIRECTIONS_BONUS = 10
NAMED_PLACE_FLOOR = 30

# category -> (display label, normalized trigger phrases); first match wins
NEAREST_CATEGORY_PHRASES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    (
        "supermarket",
        "supermarket",
        (
            "nearest supermarket",
            "closest supermarket",
            "nearest grocery",
            "closest grocery",
            "nearest groceries",
            "nearest grocery store",
            "closest grocery store",
            "where is the nearest supermarket",
            "where is nearest supermarket",
        ),
    ),
    (
        "atm",
        "ATM",
        (
            "nearest atm",
            "closest atm",
            "nearest cash machine",
            "closest cash machine",
            "where is the nearest atm",
            "where is nearest atm",
        ),
    ),
    (
        "pharmacy",
        "pharmacy",
        (
            "nearest pharmacy",
            "closest pharmacy",
            "nearest chemist",
            "closest chemist",
            "where is the nearest pharmacy",
            "where is nearest pharmacy",
        ),
    ),
    (
        "cafe",
        "café",
        ("nearest cafe", "closest cafe", "nearest coffee", "closest coffee"),
    ),
    (
        "restaurant",
        "restaurant",
        ("nearest restaurant", "closest restaurant", "where can i eat nearby", "eat nearby"),
    ),
    (
        "attraction",
        "attraction",
        ("nearest attraction", "closest attraction", "things to do nearby", "nearby attractions"),
    ),
)

# place type -> (label, raw lowercase keywords); first match wins
NEARBY_KEYWORDS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("restaurant", "restaurants", ("restaurant", "eat", "dinner", "lunch", "breakfast")),
    ("cafe", "cafés", ("cafe", "coffee")),
    ("atm", "ATMs", ("atm", "cash")),
    ("pharmacy", "pharmacies", ("pharmacy", "chemist", "medicine")),
    ("supermarket", "supermarkets", ("supermarket", "grocery", "groceries")),
    # the legacy Places endpoint only knows tourist_attraction
    ("tourist_attraction", "attractions", ("attraction", "things to do", "tourist", "visit")),
)


def score_named_place(
    entry: LocalGuideEntry, message: str, *, directions: bool | None = None
) -> float | None:
    """Heuristic name score for one entry, or None when the entry has no usable name."""
    name = normalize(entry.name)
    if not name:
        return None
    msg = normalize(message)
    score = 0.0
    if name in msg:
        score = NAME_MATCH_BASE + len(name)
    tokens = [t for t in msg.split(" ") if len(t) >= MIN_TOKEN_LENGTH]
    score += TOKEN_HIT_POINTS * sum(1 for t in tokens if t in name)
    if directions is None:
        directions = is_directions_intent(message)
    if directions:
        score += DIRECTIONS_BONUS
    return score


def rank_named_places(candidates: Iterable[LocalGuideEntry], message: str) -> list[ScoredMatch]:
    directions = is_directions_intent(message)
    scored: list[ScoredMatch] = []
    for entry in candidates:
        score = score_named_place(entry, message, directions=directions)
        if score is None:
            continue
        scored.append(ScoredMatch(entry=entry, score=score))
    # sort() is stable: ties keep the sheet order
    scored.sort(key=lambda m: m.score, reverse=True)
    return scored


def match_named_place(
    candidates: Iterable[LocalGuideEntry], message: str
) -> LocalGuideEntry | None:
    """Best named local-guide entry for the message, if it clears the floor.

    `candidates` must already be limited to the apartment's (and global) entries.
    """
    ranked = rank_named_places(candidates, message)
    if ranked and ranked[0].score >= NAMED_PLACE_FLOOR:
        return ranked[0].entry
    return None


def detect_nearest_category_intent(message: str) -> NearestCategory | None:
    s = normalize(message)
    for category, label, phrases in NEAREST_CATEGORY_PHRASES:
        if any(phrase in s for phrase in phrases):
            return NearestCategory(category=category, label=label)
    return None


def resolve_nearest(
    candidates: Sequence[LocalGuideEntry], category: str
) -> LocalGuideEntry | None:
    """Closest entry of `category` among the apartment's own entries."""
    wanted = normalise_category(category)
    rows = [e for e in candidates if normalise_category(e.category) == wanted]
    if not rows:
        return None
    # min() keeps the first of equal distances
    return min(rows, key=lambda e: distance_to_metres(e.distance_text))


def mentions_known_place(entries: Iterable[LocalGuideEntry], message: str) -> bool:
    msg = normalize(message)
    for entry in entries:
        name = normalize(entry.name)
        if name and name in msg:
            return True
    return False


def detect_nearby_intent(
    message: str, known_places: Iterable[LocalGuideEntry] = ()
) -> GenericNearby | None:
    """Category-only request ("any pharmacy around?") for the external places lookup.

    Directions questions and messages naming a known local-guide place are left to
    the local guide, even when the named-place score stayed under its floor.
    """
    if is_directions_intent(message):
        return None
    if mentions_known_place(known_places, message):
        return None
    s = (message or "").lower()
    for place_type, label, keywords in NEARBY_KEYWORDS:
        if any(keyword in s for keyword in keywords):
            return GenericNearby(place_type=place_type, label=label)
    return None


def format_named_place_reply(entry: LocalGuideEntry, message: str) -> str:
    name = entry.name
    distance = entry.distance_text
    desc = entry.description
    link = entry.map_link

    if is_directions_intent(message):
        out = f"To get to {name}"
        if distance:
            out += f" (about {distance} away)"
        out += f", open Google Maps and follow the route:\n{link or '(map link not available)'}"
        if desc:
            out += f"\n\nTip: {desc}"
        return out.strip()

    out = name
    if distance:
        out += f" — about {distance} away."
    if desc:
        out += f"\n{desc}"
    if link:
        out += f"\n\nGoogle Maps:\n{link}"
    return out.strip()


def format_nearest_reply(entry: LocalGuideEntry, label: str) -> str:
    name = entry.name or "Unknown place"
    out = f"Nearest {label}: {name}"
    out += f" ({entry.distance_text} away)." if entry.distance_text else "."
    if entry.description:
        out += f"\n\nDirections: {entry.description}"
    if entry.map_link:
        out += f"\n\nGoogle Maps:\n{entry.map_link}"
    return out.strip()


__all__ = [
    "DIRECTIONS_BONUS",
    "NAMED_PLACE_FLOOR",
    "NAME_MATCH_BASE",
    "TOKEN_HIT_POINTS",
    "detect_nearby_intent",
    "detect_nearest_category_intent",
    "format_named_place_reply",
    "format_nearest_reply",
    "match_named_place",
    "mentions_known_place",
    "rank_named_places",
    "resolve_nearest",
    "score_named_place",
]
