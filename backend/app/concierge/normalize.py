from __future__ import annotations

import math
import re
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SPACES = re.compile(r" +")

# Phrases that mark a "how do I get there" question. Matched against normalized text,
# so trailing spaces are significant ("go to " must not match "go tomorrow").
DIRECTIONS_MARKERS = (
    "how do i get",
    "how to get",
    "directions",
    "route to",
    "get to ",
    "go to ",
    "how can i get",
    "how can i go",
    "how do we get",
    "how do we go",
    "way to ",
)

# Walking pace used to turn "5 mins" into metres. A product tuning value, not physics.
WALKING_METRES_PER_MINUTE = 80.0

_KM = re.compile(r"([\d.]+)\s*km")
_METRES = re.compile(r"([\d.]+)\s*m\b")
_MINUTES = re.compile(r"([\d.]+)\s*(min|mins|minute|minutes)\b")
_NUMBER = re.compile(r"([\d.]+)")


def normalize(text: Any) -> str:
    """Lowercase, blank out anything outside [a-z0-9 ], collapse whitespace.

    Non-ASCII letters are not folded: "déjà" becomes "d j".
    """
    if text is None:
        return ""
    lowered = str(text).lower()
    return _SPACES.sub(" ", _NON_ALNUM.sub(" ", lowered)).strip()


def is_directions_intent(message: Any) -> bool:
    s = normalize(message)
    return any(marker in s for marker in DIRECTIONS_MARKERS)


def normalise_category(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


def _to_float(raw: str) -> float | None:
    try:
        return float(raw)
    except ValueError:
        return None


def distance_to_metres(distance: Any) -> float:
    """Best-effort conversion of a free-form distance ("0.5 km", "2 mins") to metres.

    Unparsable or empty text sorts last (+inf).
    """
    s = str(distance if distance is not None else "").strip().lower()
    if not s:
        return math.inf

    for pattern, factor in (
        (_KM, 1000.0),
        (_METRES, 1.0),
        (_MINUTES, WALKING_METRES_PER_MINUTE),
        (_NUMBER, 1.0),
    ):
        match = pattern.search(s)
        if not match:
            continue
        value = _to_float(match.group(1))
        if value is None:
            # "." alone or "1.2.3" - keep looking with the looser patterns
            continue
        return value * factor
    return math.inf


__all__ = [
    "DIRECTIONS_MARKERS",
    "WALKING_METRES_PER_MINUTE",
    "distance_to_metres",
    "is_directions_intent",
    "normalise_category",
    "normalize",
]
