from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

# apt_id values that scope a row to every apartment
GLOBAL_SCOPE_MARKERS = frozenset({"", "ALL", "GLOBAL", "*"})
ALL_APARTMENTS = "ALL"


def is_global_scope(value: Any) -> bool:
    return str(value if value is not None else "").strip().upper() in GLOBAL_SCOPE_MARKERS


@dataclass(frozen=True)
class LocalGuideEntry:
    apartment_scope: str
    category: str
    name: str
    distance_text: str = ""
    description: str = ""
    map_link: str = ""

    @property
    def is_global(self) -> bool:
        return self.apartment_scope == ALL_APARTMENTS

    def applies_to(self, apartment_id: str) -> bool:
        return self.is_global or self.apartment_scope == apartment_id


@dataclass(eq=False)
class FaqEntry:
    apartment_scope: str
    question: str
    answer: str
    visibility: str = ""
    # written once, by the embedding cache
    embedding: np.ndarray | None = field(default=None, repr=False)

    @property
    def is_global(self) -> bool:
        return self.apartment_scope == ALL_APARTMENTS


@dataclass(frozen=True)
class Apartment:
    id: str
    latitude: float | None = None
    longitude: float | None = None
    name: str = ""
    address: str = ""
    extra: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class Place:
    name: str
    address: str = ""
    rating: float | None = None
    place_id: str | None = None

    @property
    def maps_url(self) -> str | None:
        if not self.place_id:
            return None
        return f"https://www.google.com/maps/place/?q=place_id:{self.place_id}"


@dataclass
class ScoredMatch:
    entry: Any
    score: float

    def as_dict(self) -> dict[str, Any]:
        entry = self.entry
        return {
            "question": getattr(entry, "question", ""),
            "answer": getattr(entry, "answer", ""),
            "visibility": getattr(entry, "visibility", ""),
            "score": round(float(self.score), 6),
        }


# ---------- intents ----------


@dataclass(frozen=True)
class NamedPlace:
    entry: LocalGuideEntry


@dataclass(frozen=True)
class NearestCategory:
    category: str
    label: str


@dataclass(frozen=True)
class GenericNearby:
    place_type: str
    label: str


Intent = NamedPlace | NearestCategory | GenericNearby | None


# ---------- pipeline outcomes ----------


class Outcome(Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    MATCH_BUT_UNRESOLVED = "match_but_unresolved"


@dataclass
class ConciergeReply:
    reply: str
    source: str
    detected_language: str = "en"
    score: float | None = None
    matches: list[dict[str, Any]] | None = None
    place: dict[str, str] | None = None
    # set when the reply text is already in the guest's language
    localized: bool = field(default=False, repr=False)

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reply": self.reply,
            "source": self.source,
            "detected_language": self.detected_language,
        }
        if self.score is not None:
            payload["score"] = self.score
        if self.matches is not None:
            payload["matches"] = self.matches
        if self.place is not None:
            payload["place"] = self.place
        return payload


@dataclass
class StageResult:
    outcome: Outcome
    reply: ConciergeReply | None = None
    intent: Intent = None

    @classmethod
    def no_match(cls, intent: Intent = None) -> StageResult:
        return cls(Outcome.NO_MATCH, intent=intent)

    @classmethod
    def unresolved(cls, intent: Intent) -> StageResult:
        return cls(Outcome.MATCH_BUT_UNRESOLVED, intent=intent)

    @classmethod
    def match(cls, reply: ConciergeReply, intent: Intent = None) -> StageResult:
        return cls(Outcome.MATCH, reply=reply, intent=intent)
