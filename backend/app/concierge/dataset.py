"""Reference data (apartments, local guide, FAQs) as one immutable snapshot.

Rows follow the column names of the host's spreadsheet export:
apartments  -> apt_id, lat, lng, [name, address, ...]
local_guide -> apt_id, category, name, distance, description, maps_link
faqs        -> apt_id, question, answer, visibility

An FAQ or local-guide row whose apt_id is blank, "ALL", "GLOBAL" or "*" applies to
every apartment.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from shutil import copy2
from threading import Lock
from types import MappingProxyType
from typing import Any, Protocol

from ..errors import DataUnavailable
from ..settings import settings
from .types import ALL_APARTMENTS, Apartment, FaqEntry, LocalGuideEntry, is_global_scope

logger = logging.getLogger(__name__)

SEED_DIR = Path(__file__).resolve().parents[1] / "data"
APARTMENTS_FILE = "apartments.json"
LOCAL_GUIDE_FILE = "local_guide.json"
FAQS_FILE = "faqs.json"


def _text(row: dict[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _scope(row: dict[str, Any]) -> str:
    raw = _text(row, "apt_id")
    return ALL_APARTMENTS if is_global_scope(raw) else raw


def _coordinate(value: Any) -> float | None:
    if value is None:
        return None
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def apartment_from_row(row: dict[str, Any]) -> Apartment | None:
    apt_id = _text(row, "apt_id")
    if not apt_id:
        return None
    known = {"apt_id", "lat", "lng", "name", "address"}
    return Apartment(
        id=apt_id,
        latitude=_coordinate(row.get("lat")),
        longitude=_coordinate(row.get("lng")),
        name=_text(row, "name"),
        address=_text(row, "address"),
        extra={k: _text(row, k) for k in row if k not in known},
    )


def local_guide_from_row(row: dict[str, Any]) -> LocalGuideEntry:
    return LocalGuideEntry(
        apartment_scope=_scope(row),
        category=_text(row, "category"),
        name=_text(row, "name"),
        distance_text=_text(row, "distance"),
        description=_text(row, "description"),
        map_link=_text(row, "maps_link"),
    )


def faq_from_row(row: dict[str, Any]) -> FaqEntry:
    return FaqEntry(
        apartment_scope=_scope(row),
        question=_text(row, "question"),
        answer=_text(row, "answer"),
        visibility=_text(row, "visibility"),
    )


@dataclass(frozen=True)
class ReferenceSnapshot:
    apartments: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    local_guide: tuple[LocalGuideEntry, ...] = ()
    faqs_by_apartment: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    global_faqs: tuple[FaqEntry, ...] = ()
    loaded_at: float = 0.0

    @classmethod
    def from_rows(
        cls,
        apartments: list[dict[str, Any]],
        local_guide: list[dict[str, Any]],
        faqs: list[dict[str, Any]],
    ) -> ReferenceSnapshot:
        apartment_map: dict[str, Apartment] = {}
        for row in apartments:
            apartment = apartment_from_row(row)
            if apartment is not None:
                apartment_map[apartment.id] = apartment

        faq_map: dict[str, list[FaqEntry]] = {}
        global_faqs: list[FaqEntry] = []
        for row in faqs:
            entry = faq_from_row(row)
            if entry.is_global:
                global_faqs.append(entry)
            else:
                faq_map.setdefault(entry.apartment_scope, []).append(entry)

        return cls(
            apartments=MappingProxyType(apartment_map),
            local_guide=tuple(local_guide_from_row(row) for row in local_guide),
            faqs_by_apartment=MappingProxyType({k: tuple(v) for k, v in faq_map.items()}),
            global_faqs=tuple(global_faqs),
            loaded_at=time.time(),
        )

    def apartment(self, apartment_id: str) -> Apartment | None:
        return self.apartments.get((apartment_id or "").strip())

    def faqs_for(self, apartment_id: str) -> tuple[FaqEntry, ...]:
        return self.faqs_by_apartment.get((apartment_id or "").strip(), ())

    def local_guide_for(
        self, apartment_id: str, *, include_global: bool = True
    ) -> list[LocalGuideEntry]:
        apt = (apartment_id or "").strip()
        if include_global:
            return [e for e in self.local_guide if e.applies_to(apt)]
        return [e for e in self.local_guide if e.apartment_scope == apt]

    def counts(self) -> dict[str, Any]:
        return {
            "apartmentsCount": len(self.apartments),
            "localGuideCount": len(self.local_guide),
            "faqApartments": sorted(self.faqs_by_apartment),
            "globalFaqCount": len(self.global_faqs),
        }


class ReferenceDataProvider(Protocol):
    def load(self) -> ReferenceSnapshot: ...


def _bootstrap_file(data_dir: Path, filename: str) -> None:
    target = data_dir / filename
    if target.exists():
        return
    seed = SEED_DIR / filename
    if seed.exists():
        copy2(seed, target)
    else:
        target.write_text("[]\n", encoding="utf-8")


class JsonReferenceProvider:
    """Reads the three sheet exports from a directory of JSON files."""

    def __init__(self, data_dir: Path | None = None, *, bootstrap: bool = True) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else settings.data_dir
        if bootstrap:
            for filename in (APARTMENTS_FILE, LOCAL_GUIDE_FILE, FAQS_FILE):
                _bootstrap_file(self.data_dir, filename)

    def _rows(self, filename: str) -> list[dict[str, Any]]:
        path = self.data_dir / filename
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("Reference file missing: %s", path)
            return []
        except ValueError as exc:
            raise DataUnavailable(f"{path} is not valid JSON: {exc}") from exc
        # a broken file must not half-replace the dataset; let reload fail instead
        if not isinstance(payload, list):
            raise DataUnavailable(f"{path} must contain a JSON list of rows")
        return [row for row in payload if isinstance(row, dict)]

    def load(self) -> ReferenceSnapshot:
        return ReferenceSnapshot.from_rows(
            self._rows(APARTMENTS_FILE),
            self._rows(LOCAL_GUIDE_FILE),
            self._rows(FAQS_FILE),
        )


class ReferenceStore:
    """Holds the current snapshot; reload swaps one reference after a full load."""

    def __init__(self, provider: ReferenceDataProvider | None = None) -> None:
        self._provider = provider
        self._snapshot = ReferenceSnapshot()
        self._reload_lock = Lock()

    @property
    def provider(self) -> ReferenceDataProvider:
        if self._provider is None:
            self._provider = JsonReferenceProvider()
        return self._provider

    @property
    def snapshot(self) -> ReferenceSnapshot:
        return self._snapshot

    def replace(self, snapshot: ReferenceSnapshot) -> None:
        self._snapshot = snapshot

    def reload(self) -> ReferenceSnapshot:
        with self._reload_lock:
            snapshot = self.provider.load()
            self._snapshot = snapshot
        counts = snapshot.counts()
        logger.info(
            "Reference data loaded: %d apartments, %d local guide rows, %d FAQ apartments, %d global FAQs",
            counts["apartmentsCount"],
            counts["localGuideCount"],
            len(counts["faqApartments"]),
            counts["globalFaqCount"],
        )
        return snapshot

    async def areload(self) -> ReferenceSnapshot:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.reload)


reference_store = ReferenceStore()


__all__ = [
    "JsonReferenceProvider",
    "ReferenceDataProvider",
    "ReferenceSnapshot",
    "ReferenceStore",
    "reference_store",
]
