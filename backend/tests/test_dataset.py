import asyncio
import json
import threading

import pytest

from backend.app.concierge.dataset import (
    JsonReferenceProvider,
    ReferenceSnapshot,
    ReferenceStore,
    apartment_from_row,
    faq_from_row,
)
from backend.app.concierge.types import is_global_scope
from backend.app.errors import DataUnavailable


@pytest.mark.parametrize("marker", ["", "  ", "ALL", "all", "GLOBAL", "Global", "*", None])
def test_global_scope_markers(marker):
    assert is_global_scope(marker)


@pytest.mark.parametrize("marker", ["A1", "allx", "0"])
def test_specific_scopes(marker):
    assert not is_global_scope(marker)


def test_global_faqs_are_not_filed_per_apartment():
    snapshot = ReferenceSnapshot.from_rows(
        [],
        [],
        [
            {"apt_id": "A1", "question": "q1", "answer": "a1"},
            {"apt_id": "", "question": "q2", "answer": "a2"},
            {"apt_id": "global", "question": "q3", "answer": "a3"},
            {"apt_id": "*", "question": "q4", "answer": "a4"},
        ],
    )
    assert [f.question for f in snapshot.faqs_for("A1")] == ["q1"]
    assert [f.question for f in snapshot.global_faqs] == ["q2", "q3", "q4"]
    assert snapshot.faqs_for("A2") == ()
    assert snapshot.counts()["faqApartments"] == ["A1"]


def test_local_guide_scoping():
    snapshot = ReferenceSnapshot.from_rows(
        [],
        [
            {"apt_id": "A1", "category": "cafe", "name": "Own"},
            {"apt_id": "A2", "category": "cafe", "name": "Other"},
            {"apt_id": "ALL", "category": "cafe", "name": "Shared"},
            {"apt_id": "", "category": "cafe", "name": "Blank"},
        ],
        [],
    )
    assert [e.name for e in snapshot.local_guide_for("A1")] == ["Own", "Shared", "Blank"]
    assert [e.name for e in snapshot.local_guide_for("A1", include_global=False)] == ["Own"]


def test_apartment_coordinates():
    apt = apartment_from_row({"apt_id": "A1", "lat": "6,9", "lng": 0, "wifi": "x"})
    assert apt.latitude == 6.9
    # zero is a real coordinate
    assert apt.longitude == 0.0
    assert apt.has_location
    assert apt.extra == {"wifi": "x"}

    blank = apartment_from_row({"apt_id": "A2", "lat": "", "lng": "n/a"})
    assert not blank.has_location

    assert apartment_from_row({"apt_id": "  "}) is None


def test_faq_row_text_is_trimmed():
    entry = faq_from_row({"apt_id": " A1 ", "question": " Wifi? ", "answer": None})
    assert entry.apartment_scope == "A1"
    assert entry.question == "Wifi?"
    assert entry.answer == ""
    assert entry.embedding is None


class TestJsonProvider:
    def _write(self, tmp_path, apartments=(), guide=(), faqs=()):
        (tmp_path / "apartments.json").write_text(json.dumps(list(apartments)), encoding="utf-8")
        (tmp_path / "local_guide.json").write_text(json.dumps(list(guide)), encoding="utf-8")
        (tmp_path / "faqs.json").write_text(json.dumps(list(faqs)), encoding="utf-8")

    def test_bootstrap_copies_seed_files(self, tmp_path):
        provider = JsonReferenceProvider(tmp_path)
        for name in ("apartments.json", "local_guide.json", "faqs.json"):
            assert (tmp_path / name).exists()
        snapshot = provider.load()
        assert snapshot.apartment("A1") is not None
        assert snapshot.loaded_at > 0

    def test_existing_files_are_kept(self, tmp_path):
        self._write(tmp_path, apartments=[{"apt_id": "X9"}])
        snapshot = JsonReferenceProvider(tmp_path).load()
        assert list(snapshot.apartments) == ["X9"]

    def test_non_list_payload_is_rejected(self, tmp_path):
        self._write(tmp_path)
        (tmp_path / "faqs.json").write_text('{"apt_id": "A1"}', encoding="utf-8")
        with pytest.raises(DataUnavailable):
            JsonReferenceProvider(tmp_path).load()

    def test_invalid_json_is_rejected(self, tmp_path):
        self._write(tmp_path)
        (tmp_path / "local_guide.json").write_text("[{", encoding="utf-8")
        with pytest.raises(DataUnavailable):
            JsonReferenceProvider(tmp_path).load()

    def test_missing_file_without_bootstrap_is_empty(self, tmp_path):
        snapshot = JsonReferenceProvider(tmp_path, bootstrap=False).load()
        assert snapshot.counts() == {
            "apartmentsCount": 0,
            "localGuideCount": 0,
            "faqApartments": [],
            "globalFaqCount": 0,
        }


class TestReferenceStore:
    def test_reload_swaps_whole_snapshot(self, tmp_path):
        store = ReferenceStore(JsonReferenceProvider(tmp_path, bootstrap=False))
        before = store.snapshot
        TestJsonProvider()._write(tmp_path, apartments=[{"apt_id": "A1"}])
        after = store.reload()
        assert store.snapshot is after
        assert before.apartment("A1") is None
        assert after.apartment("A1") is not None

    def test_failed_reload_keeps_previous_snapshot(self, tmp_path):
        TestJsonProvider()._write(tmp_path, apartments=[{"apt_id": "A1"}])
        store = ReferenceStore(JsonReferenceProvider(tmp_path, bootstrap=False))
        good = store.reload()
        (tmp_path / "apartments.json").write_text("not json", encoding="utf-8")
        with pytest.raises(DataUnavailable):
            store.reload()
        assert store.snapshot is good

    def test_readers_never_see_partial_data(self):
        class SlowProvider:
            def __init__(self):
                self.started = threading.Event()
                self.release = threading.Event()

            def load(self):
                self.started.set()
                self.release.wait(timeout=5)
                return ReferenceSnapshot.from_rows([{"apt_id": "NEW"}], [], [])

        provider = SlowProvider()
        store = ReferenceStore(provider)
        old = store.snapshot
        worker = threading.Thread(target=store.reload)
        worker.start()
        provider.started.wait(timeout=5)
        # load in progress: still the old snapshot
        assert store.snapshot is old
        provider.release.set()
        worker.join(timeout=5)
        assert store.snapshot.apartment("NEW") is not None

    def test_areload_runs_in_executor(self, tmp_path):
        TestJsonProvider()._write(tmp_path, faqs=[{"apt_id": "ALL", "question": "q", "answer": "a"}])
        store = ReferenceStore(JsonReferenceProvider(tmp_path, bootstrap=False))
        snapshot = asyncio.run(store.areload())
        assert snapshot.counts()["globalFaqCount"] == 1
