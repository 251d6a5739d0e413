import pytest
from fastapi.testclient import TestClient

from backend.app.api.routes import concierge as concierge_routes
from backend.app.concierge import reference_store
from backend.app.concierge.types import ConciergeReply
from backend.app.main import app
from backend.app.settings import settings


class StubEngine:
    def __init__(self, reply=None, exc=None):
        self.reply = reply
        self.exc = exc
        self.calls = []

    async def resolve(self, apartment_id, message):
        self.calls.append((apartment_id, message))
        if self.exc is not None:
            raise self.exc
        return self.reply


def _override(engine):
    app.dependency_overrides[concierge_routes.get_engine] = lambda: engine


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def test_root_banner(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == "Yaka chatbot backend is running!"


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["reference_data"]["apartmentsCount"] == 2
    assert "OPENAI_API_KEY" in body["missing_credentials"]


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "concierge_replies_total" in resp.text


def test_faq_data_counts(client):
    resp = client.get("/debug/faq-data")
    assert resp.status_code == 200
    assert resp.json() == {
        "apartmentsCount": 2,
        "localGuideCount": 6,
        "faqApartments": ["A1", "A2"],
        "globalFaqCount": 2,
    }


class TestChat:
    def test_chat_returns_payload_without_empty_fields(self, client):
        engine = StubEngine(
            ConciergeReply(
                reply="Nearest pharmacy: Healthguard Pharmacy (5 min away).",
                source="local_guide_nearest",
                detected_language="en",
                place={"category": "Pharmacy", "name": "Healthguard Pharmacy",
                       "distance": "5 min", "maps_link": ""},
            )
        )
        _override(engine)
        resp = client.post("/api/chat", json={"apt": "A1", "message": "nearest pharmacy?"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "local_guide_nearest"
        assert body["place"]["name"] == "Healthguard Pharmacy"
        assert "score" not in body
        assert "matches" not in body
        assert engine.calls == [("A1", "nearest pharmacy?")]

    def test_chat_faq_fields(self, client):
        matches = [{"question": "q", "answer": "a", "visibility": "guest", "score": 0.9}]
        _override(StubEngine(ConciergeReply("a", "faq", "en", score=0.9, matches=matches)))
        body = client.post("/api/chat", json={"apt": "A1", "message": "q"}).json()
        assert body["score"] == 0.9
        assert body["matches"] == matches

    def test_missing_fields_are_rejected(self, client):
        assert client.post("/api/chat", json={"apt": "A1"}).status_code == 422
        assert client.post("/api/chat", json={"message": "hi"}).status_code == 422
        assert client.post("/api/chat", json={"apt": "", "message": "hi"}).status_code == 422

    def test_numeric_apartment_id_is_accepted(self, client):
        engine = StubEngine(ConciergeReply("ok", "fallback", "en"))
        _override(engine)
        resp = client.post(
            "/api/chat", json={"apt": 101, "message": "where is the nearest pharmacy?"}
        )
        assert resp.status_code == 200
        assert engine.calls == [("101", "where is the nearest pharmacy?")]

    def test_blank_message_is_rejected(self, client):
        engine = StubEngine()
        _override(engine)
        resp = client.post("/api/chat", json={"apt": "A1", "message": "   "})
        assert resp.status_code == 422
        assert engine.calls == []

    def test_internal_fault_is_500(self):
        _override(StubEngine(exc=RuntimeError("boom")))
        with TestClient(app, raise_server_exceptions=False) as local_client:
            resp = local_client.post("/api/chat", json={"apt": "A1", "message": "hi"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}

    def test_end_to_end_local_guide(self, client):
        # real engine, seeded data, no API keys configured
        resp = client.post(
            "/api/chat", json={"apt": "A1", "message": "Where is the nearest supermarket?"}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "local_guide_nearest"
        assert body["place"]["name"] == "Keells Kollupitiya"
        assert body["detected_language"] == "en"

    def test_end_to_end_missing_location(self, client):
        resp = client.post("/api/chat", json={"apt": "A2", "message": "any good restaurants?"})
        assert resp.json()["source"] == "places_missing_latlng"


class TestAdminReload:
    def test_unconfigured_secret(self, client):
        resp = client.post("/admin/reload-sheets", headers={"X-Admin-Secret": "x"})
        assert resp.status_code == 500

    def test_wrong_secret(self, client):
        settings.ADMIN_RELOAD_SECRET = "s3cret"
        resp = client.post("/admin/reload-sheets", headers={"X-Admin-Secret": "nope"})
        assert resp.status_code == 401
        assert client.post("/admin/reload-sheets").status_code == 401

    def test_header_secret_reloads(self, client):
        settings.ADMIN_RELOAD_SECRET = "s3cret"
        before = reference_store.snapshot
        resp = client.post("/admin/reload-sheets", headers={"X-Admin-Secret": "s3cret"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["apartmentsCount"] == 2
        assert reference_store.snapshot is not before

    def test_body_secret_reloads(self, client):
        settings.ADMIN_RELOAD_SECRET = "s3cret"
        resp = client.post("/admin/reload-sheets", json={"admin_secret": "s3cret"})
        assert resp.status_code == 200
        assert resp.json()["globalFaqCount"] == 2
