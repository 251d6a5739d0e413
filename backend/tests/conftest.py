import os
import sys
from pathlib import Path

import numpy as np
import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("GOOGLE_PLACES_API_KEY", None)
test_data_dir = ROOT / "artifacts" / "test-data"
test_data_dir.mkdir(parents=True, exist_ok=True)
os.environ["DATA_DIR"] = str(test_data_dir)

SEED_FILES = ("apartments.json", "local_guide.json", "faqs.json")


def _sync_seed_file(filename: str) -> None:
    src = ROOT / "backend" / "app" / "data" / filename
    dst = test_data_dir / filename
    dst.write_text(src.read_text(encoding="utf-8"), encoding="utf-8")


for _name in SEED_FILES:
    _sync_seed_file(_name)

from backend.app.cache import clear_all_caches  # noqa: E402
from backend.app.concierge import reference_store  # noqa: E402
from backend.app.concierge.embeddings import EmbeddingBackend  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.settings import settings  # noqa: E402


class KeywordEmbedder(EmbeddingBackend):
    """Deterministic embedder: one axis per keyword, so similarities are predictable."""

    name = "keywords"

    def __init__(self, keywords=("wifi", "password", "checkout", "parking", "host", "pool")):
        self.keywords = tuple(keywords)
        self.dimension = len(self.keywords) + 1
        self.calls: list[str] = []

    async def embed(self, text):
        self.calls.append(text)
        lowered = (text or "").lower().replace("check-out", "checkout")
        vec = np.zeros(self.dimension, dtype=np.float32)
        for idx, keyword in enumerate(self.keywords):
            if keyword in lowered:
                vec[idx] = 1.0
        # bias axis keeps unrelated texts at a low, non-zero similarity
        vec[-1] = 0.1
        return vec


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app, base_url="http://api.testserver") as test_client:
        yield test_client


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture(autouse=True)
def clean_state():
    for name in SEED_FILES:
        _sync_seed_file(name)
    settings.OPENAI_API_KEY = None
    settings.GOOGLE_PLACES_API_KEY = None
    settings.ADMIN_RELOAD_SECRET = None
    settings.SENTRY_DSN = None
    settings.DEFAULT_LANGUAGE = "en"
    clear_all_caches()
    reference_store.reload()
    yield
    clear_all_caches()
