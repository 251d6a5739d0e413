from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # console logs instead of JSON, plus debug details in /health
    DEBUG: bool = False

    # reference data directory (defaults to ~/.yaka-concierge-data)
    DATA_DIR: Path | None = None

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # OpenAI (embeddings, chat completion, language detection, translation)
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT_SECONDS: float = 20.0
    OPENAI_CONNECT_TIMEOUT_SECONDS: float = 5.0
    CONCIERGE_EMBED_MODEL: str = "text-embedding-3-small"
    CONCIERGE_CHAT_MODEL: str = "gpt-4o-mini"

    # FAQ matching
    EMB_THRESHOLD: float = 0.72
    FAQ_TOP_K: int = 5
    EMBED_CONCURRENCY: int = 8
    DEFAULT_LANGUAGE: str = "en"

    # Google Places (legacy Nearby Search)
    GOOGLE_PLACES_API_KEY: str | None = None
    PLACES_API_BASE: str = "https://maps.googleapis.com/maps/api/place"
    PLACES_RADIUS_METERS: int = 2000
    PLACES_MAX_RESULTS: int = 5
    PLACES_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    PLACES_TIMEOUT_SECONDS: float = 20.0

    # Admin reload of reference data
    ADMIN_RELOAD_SECRET: str | None = None

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def data_dir(self) -> Path:
        # Pydantic treats an empty string in `.env` as Path('.') which would point to the
        # repository root. Blank values count as "unset" and fall back to the home directory.
        def _materialize(path: Path) -> Path:
            path.mkdir(parents=True, exist_ok=True)
            return path

        raw_env = os.getenv("DATA_DIR")
        if raw_env is not None:
            trimmed = raw_env.strip()
            if trimmed:
                return _materialize(Path(trimmed).expanduser().resolve())
            return _materialize(Path.home() / ".yaka-concierge-data")

        if self.DATA_DIR is not None:
            candidate = Path(self.DATA_DIR).expanduser()
            candidate_str = str(candidate).strip()
            if candidate_str and candidate_str not in {".", "./", ".\\"}:
                return _materialize(candidate.resolve())
        return _materialize(Path.home() / ".yaka-concierge-data")

    @property
    def default_language(self) -> str:
        return (self.DEFAULT_LANGUAGE or "en").strip().lower() or "en"

    def missing_credentials(self) -> list[str]:
        """Names of optional credentials that are not configured."""
        missing: list[str] = []
        if not (self.OPENAI_API_KEY or "").strip():
            missing.append("OPENAI_API_KEY")
        if not (self.GOOGLE_PLACES_API_KEY or "").strip():
            missing.append("GOOGLE_PLACES_API_KEY")
        if not (self.ADMIN_RELOAD_SECRET or "").strip():
            missing.append("ADMIN_RELOAD_SECRET")
        return missing


settings = Settings()
# make sure directory exists when imported
settings.data_dir.mkdir(parents=True, exist_ok=True)
