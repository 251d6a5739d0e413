from __future__ import annotations

import hmac
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ...concierge import ConciergeEngine, reference_store
from ...errors import DataUnavailable
from ...logging_config import get_logger
from ...settings import settings

router = APIRouter(tags=["concierge"])
logger = get_logger(__name__)

_engine: ConciergeEngine | None = None


def get_engine() -> ConciergeEngine:
    global _engine
    if _engine is None:
        _engine = ConciergeEngine()
    return _engine


class ChatRequest(BaseModel):
    # sheet exports often carry numeric apartment ids
    model_config = ConfigDict(coerce_numbers_to_str=True)

    apt: str = Field(..., min_length=1, description="Apartment id the guest is staying in")
    message: str = Field(..., min_length=1, description="Guest free-text message")


class ChatResponse(BaseModel):
    reply: str
    source: str
    detected_language: str
    score: float | None = None
    matches: list[dict[str, Any]] | None = None
    place: dict[str, str] | None = None


@router.post("/api/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(req: ChatRequest, engine: ConciergeEngine = Depends(get_engine)) -> ChatResponse:
    if not req.apt.strip() or not req.message.strip():
        raise HTTPException(status_code=422, detail="apt and message must not be blank")
    reply = await engine.resolve(req.apt, req.message)
    return ChatResponse(**reply.as_payload())


@router.get("/debug/faq-data")
def faq_data() -> dict[str, Any]:
    return reference_store.snapshot.counts()


@router.post("/admin/reload-sheets")
async def reload_sheets(
    x_admin_secret: str | None = Header(default=None),
    payload: dict[str, Any] | None = Body(default=None),
) -> dict[str, Any]:
    expected = (settings.ADMIN_RELOAD_SECRET or "").strip()
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_RELOAD_SECRET is not configured")
    provided = x_admin_secret or (payload or {}).get("admin_secret") or ""
    if not hmac.compare_digest(str(provided).encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        snapshot = await reference_store.areload()
    except (OSError, DataUnavailable) as exc:
        logger.error("reference_reload_failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to reload reference data") from exc
    counts = snapshot.counts()
    logger.info("reference_reloaded", **counts)
    return {"ok": True, **counts}
