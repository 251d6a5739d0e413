from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..errors import ConfigMissing, UpstreamTransient
from ..metrics import (
    concierge_replies_total,
    concierge_resolve_seconds,
    concierge_upstream_failures_total,
)
from ..openai_async import chat_completion
from ..settings import settings
from .dataset import ReferenceSnapshot, ReferenceStore, reference_store
from .embeddings import EmbeddingBackend, get_default_embedder
from .faq import FaqMatcher
from .language import detect_language, translate_text
from .local_guide import (
    detect_nearby_intent,
    detect_nearest_category_intent,
    format_named_place_reply,
    format_nearest_reply,
    match_named_place,
    resolve_nearest,
)
from .places import PlacesClient, format_places_reply
from .prompts import (
    FALLBACK_CONTEXT_ITEM,
    FALLBACK_SYSTEM_PROMPT,
    FALLBACK_USER_PROMPT,
    MISSING_LOCATION_REPLY,
    NO_ANSWER_REPLY,
    PLACES_EMPTY_REPLY,
    PLACES_ERROR_REPLY,
)
from .types import ConciergeReply, NamedPlace, Outcome, ScoredMatch, StageResult

logger = logging.getLogger(__name__)

# how many ranked FAQs go back to the caller and into the fallback prompt
CONTEXT_MATCHES = 3


@dataclass
class RequestContext:
    apartment_id: str
    message: str
    snapshot: ReferenceSnapshot
    language: str
    matches: list[ScoredMatch] = field(default_factory=list)

    @property
    def best_score(self) -> float:
        return self.matches[0].score if self.matches else 0.0

    def match_payload(self) -> list[dict]:
        return [m.as_dict() for m in self.matches[:CONTEXT_MATCHES]]


class Stage:
    """One link of the answer chain. `attempt` never raises for provider failures."""

    name = "stage"

    async def attempt(self, ctx: RequestContext) -> StageResult:
        raise NotImplementedError


class NearestCategoryStage(Stage):
    """Nearest-X questions answered from the apartment's own guide rows."""

    name = "nearest_category"

    async def attempt(self, ctx: RequestContext) -> StageResult:
        intent = detect_nearest_category_intent(ctx.message)
        if intent is None:
            return StageResult.no_match()
        rows = ctx.snapshot.local_guide_for(ctx.apartment_id, include_global=False)
        entry = resolve_nearest(rows, intent.category)
        if entry is None:
            return StageResult.unresolved(intent)
        reply = ConciergeReply(
            reply=format_nearest_reply(entry, intent.label),
            source="local_guide_nearest",
            place={
                "category": entry.category,
                "name": entry.name,
                "distance": entry.distance_text,
                "maps_link": entry.map_link,
            },
        )
        return StageResult.match(reply, intent)


class NamedPlaceStage(Stage):
    name = "named_place"

    async def attempt(self, ctx: RequestContext) -> StageResult:
        entry = match_named_place(ctx.snapshot.local_guide_for(ctx.apartment_id), ctx.message)
        if entry is None:
            return StageResult.no_match()
        reply = ConciergeReply(
            reply=format_named_place_reply(entry, ctx.message),
            source="local_guide",
            place={"name": entry.name, "distance": entry.distance_text, "maps_link": entry.map_link},
        )
        return StageResult.match(reply, NamedPlace(entry))


class GenericNearbyStage(Stage):
    """Category-only questions go to Google Places; every branch here is terminal."""

    name = "generic_nearby"

    def __init__(self, places: PlacesClient, radius: int | None = None) -> None:
        self.places = places
        self.radius = radius if radius is not None else settings.PLACES_RADIUS_METERS

    async def attempt(self, ctx: RequestContext) -> StageResult:
        intent = detect_nearby_intent(ctx.message, ctx.snapshot.local_guide)
        if intent is None:
            return StageResult.no_match()

        apartment = ctx.snapshot.apartment(ctx.apartment_id)
        if apartment is None or not apartment.has_location:
            reply = ConciergeReply(reply=MISSING_LOCATION_REPLY, source="places_missing_latlng")
            return StageResult.match(reply, intent)

        try:
            places = await self.places.nearby(
                apartment.latitude, apartment.longitude, intent.place_type, self.radius
            )
        except (UpstreamTransient, ConfigMissing) as exc:
            provider = getattr(exc, "provider", "google_places")
            concierge_upstream_failures_total.labels(provider=provider).inc()
            logger.warning("Places lookup failed for apt=%s type=%s: %s", ctx.apartment_id, intent.place_type, exc)
            reply = ConciergeReply(reply=PLACES_ERROR_REPLY, source="google_places_error")
            return StageResult.match(reply, intent)

        text = format_places_reply(intent.label, places) or PLACES_EMPTY_REPLY.format(
            label=intent.label
        )
        return StageResult.match(ConciergeReply(reply=text, source="google_places_legacy"), intent)


class FaqStage(Stage):
    name = "faq"

    def __init__(self, matcher: FaqMatcher, threshold: float, top_k: int) -> None:
        self.matcher = matcher
        self.threshold = threshold
        self.top_k = top_k

    async def attempt(self, ctx: RequestContext) -> StageResult:
        try:
            ctx.matches = await self.matcher.find_best_matches(
                ctx.snapshot.faqs_for(ctx.apartment_id),
                ctx.message,
                global_faqs=ctx.snapshot.global_faqs,
                top_k=self.top_k,
            )
        except (UpstreamTransient, ConfigMissing) as exc:
            provider = getattr(exc, "provider", "embeddings")
            concierge_upstream_failures_total.labels(provider=provider).inc()
            logger.warning("Message embedding failed, skipping FAQ match: %s", exc)
            ctx.matches = []
            return StageResult.no_match()

        if not ctx.matches or ctx.best_score < self.threshold:
            return StageResult.no_match()

        best = ctx.matches[0].entry
        reply = ConciergeReply(
            reply=best.answer or "",
            source="faq",
            score=ctx.best_score,
            matches=ctx.match_payload(),
        )
        return StageResult.match(reply)


class LlmFallbackStage(Stage):
    """Generative answer grounded on the closest FAQs, written in the guest's language."""

    name = "llm_fallback"

    async def attempt(self, ctx: RequestContext) -> StageResult:
        context = "\n\n".join(
            FALLBACK_CONTEXT_ITEM.format(
                index=idx, question=m.entry.question, answer=m.entry.answer
            )
            for idx, m in enumerate(ctx.matches[:CONTEXT_MATCHES], start=1)
        )
        try:
            text = await chat_completion(
                FALLBACK_SYSTEM_PROMPT.format(lang=ctx.language),
                FALLBACK_USER_PROMPT.format(message=ctx.message, context=context or "(none)"),
                temperature=0.2,
                max_tokens=300,
            )
        except ConfigMissing:
            return StageResult.no_match()
        except UpstreamTransient as exc:
            concierge_upstream_failures_total.labels(provider=exc.provider).inc()
            logger.error("LLM fallback error: %s", exc)
            return StageResult.no_match()
        if not text:
            return StageResult.no_match()
        reply = ConciergeReply(
            reply=text,
            source="llm_fallback",
            score=ctx.best_score,
            matches=ctx.match_payload(),
            localized=True,
        )
        return StageResult.match(reply)


class CannedFallbackStage(Stage):
    name = "fallback"

    async def attempt(self, ctx: RequestContext) -> StageResult:
        reply = ConciergeReply(
            reply=NO_ANSWER_REPLY,
            source="fallback",
            score=ctx.best_score,
            matches=ctx.match_payload(),
        )
        return StageResult.match(reply)


class ConciergeEngine:
    """Runs a guest message through the stages in order; the first MATCH answers."""

    def __init__(
        self,
        store: ReferenceStore | None = None,
        *,
        embedder: EmbeddingBackend | None = None,
        places: PlacesClient | None = None,
        threshold: float | None = None,
        top_k: int | None = None,
        stages: Sequence[Stage] | None = None,
    ) -> None:
        self.store = store or reference_store
        self.embedder = embedder or get_default_embedder(prefer_openai=True)
        self.places = places or PlacesClient()
        self.threshold = settings.EMB_THRESHOLD if threshold is None else threshold
        self.top_k = top_k or settings.FAQ_TOP_K
        self.stages: list[Stage] = list(stages) if stages is not None else self.default_stages()

    def default_stages(self) -> list[Stage]:
        return [
            NearestCategoryStage(),
            NamedPlaceStage(),
            GenericNearbyStage(self.places),
            FaqStage(FaqMatcher(self.embedder), self.threshold, self.top_k),
            LlmFallbackStage(),
            CannedFallbackStage(),
        ]

    async def resolve(self, apartment_id: str, message: str) -> ConciergeReply:
        started = time.perf_counter()
        apartment_id = (apartment_id or "").strip()
        # one snapshot for the whole request, even if a reload lands meanwhile
        snapshot = self.store.snapshot
        language = await detect_language(message)
        ctx = RequestContext(
            apartment_id=apartment_id,
            message=message,
            snapshot=snapshot,
            language=language,
        )

        reply: ConciergeReply | None = None
        for stage in self.stages:
            result = await stage.attempt(ctx)
            if result.outcome is Outcome.MATCH and result.reply is not None:
                reply = result.reply
                break
            if result.outcome is Outcome.MATCH_BUT_UNRESOLVED:
                logger.debug("stage %s detected %r but could not resolve it", stage.name, result.intent)
        if reply is None:
            reply = ConciergeReply(reply=NO_ANSWER_REPLY, source="fallback")

        if not reply.localized and language != settings.default_language:
            reply.reply = await translate_text(reply.reply, language)
        reply.detected_language = language

        elapsed = time.perf_counter() - started
        concierge_replies_total.labels(source=reply.source).inc()
        concierge_resolve_seconds.observe(elapsed)
        logger.info(
            "Concierge reply apt=%s source=%s lang=%s latency=%.1fms",
            apartment_id,
            reply.source,
            language,
            elapsed * 1000,
        )
        return reply


__all__ = [
    "CannedFallbackStage",
    "ConciergeEngine",
    "FaqStage",
    "GenericNearbyStage",
    "LlmFallbackStage",
    "NamedPlaceStage",
    "NearestCategoryStage",
    "RequestContext",
    "Stage",
]
