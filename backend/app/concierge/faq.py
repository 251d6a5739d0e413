from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from ..settings import settings
from .embeddings import (
    EmbeddingBackend,
    cosine_similarity,
    embed_faq_question,
    embedding_cache,
)
from .types import FaqEntry, ScoredMatch

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class FaqMatcher:
    """Rank FAQ questions against a guest message by embedding cosine similarity.

    The acceptance threshold is applied by the caller; this class only ranks.
    """

    def __init__(
        self,
        embedder: EmbeddingBackend,
        *,
        concurrency: int | None = None,
    ) -> None:
        self.embedder = embedder
        self.concurrency = max(1, concurrency or settings.EMBED_CONCURRENCY)

    async def _embed_candidates(self, candidates: Sequence[FaqEntry]) -> None:
        missing = [entry for entry in candidates if entry.embedding is None]
        if not missing:
            return
        gate = asyncio.Semaphore(self.concurrency)

        async def _one(entry: FaqEntry) -> None:
            async with gate:
                await embed_faq_question(self.embedder, entry)

        await asyncio.gather(*(_one(entry) for entry in missing))

    async def find_best_matches(
        self,
        apartment_faqs: Sequence[FaqEntry],
        message: str,
        global_faqs: Sequence[FaqEntry] = (),
        top_k: int = DEFAULT_TOP_K,
    ) -> list[ScoredMatch]:
        """Return up to `top_k` matches, best first.

        Raises the provider error when the message itself cannot be embedded;
        candidates whose question fails to embed are skipped.
        """
        pool = [*apartment_faqs, *global_faqs]
        if not pool:
            return []

        message_vector = await embedding_cache.get_or_compute(self.embedder, message)
        await self._embed_candidates(pool)

        scored = [
            ScoredMatch(entry=entry, score=cosine_similarity(message_vector, entry.embedding))
            for entry in pool
            if entry.embedding is not None
        ]
        # stable: equal scores keep pool order (apartment FAQs before global ones)
        scored.sort(key=lambda m: m.score, reverse=True)
        skipped = len(pool) - len(scored)
        if skipped:
            logger.info("FAQ matcher skipped %d/%d candidates without embeddings", skipped, len(pool))
        return scored[: max(0, top_k)]


__all__ = ["DEFAULT_TOP_K", "FaqMatcher"]
