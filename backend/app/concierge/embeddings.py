from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from collections.abc import Sequence

import numpy as np

from ..cache import TTLCache
from ..errors import ConfigMissing, UpstreamTransient
from ..openai_async import post_json
from ..settings import settings

logger = logging.getLogger(__name__)

COSINE_EPSILON = 1e-12
MAX_EMBED_CHARS = 2000


class EmbeddingUnavailable(UpstreamTransient):
    provider = "embeddings"


class EmbeddingBackend:
    name: str = "base"
    dimension: int = 0

    async def embed(self, text: str) -> np.ndarray:
        raise NotImplementedError


class HashingEmbedder(EmbeddingBackend):
    """Lightweight, dependency-free hashing trick; used when OpenAI is not configured."""

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension
        self.name = f"hash-{dimension}"

    def _embed(self, text: str) -> np.ndarray:
        tokens = re.findall(r"[a-z0-9]+", text.lower())
        vec = np.zeros(self.dimension, dtype=np.float32)
        for tok in tokens:
            h = int(hashlib.sha1(tok.encode("utf-8")).hexdigest(), 16)
            vec[h % self.dimension] += 1.0
        norm = float(np.linalg.norm(vec))
        return vec / norm if norm else vec

    async def embed(self, text: str) -> np.ndarray:
        return self._embed(text or "")


class OpenAIEmbedder(EmbeddingBackend):
    """OpenAI `/embeddings` over the shared async httpx client."""

    def __init__(self, model: str | None = None) -> None:
        if not settings.OPENAI_API_KEY:
            raise ConfigMissing("OPENAI_API_KEY not set; cannot use OpenAIEmbedder")
        self.model = model or settings.CONCIERGE_EMBED_MODEL
        # dimension is model dependent; leave as 0 to avoid stale numbers
        self.dimension = 0
        self.name = self.model

    async def embed(self, text: str) -> np.ndarray:
        payload = {"model": self.model, "input": [(text or "")[:MAX_EMBED_CHARS]]}
        try:
            response = await post_json(
                "/embeddings", payload, timeout=settings.OPENAI_TIMEOUT_SECONDS
            )
            vector = response["data"][0]["embedding"]
        except UpstreamTransient as exc:
            raise EmbeddingUnavailable(f"Embedding call failed: {exc}", status=exc.status) from exc
        except (KeyError, IndexError, TypeError) as exc:
            raise EmbeddingUnavailable("Malformed embedding payload") from exc
        return np.asarray(vector, dtype=np.float32)


def get_default_embedder(prefer_openai: bool = True) -> EmbeddingBackend:
    if prefer_openai:
        try:
            return OpenAIEmbedder()
        except ConfigMissing as exc:
            logger.warning("OpenAI embedder unavailable, falling back to hashing: %s", exc)
    return HashingEmbedder()


def cosine_similarity(
    a: Sequence[float] | np.ndarray | None, b: Sequence[float] | np.ndarray | None
) -> float:
    """dot(a, b) / (|a| * |b| + eps); 0.0 when a vector is missing or lengths differ."""
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or vb.size == 0 or va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb)) + COSINE_EPSILON
    return float(np.dot(va, vb) / denom)


class EmbeddingCache:
    """Process-wide text -> vector memo with per-key request coalescing.

    Concurrent lookups of the same missing text await one provider call. Failures
    are not memoized, so the next request tries again.
    """

    def __init__(self, max_size: int = 8192) -> None:
        self._vectors = TTLCache("embeddings", max_size=max_size, default_ttl=None)
        self._inflight: dict[tuple[str, str], asyncio.Future] = {}

    async def get_or_compute(self, backend: EmbeddingBackend, text: str) -> np.ndarray:
        key = (backend.name, text)
        cached = self._vectors.get(key)
        if cached is not None:
            return cached

        loop = asyncio.get_running_loop()
        pending = self._inflight.get(key)
        if pending is not None and pending.get_loop() is loop:
            return await asyncio.shield(pending)

        future: asyncio.Future = loop.create_future()
        self._inflight[key] = future
        try:
            vector = await backend.embed(text)
        except asyncio.CancelledError:
            # waiters from other requests degrade instead of being cancelled
            self._fail(future, EmbeddingUnavailable("Embedding request cancelled"))
            raise
        except Exception as exc:
            self._fail(future, exc)
            raise
        else:
            self._vectors.set(key, vector)
            future.set_result(vector)
            return vector
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    @staticmethod
    def _fail(future: asyncio.Future, exc: BaseException) -> None:
        future.set_exception(exc)
        # mark retrieved so an un-awaited failure does not warn at GC time
        future.exception()

    def clear(self) -> None:
        self._vectors.clear()
        self._inflight.clear()

    def get_stats(self) -> dict:
        stats = self._vectors.get_stats()
        stats["inflight"] = len(self._inflight)
        return stats


embedding_cache = EmbeddingCache()


async def embed_faq_question(backend: EmbeddingBackend, entry) -> np.ndarray | None:
    """Fill the entry's embedding slot once; None when the provider fails."""
    if entry.embedding is not None:
        return entry.embedding
    try:
        vector = await embedding_cache.get_or_compute(backend, entry.question or "")
    except (UpstreamTransient, ConfigMissing) as exc:
        logger.warning("FAQ embedding failed for %r: %s", (entry.question or "")[:60], exc)
        return None
    entry.embedding = vector
    return vector


__all__ = [
    "EmbeddingBackend",
    "EmbeddingCache",
    "EmbeddingUnavailable",
    "HashingEmbedder",
    "OpenAIEmbedder",
    "cosine_similarity",
    "embed_faq_question",
    "embedding_cache",
    "get_default_embedder",
]
