"""Guest concierge: local guide, nearby places, FAQ retrieval and LLM fallback."""

from .dataset import ReferenceSnapshot, ReferenceStore, reference_store
from .engine import ConciergeEngine
from .types import ConciergeReply

__all__ = [
    "ConciergeEngine",
    "ConciergeReply",
    "ReferenceSnapshot",
    "ReferenceStore",
    "reference_store",
]
