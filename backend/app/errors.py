"""Error kinds shared by the concierge pipeline and its providers."""

from __future__ import annotations


class ConciergeError(RuntimeError):
    pass


class ConfigMissing(ConciergeError):
    """A required credential or setting is absent; the feature is disabled."""


class UpstreamTransient(ConciergeError):
    """An external provider call failed. Never retried; the caller downgrades."""

    provider: str = "upstream"

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class DataUnavailable(ConciergeError):
    """Reference data is empty or the apartment is unknown."""


__all__ = ["ConciergeError", "ConfigMissing", "DataUnavailable", "UpstreamTransient"]
