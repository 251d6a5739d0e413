"""Language detection and translation, both as chat completions with fixed prompts.

Neither ever fails the request: detection falls back to the default language and
translation falls back to the untranslated text.
"""

from __future__ import annotations

import logging
import re

from ..errors import ConfigMissing, UpstreamTransient
from ..metrics import concierge_upstream_failures_total
from ..openai_async import chat_completion
from ..settings import settings
from .prompts import (
    LANGUAGE_DETECTION_SYSTEM_PROMPT,
    LANGUAGE_DETECTION_USER_PROMPT,
    TRANSLATION_SYSTEM_PROMPT,
    TRANSLATION_USER_PROMPT,
)

logger = logging.getLogger(__name__)

_LEADING_CODE = re.compile(r"[a-z]+")


def parse_language_code(raw: str | None, default: str) -> str:
    """First alphabetic run of the model reply, e.g. "'de'." -> "de"."""
    match = _LEADING_CODE.search((raw or "").strip().lower())
    return match.group(0) if match else default


async def detect_language(text: str) -> str:
    default = settings.default_language
    if not (text or "").strip():
        return default
    try:
        raw = await chat_completion(
            LANGUAGE_DETECTION_SYSTEM_PROMPT,
            LANGUAGE_DETECTION_USER_PROMPT.format(text=text),
            temperature=0.0,
            max_tokens=8,
        )
    except ConfigMissing:
        return default
    except UpstreamTransient as exc:
        concierge_upstream_failures_total.labels(provider=exc.provider).inc()
        logger.warning("Language detection failed, defaulting to %s: %s", default, exc)
        return default
    return parse_language_code(raw, default)


async def translate_text(text: str, target_lang: str | None) -> str:
    if not text or not target_lang:
        return text
    lang = target_lang.strip().lower()
    if lang == settings.default_language:
        return text
    try:
        translated = await chat_completion(
            TRANSLATION_SYSTEM_PROMPT.format(lang=lang),
            TRANSLATION_USER_PROMPT.format(lang=lang, text=text),
            temperature=0.0,
            max_tokens=350,
        )
    except ConfigMissing:
        return text
    except UpstreamTransient as exc:
        concierge_upstream_failures_total.labels(provider=exc.provider).inc()
        logger.warning("Translation to %s failed, returning original text: %s", lang, exc)
        return text
    return translated or text


__all__ = ["detect_language", "parse_language_code", "translate_text"]
