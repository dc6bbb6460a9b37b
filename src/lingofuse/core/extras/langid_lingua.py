# langid_lingua.py
# SPDX-License-Identifier: MIT
"""Optional Lingua backend producing a full confidence map."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..interfaces import ScoreMap
from ..log import get_logger

log = get_logger(__name__)


class LinguaLanguageDetector:
    """Wrap lingua-language-detector when installed."""

    name = "lingua"

    def __init__(self, languages: Sequence[str] | None = None, *, min_confidence: float = 0.0) -> None:
        try:
            from lingua import IsoCode639_1, Language, LanguageDetectorBuilder
        except Exception as exc:  # pragma: no cover - optional dependency
            raise ImportError(
                "Lingua backend requires the 'lingua-language-detector' package."
            ) from exc

        if languages:
            lang_objs = []
            for code in languages:
                try:
                    iso = getattr(IsoCode639_1, code.upper())
                except AttributeError:
                    log.debug("Lingua has no language for code %r; skipping", code)
                    continue
                lang_objs.append(Language.from_iso_code_639_1(iso))
            if len(lang_objs) >= 2:
                builder = LanguageDetectorBuilder.from_languages(*lang_objs)
            else:
                builder = LanguageDetectorBuilder.from_all_languages()
        else:
            builder = LanguageDetectorBuilder.from_all_languages()
        self.min_confidence = min_confidence
        self._detector = builder.build()

    def detect(self, text: str) -> ScoreMap | None:
        if not text or not text.strip():
            return None
        scores: ScoreMap = {}
        for entry in self._detector.compute_language_confidence_values(text):
            value = float(getattr(entry, "value", 0.0))
            if value <= self.min_confidence:
                continue
            scores[_iso_code(entry.language)] = value
        return scores or None


def _iso_code(lang: Any) -> str:
    """Extract a lowercase ISO 639-1 code from a lingua Language."""
    val = getattr(lang, "iso_code_639_1", None)
    if val is not None:
        return str(getattr(val, "name", val)).lower()
    return str(lang).lower()


__all__ = ["LinguaLanguageDetector"]
