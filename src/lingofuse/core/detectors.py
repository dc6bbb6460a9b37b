# detectors.py
# SPDX-License-Identifier: MIT
"""Detector adapters feeding the ensemble.

Every adapter exposes ``detect(text) -> mapping | None``. The engine only
consumes the scores; how a detector computes them is its own business. The
built-in :class:`ScriptDetector` is a cheap Unicode-block heuristic, useful
as one signal among several or on its own in tests.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from .interfaces import LanguageDetector, ScoreMap

__all__ = [
    "ScriptRange",
    "DEFAULT_SCRIPT_RANGES",
    "ScriptDetector",
    "CallableDetector",
    "make_language_detector",
]


@dataclass(frozen=True, slots=True)
class ScriptRange:
    """A Unicode block and how its letters split across languages."""

    name: str
    start: int
    end: int
    languages: Mapping[str, float] = field(default_factory=dict)

    def contains(self, ch: str) -> bool:
        return self.start <= ord(ch) <= self.end


# Shares are priors, not probabilities; a script shared by several
# languages spreads its mass across them.
DEFAULT_SCRIPT_RANGES: tuple[ScriptRange, ...] = (
    ScriptRange("devanagari", 0x0900, 0x097F, {"hi": 0.6, "mr": 0.25, "ne": 0.15}),
    ScriptRange("bengali", 0x0980, 0x09FF, {"bn": 0.8, "as": 0.2}),
    ScriptRange("gurmukhi", 0x0A00, 0x0A7F, {"pa": 1.0}),
    ScriptRange("gujarati", 0x0A80, 0x0AFF, {"gu": 1.0}),
    ScriptRange("oriya", 0x0B00, 0x0B7F, {"or": 1.0}),
    ScriptRange("tamil", 0x0B80, 0x0BFF, {"ta": 1.0}),
    ScriptRange("telugu", 0x0C00, 0x0C7F, {"te": 1.0}),
    ScriptRange("kannada", 0x0C80, 0x0CFF, {"kn": 1.0}),
    ScriptRange("malayalam", 0x0D00, 0x0D7F, {"ml": 1.0}),
    ScriptRange("arabic", 0x0600, 0x06FF, {"ur": 0.7, "ar": 0.3}),
    ScriptRange("latin", 0x0041, 0x024F, {"en": 0.6}),
)


class ScriptDetector:
    """Score languages by the share of letters in each Unicode script."""

    name = "script"

    def __init__(self, ranges: tuple[ScriptRange, ...] = DEFAULT_SCRIPT_RANGES, *, sample_chars: int = 2048) -> None:
        self.ranges = ranges
        self.sample_chars = sample_chars

    def detect(self, text: str) -> ScoreMap | None:
        sample = (text or "")[: self.sample_chars]
        counts: dict[str, int] = {}
        letters = 0
        for ch in sample:
            if not ch.isalpha():
                continue
            letters += 1
            for script in self.ranges:
                if script.contains(ch):
                    counts[script.name] = counts.get(script.name, 0) + 1
                    break
        if not letters or not counts:
            return None

        scores: ScoreMap = {}
        for script in self.ranges:
            hits = counts.get(script.name)
            if not hits:
                continue
            share = hits / letters
            for code, prior in script.languages.items():
                scores[code] = scores.get(code, 0.0) + share * prior
        return scores


class CallableDetector:
    """Adapt a plain ``text -> mapping`` callable to the detector contract."""

    def __init__(self, fn: Callable[[str], Mapping[str, float] | None], *, name: str | None = None) -> None:
        self._fn = fn
        self.name = name or getattr(fn, "__name__", "callable")

    def detect(self, text: str) -> Mapping[str, float] | None:
        return self._fn(text)


def make_language_detector(backend: str, **options) -> LanguageDetector | None:
    """Factory for detector adapters by backend name."""
    backend = (backend or "none").lower()
    if backend == "none":
        return None
    if backend == "script":
        return ScriptDetector(**options)
    if backend == "lingua":
        from .extras.langid_lingua import LinguaLanguageDetector

        return LinguaLanguageDetector(**options)
    raise ValueError(f"Unknown language detector backend: {backend}")
