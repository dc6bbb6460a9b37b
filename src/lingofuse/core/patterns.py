# patterns.py
# SPDX-License-Identifier: MIT
"""Literal-recurrence pattern library built from confirmed corrections.

Each language that ever received a correction keeps the texts the user
confirmed, a character frequency table, and a set of frequent words. Scoring
is a cheap additive heuristic: it rewards text that reuses characters and
words the user has already confirmed for that language, which matters most
for languages general-purpose detectors handle poorly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .interfaces import ScoreMap
from .log import get_logger

__all__ = ["LanguagePattern", "PatternLibrary", "tokenize"]

log = get_logger(__name__)


def tokenize(text: str) -> list[str]:
    """Split on whitespace and case-fold each token."""
    return [token.casefold() for token in (text or "").split()]


@dataclass(slots=True)
class LanguagePattern:
    """Samples and derived tables for one language."""

    language_code: str
    samples: list[str] = field(default_factory=list)
    character_frequency: dict[str, int] = field(default_factory=dict)
    common_words: set[str] = field(default_factory=set)

    def add_sample(self, text: str, *, max_samples: int, min_word_length: int = 3) -> None:
        self.samples.append(text)
        overflow = len(self.samples) - max_samples
        if overflow > 0:
            del self.samples[:overflow]
        for ch in text:
            self.character_frequency[ch] = self.character_frequency.get(ch, 0) + 1
        for token in tokenize(text):
            if len(token) >= min_word_length:
                self.common_words.add(token)

    def match(self, text: str, *, char_increment: float = 0.01, word_increment: float = 0.1) -> float:
        score = 0.0
        for ch in text:
            if ch in self.character_frequency:
                score += char_increment
        for token in tokenize(text):
            if token in self.common_words:
                score += word_increment
        return min(1.0, score)

    def to_dict(self) -> dict[str, Any]:
        return {
            "language_code": self.language_code,
            "samples": list(self.samples),
            "character_frequency": dict(self.character_frequency),
            "common_words": sorted(self.common_words),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, max_samples: int | None = None) -> LanguagePattern:
        samples = [str(s) for s in data.get("samples") or []]
        if max_samples is not None and len(samples) > max_samples:
            samples = samples[-max_samples:]
        return cls(
            language_code=str(data["language_code"]),
            samples=samples,
            character_frequency={str(k): int(v) for k, v in (data.get("character_frequency") or {}).items()},
            common_words={str(w) for w in data.get("common_words") or []},
        )


class PatternLibrary:
    """All learned :class:`LanguagePattern` objects, keyed by language."""

    def __init__(
        self,
        *,
        max_samples: int = 100,
        char_increment: float = 0.01,
        word_increment: float = 0.1,
        min_word_length: int = 3,
        nudge_factor: float = 0.1,
    ) -> None:
        self.max_samples = max_samples
        self.char_increment = char_increment
        self.word_increment = word_increment
        self.min_word_length = min_word_length
        self.nudge_factor = nudge_factor
        self._patterns: dict[str, LanguagePattern] = {}

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, language: object) -> bool:
        return language in self._patterns

    def get(self, language: str) -> LanguagePattern | None:
        return self._patterns.get(language)

    def languages(self) -> list[str]:
        return sorted(self._patterns)

    def score(self, text: str, language: str) -> float:
        """Return how strongly ``text`` resembles confirmed samples of ``language``, in [0, 1]."""
        pattern = self._patterns.get(language)
        if pattern is None or not text:
            return 0.0
        return pattern.match(text, char_increment=self.char_increment, word_increment=self.word_increment)

    def absorb(self, text: str, language: str) -> None:
        """Record ``text`` as a confirmed sample of ``language``."""
        pattern = self._patterns.get(language)
        if pattern is None:
            pattern = LanguagePattern(language_code=language)
            self._patterns[language] = pattern
        pattern.add_sample(text, max_samples=self.max_samples, min_word_length=self.min_word_length)

    def adjust(self, scores: Mapping[str, float], text: str) -> ScoreMap:
        """Nudge every scored language by its pattern match, capped at 1.0."""
        adjusted = dict(scores)
        for language, current in scores.items():
            match = self.score(text, language)
            if match > 0.0:
                adjusted[language] = min(1.0, current + match * self.nudge_factor)
        return adjusted

    def clear(self) -> None:
        self._patterns.clear()

    def to_dict(self) -> dict[str, Any]:
        return {code: self._patterns[code].to_dict() for code in sorted(self._patterns)}

    def load(self, data: Mapping[str, Any] | None) -> None:
        self._patterns.clear()
        for code, payload in (data or {}).items():
            try:
                pattern = LanguagePattern.from_dict(payload, max_samples=self.max_samples)
            except (AttributeError, KeyError, TypeError, ValueError):
                log.warning("Dropping unreadable language pattern for %s", code, exc_info=True)
                continue
            self._patterns[pattern.language_code] = pattern
