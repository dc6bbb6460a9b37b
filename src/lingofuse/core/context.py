# context.py
# SPDX-License-Identifier: MIT
"""Contextual language preferences learned from corrections.

A contextual pattern ties a situation (time of day, weekday, previous
language) to the language the user confirmed in it. Matching is a loose OR
so patterns fire often; their effect is bounded by ``strength``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .interfaces import ScoreMap
from .log import get_logger
from .records import ContextSignature, NoiseLevel

__all__ = ["ContextualPattern", "ContextualPatternStore", "ContextTracker"]

log = get_logger(__name__)

INITIAL_STRENGTH = 1.0


@dataclass(slots=True)
class ContextualPattern:
    context: ContextSignature
    preferred_language: str
    strength: float = INITIAL_STRENGTH

    def to_dict(self) -> dict[str, Any]:
        return {
            "context": self.context.to_dict(),
            "preferred_language": self.preferred_language,
            "strength": self.strength,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContextualPattern:
        return cls(
            context=ContextSignature.from_dict(data["context"]),
            preferred_language=str(data["preferred_language"]),
            strength=float(data.get("strength", INITIAL_STRENGTH)),
        )


class ContextualPatternStore:
    """Ordered collection of :class:`ContextualPattern` entries."""

    def __init__(
        self,
        *,
        hour_tolerance: int = 2,
        adjustment_factor: float = 0.05,
        reinforce_step: float = 0.1,
        max_strength: float = 2.0,
    ) -> None:
        self.hour_tolerance = hour_tolerance
        self.adjustment_factor = adjustment_factor
        self.reinforce_step = reinforce_step
        self.max_strength = max_strength
        self._patterns: list[ContextualPattern] = []

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self):
        return iter(list(self._patterns))

    def match(self, signature: ContextSignature) -> list[ContextualPattern]:
        """Return every stored pattern whose context loosely matches ``signature``."""
        return [
            p for p in self._patterns
            if p.context.matches(signature, hour_tolerance=self.hour_tolerance)
        ]

    def adjust(self, scores: Mapping[str, float], signature: ContextSignature) -> ScoreMap:
        """Add ``strength * adjustment_factor`` for each matching pattern.

        Only languages already present in ``scores`` are nudged; each score
        is capped at 1.0.
        """
        adjusted = dict(scores)
        for pattern in self.match(signature):
            language = pattern.preferred_language
            if language not in adjusted:
                continue
            adjusted[language] = min(1.0, adjusted[language] + pattern.strength * self.adjustment_factor)
        return adjusted

    def record_or_reinforce(self, signature: ContextSignature, preferred_language: str) -> ContextualPattern:
        """Strengthen the first matching pattern for this language, or start a new one."""
        for pattern in self._patterns:
            if pattern.preferred_language != preferred_language:
                continue
            if pattern.context.matches(signature, hour_tolerance=self.hour_tolerance):
                pattern.strength = min(self.max_strength, pattern.strength + self.reinforce_step)
                return pattern
        pattern = ContextualPattern(context=signature, preferred_language=preferred_language)
        self._patterns.append(pattern)
        return pattern

    def clear(self) -> None:
        self._patterns.clear()

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self._patterns]

    def load(self, data: Iterable[Mapping[str, Any]] | None) -> None:
        self._patterns.clear()
        for entry in data or []:
            try:
                pattern = ContextualPattern.from_dict(entry)
            except (AttributeError, KeyError, TypeError, ValueError):
                log.warning("Dropping unreadable contextual pattern: %r", entry, exc_info=True)
                continue
            pattern.strength = min(self.max_strength, max(0.0, pattern.strength))
            self._patterns.append(pattern)


class ContextTracker:
    """Assemble :class:`ContextSignature` values for a live session.

    The recognizer's per-result language hint feeds ``previous_language``;
    it is never trusted as ground truth beyond that.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or datetime.now
        self._session_start = self._clock()
        self._previous_language: str | None = None

    @property
    def previous_language(self) -> str | None:
        return self._previous_language

    def observe_hint(self, language: str | None) -> None:
        if language:
            self._previous_language = language

    def start_session(self) -> None:
        self._session_start = self._clock()
        self._previous_language = None

    def signature(self, *, noise_level: float | None = None) -> ContextSignature:
        now = self._clock()
        elapsed = max(0.0, (now - self._session_start).total_seconds())
        noise = NoiseLevel.MODERATE if noise_level is None else NoiseLevel.classify(noise_level)
        return ContextSignature.at(
            now,
            previous_language=self._previous_language,
            session_elapsed=elapsed,
            ambient_noise=noise,
        )
