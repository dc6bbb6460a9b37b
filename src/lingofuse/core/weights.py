# weights.py
# SPDX-License-Identifier: MIT
"""Per-language adaptive weights learned from corrections."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .interfaces import ScoreMap
from .log import get_logger

__all__ = ["AdaptiveWeightStore", "DEFAULT_WEIGHT"]

log = get_logger(__name__)

DEFAULT_WEIGHT = 1.0


class AdaptiveWeightStore:
    """Multiplicative trust factor per language, clamped to a fixed band.

    Unknown languages behave as if they had the default weight; the only way
    a weight changes is :meth:`reinforce`.
    """

    def __init__(self, *, min_weight: float = 0.5, max_weight: float = 2.0) -> None:
        self.min_weight = float(min_weight)
        self.max_weight = float(max_weight)
        self._weights: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._weights)

    def weight(self, language: str) -> float:
        return self._weights.get(language, DEFAULT_WEIGHT)

    def snapshot(self) -> dict[str, float]:
        return dict(self._weights)

    def apply_weights(self, scores: Mapping[str, float]) -> ScoreMap:
        """Multiply each score by its language weight and renormalize to 1.

        An empty map, or one whose weighted sum is zero, is returned
        unchanged.
        """
        weighted = {code: float(value) * self.weight(code) for code, value in scores.items()}
        total = sum(weighted.values())
        if total <= 0.0:
            return dict(scores)
        return {code: value / total for code, value in weighted.items()}

    def reinforce(self, correct_language: str, detected_language: str, learning_rate: float) -> None:
        """Raise the correct language's weight and, on disagreement, lower the detected one."""
        current = self.weight(correct_language)
        self._weights[correct_language] = min(self.max_weight, current + learning_rate)
        if detected_language != correct_language:
            current = self.weight(detected_language)
            self._weights[detected_language] = max(self.min_weight, current - learning_rate)

    def clear(self) -> None:
        self._weights.clear()

    def to_dict(self) -> dict[str, float]:
        return dict(sorted(self._weights.items()))

    def load(self, data: Mapping[str, Any] | None) -> None:
        """Replace weights from a persisted mapping, clamping stray values."""
        self._weights.clear()
        for code, value in (data or {}).items():
            try:
                weight = float(value)
            except (TypeError, ValueError):
                log.warning("Dropping unreadable weight for %s: %r", code, value)
                continue
            self._weights[str(code)] = min(self.max_weight, max(self.min_weight, weight))
