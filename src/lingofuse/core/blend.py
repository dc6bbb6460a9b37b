# blend.py
# SPDX-License-Identifier: MIT
"""Ensemble blending of detector score maps.

Blending is a pure function over its inputs: it never normalizes (that
happens after weighting) and a language missing from one detector's map is
simply absent there, not zero.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .config import BlendMode
from .interfaces import ScoreMap

__all__ = ["blend", "leader"]


def blend(score_maps: Iterable[Mapping[str, float] | None], *, mode: str = BlendMode.PAIRWISE) -> ScoreMap:
    """Merge several detector outputs into one score map.

    In ``pairwise`` mode a language reported by more than one detector is
    folded as ``(current + new) / 2`` in detector order, so with two detectors
    this is their average. In ``mean`` mode every contribution counts
    equally. A language seen by a single detector keeps its raw value in
    both modes. ``None`` entries (failed detectors) are skipped.
    """
    mode = BlendMode.normalize(mode)
    merged: ScoreMap = {}
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}

    for scores in score_maps:
        if not scores:
            continue
        for code, value in scores.items():
            value = float(value)
            if mode == BlendMode.MEAN:
                totals[code] = totals.get(code, 0.0) + value
                counts[code] = counts.get(code, 0) + 1
                merged[code] = totals[code] / counts[code]
            elif code in merged:
                merged[code] = (merged[code] + value) / 2.0
            else:
                merged[code] = value
    return merged


def leader(scores: Mapping[str, float]) -> tuple[str, float] | None:
    """Return the highest-scoring ``(language, score)`` pair.

    Ties resolve to the lexicographically smallest code so rankings stay
    deterministic regardless of dict insertion order.
    """
    if not scores:
        return None
    code = min(scores, key=lambda c: (-scores[c], c))
    return code, scores[code]
