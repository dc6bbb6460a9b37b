# ledger.py
# SPDX-License-Identifier: MIT
"""Append-only, size-bounded log of user corrections."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .interfaces import TrainingPairs
from .log import get_logger
from .records import Correction

__all__ = ["CorrectionLedger", "agreement_rate"]

log = get_logger(__name__)


def agreement_rate(corrections: Sequence[Correction]) -> float:
    """Fraction of corrections where the detector already had it right."""
    if not corrections:
        return 0.0
    agreed = sum(1 for c in corrections if c.was_correct)
    return agreed / len(corrections)


class CorrectionLedger:
    """FIFO log of corrections with an accuracy trend and a retrain signal.

    ``total_recorded`` keeps counting after old entries are evicted; the
    retrain signal fires whenever it reaches a multiple of
    ``retraining_threshold``.
    """

    def __init__(self, *, capacity: int = 1000, retraining_threshold: int = 50, accuracy_window: int = 10) -> None:
        self.capacity = capacity
        self.retraining_threshold = retraining_threshold
        self.accuracy_window = accuracy_window
        self._entries: deque[Correction] = deque(maxlen=capacity)
        self.total_recorded = 0
        self.retrain_signals = 0

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> tuple[Correction, ...]:
        """Read-only view, oldest first."""
        return tuple(self._entries)

    def append(self, correction: Correction) -> bool:
        """Append a correction, evicting the oldest at capacity.

        Returns:
            bool: True when this append makes a retrain due.
        """
        if len(self._entries) == self.capacity:
            log.debug("Ledger at capacity %d; evicting oldest correction", self.capacity)
        self._entries.append(correction)
        self.total_recorded += 1
        if self.total_recorded % self.retraining_threshold == 0:
            self.retrain_signals += 1
            return True
        return False

    def accuracy_trend(self) -> float:
        """Agreement rate of the latest window minus the window before it.

        Returns 0.0 until two full windows are available.
        """
        window = self.accuracy_window
        if len(self._entries) < 2 * window:
            return 0.0
        entries = list(self._entries)
        recent = entries[-window:]
        older = entries[-2 * window:-window]
        return agreement_rate(recent) - agreement_rate(older)

    def training_pairs(self) -> TrainingPairs:
        return tuple((c.text, c.correct_language) for c in self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.total_recorded = 0
        self.retrain_signals = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_recorded": self.total_recorded,
            "retrain_signals": self.retrain_signals,
            "entries": [c.to_dict() for c in self._entries],
        }

    def load(self, data: Mapping[str, Any] | Iterable[Mapping[str, Any]] | None) -> None:
        """Restore from :meth:`to_dict` output (or a bare list of entries)."""
        self.clear()
        if not data:
            return
        if isinstance(data, Mapping):
            raw_entries = data.get("entries") or []
            total = data.get("total_recorded")
            signals = data.get("retrain_signals")
        else:
            raw_entries, total, signals = list(data), None, None
        for entry in raw_entries:
            try:
                self._entries.append(Correction.from_dict(entry))
            except (AttributeError, KeyError, TypeError, ValueError):
                log.warning("Dropping unreadable ledger entry", exc_info=True)
        self.total_recorded = max(len(self._entries), int(total or 0))
        self.retrain_signals = int(signals or 0)
