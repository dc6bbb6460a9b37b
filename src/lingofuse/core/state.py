# state.py
# SPDX-License-Identifier: MIT
"""The engine's learned state as one explicit object.

:class:`EngineState` owns the four stores and is the only place a
correction is applied. Application is all-or-nothing: if any step fails
the stores are rolled back to their previous documents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .config import EngineConfig
from .context import ContextualPatternStore
from .interfaces import StateDocuments
from .ledger import CorrectionLedger
from .log import get_logger
from .patterns import PatternLibrary
from .records import Correction, LearningStats
from .weights import AdaptiveWeightStore

__all__ = [
    "EngineState",
    "WEIGHTS_KEY",
    "PATTERNS_KEY",
    "CONTEXTS_KEY",
    "LEDGER_KEY",
    "STATE_KEYS",
]

log = get_logger(__name__)

WEIGHTS_KEY = "adaptive_weights"
PATTERNS_KEY = "language_patterns"
CONTEXTS_KEY = "contextual_patterns"
LEDGER_KEY = "correction_ledger"
STATE_KEYS = (WEIGHTS_KEY, PATTERNS_KEY, CONTEXTS_KEY, LEDGER_KEY)


@dataclass(slots=True)
class EngineState:
    weights: AdaptiveWeightStore
    patterns: PatternLibrary
    contexts: ContextualPatternStore
    ledger: CorrectionLedger
    learning_rate: float = 0.01

    @classmethod
    def from_config(cls, cfg: EngineConfig) -> EngineState:
        return cls(
            weights=AdaptiveWeightStore(
                min_weight=cfg.learning.min_weight,
                max_weight=cfg.learning.max_weight,
            ),
            patterns=PatternLibrary(
                max_samples=cfg.patterns.max_samples,
                char_increment=cfg.patterns.char_increment,
                word_increment=cfg.patterns.word_increment,
                min_word_length=cfg.patterns.min_word_length,
                nudge_factor=cfg.patterns.nudge_factor,
            ),
            contexts=ContextualPatternStore(
                hour_tolerance=cfg.context.hour_tolerance,
                adjustment_factor=cfg.context.adjustment_factor,
                reinforce_step=cfg.context.reinforce_step,
                max_strength=cfg.context.max_strength,
            ),
            ledger=CorrectionLedger(
                capacity=cfg.learning.max_corrections,
                retraining_threshold=cfg.learning.retraining_threshold,
                accuracy_window=cfg.learning.accuracy_window,
            ),
            learning_rate=cfg.learning.learning_rate,
        )

    def apply_correction(self, correction: Correction) -> bool:
        """Log ``correction`` and update patterns, contexts and weights, in that order.

        Returns:
            bool: True when the ledger signals that a retrain is due.
        """
        before = self.to_documents()
        try:
            retrain_due = self.ledger.append(correction)
            self.patterns.absorb(correction.text, correction.correct_language)
            self.contexts.record_or_reinforce(correction.context, correction.correct_language)
            self.weights.reinforce(correction.correct_language, correction.detected_language, self.learning_rate)
        except Exception:
            log.error("Correction could not be applied; rolling back learned state")
            self.load_documents(before)
            raise
        return retrain_due

    def stats(self) -> LearningStats:
        capacity = self.ledger.capacity
        return LearningStats(
            total_corrections=self.ledger.total_recorded,
            accuracy_trend=self.ledger.accuracy_trend(),
            learned_language_patterns=len(self.patterns),
            contextual_patterns=len(self.contexts),
            learning_progress=min(1.0, self.ledger.total_recorded / capacity) if capacity else 0.0,
            retrain_signals=self.ledger.retrain_signals,
        )

    def reset(self) -> None:
        self.weights.clear()
        self.patterns.clear()
        self.contexts.clear()
        self.ledger.clear()

    def to_documents(self) -> StateDocuments:
        return {
            WEIGHTS_KEY: self.weights.to_dict(),
            PATTERNS_KEY: self.patterns.to_dict(),
            CONTEXTS_KEY: self.contexts.to_list(),
            LEDGER_KEY: self.ledger.to_dict(),
        }

    def load_documents(self, documents: Mapping[str, Any] | None) -> None:
        """Restore every store; a document of the wrong shape leaves its store empty."""
        documents = documents if isinstance(documents, Mapping) else {}
        stores = (
            (WEIGHTS_KEY, self.weights),
            (PATTERNS_KEY, self.patterns),
            (CONTEXTS_KEY, self.contexts),
            (LEDGER_KEY, self.ledger),
        )
        for key, store in stores:
            try:
                store.load(documents.get(key))
            except (AttributeError, KeyError, TypeError, ValueError):
                log.warning("Dropping unreadable %s document", key, exc_info=True)
                store.clear()
