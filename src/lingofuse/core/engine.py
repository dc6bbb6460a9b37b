# engine.py
# SPDX-License-Identifier: MIT
"""Prediction orchestrator and feedback entry point.

:class:`LanguageFeedbackEngine` runs every prediction through the same
fixed stages (blend, weight, context, patterns, rank) and applies user
corrections to the learned state. A single re-entrant lock serializes
predictions against corrections so no prediction ever reads a
half-applied correction.

Examples:
    >>> from lingofuse import LanguageFeedbackEngine, ScriptDetector
    >>> engine = LanguageFeedbackEngine([ScriptDetector()])
    >>> result = engine.predict("नमस्ते दुनिया")
    >>> result.language
    'hi'
"""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from .blend import blend, leader
from .config import EngineConfig
from .context import ContextTracker
from .interfaces import LanguageDetector, RetrainCallback, ScoreMap, StateStore, detector_name
from .log import get_logger
from .records import ContextSignature, Correction, CorrectionOutcome, LearningStats, PredictionResult
from .state import EngineState
from .state_store import MemoryStateStore, SQLiteStateStore

__all__ = ["LanguageFeedbackEngine", "NO_SIGNAL_EXPLANATION"]

log = get_logger(__name__)

NO_SIGNAL_EXPLANATION = "no detector signal available"


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _describe_stage(stage: str, before: Mapping[str, float], after: Mapping[str, float]) -> str:
    """One explanation line: who leads after ``stage`` and how that moved."""
    prev = leader(before)
    curr = leader(after)
    if curr is None:
        return f"{stage}: no scores"
    code, score = curr
    if prev is not None and prev[0] != code:
        return f"{stage}: leader changed {prev[0]} -> {code} ({_pct(score)}, {prev[0]} now {_pct(after.get(prev[0], 0.0))})"
    delta = score - before.get(code, 0.0)
    if abs(delta) < 1e-9:
        return f"{stage}: {code} unchanged at {_pct(score)}"
    sign = "+" if delta > 0 else "-"
    return f"{stage}: {code} {_pct(score)} ({sign}{abs(delta) * 100:.1f} pts)"


def _sanitize(scores: Mapping[str, float]) -> ScoreMap:
    clean: ScoreMap = {}
    for code, value in scores.items():
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isnan(number):
            continue
        clean[str(code)] = min(1.0, max(0.0, number))
    return clean


class LanguageFeedbackEngine:
    """Fuse detector scores into one ranked decision and learn from corrections.

    Args:
        detectors (Sequence[LanguageDetector]): Adapters queried on every
            :meth:`predict`. May be empty when callers use :meth:`rank`.
        config (EngineConfig | None): Engine knobs; validated on construction.
        store (StateStore | None): Where learned state lives. Defaults to a
            SQLite file when ``config.storage.path`` is set, else memory.
        tracker (ContextTracker | None): Builds context signatures when a
            call does not pass one.
    """

    def __init__(
        self,
        detectors: Sequence[LanguageDetector] = (),
        *,
        config: EngineConfig | None = None,
        store: StateStore | None = None,
        tracker: ContextTracker | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.config.validate()
        self.detectors = list(detectors)
        self.tracker = tracker or ContextTracker()
        if store is None:
            path = self.config.storage.path
            store = SQLiteStateStore(path) if path else MemoryStateStore()
        self.store = store
        self.state = EngineState.from_config(self.config)

        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        if self.config.storage.persist_async:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lingofuse-persist")
        self._pending: Future | None = None
        self._dirty = False
        self.last_persist_error: BaseException | None = None
        self._retrain_listeners: list[RetrainCallback] = []

        self._load_state()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _load_state(self) -> None:
        try:
            documents = self.store.load()
        except Exception as exc:  # noqa: BLE001
            log.warning("Could not load learned state; starting empty: %s", exc, exc_info=True)
            return
        if not documents:
            return
        try:
            self.state.load_documents(documents)
        except Exception as exc:  # noqa: BLE001
            log.warning("Learned state is unreadable; starting empty: %s", exc, exc_info=True)
            self.state.reset()
            return
        log.debug("Loaded learned state: %s", self.state.stats())

    def close(self) -> None:
        """Finish pending saves, retry a failed one once, and release the store."""
        with self._lock:
            self._await_pending()
            if self._dirty:
                self._write(self.state.to_documents())
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
            self.store.close()

    def __enter__(self) -> LanguageFeedbackEngine:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def on_retrain_due(self, callback: RetrainCallback) -> None:
        """Register a listener for the retrain-due signal.

        The callback receives the total number of recorded corrections and
        the ``(text, correct_language)`` pairs currently in the ledger. The
        engine never trains anything itself.
        """
        self._retrain_listeners.append(callback)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def collect_scores(self, text: str) -> list[ScoreMap]:
        """Query every detector; failures and empty answers contribute nothing."""
        maps: list[ScoreMap] = []
        for detector in self.detectors:
            name = detector_name(detector)
            try:
                scores = detector.detect(text)
            except Exception as exc:  # noqa: BLE001
                log.warning("Detector %s failed; omitting its scores: %s", name, exc)
                continue
            if not scores:
                log.debug("Detector %s produced no scores", name)
                continue
            maps.append(_sanitize(scores))
        return maps

    def predict(self, text: str, context: ContextSignature | None = None) -> PredictionResult:
        """Detect the language of ``text`` with learned adjustments applied.

        Never raises for bad input or failing detectors; when nothing usable
        comes back the result is the configured default language with
        confidence 0.
        """
        if not isinstance(text, str) or not text.strip():
            return self._fallback()
        return self.rank(self.collect_scores(text), text, context)

    def rank(
        self,
        score_maps: Iterable[Mapping[str, float] | None],
        text: str = "",
        context: ContextSignature | None = None,
    ) -> PredictionResult:
        """Run the blend -> weight -> context -> pattern stages on given detector outputs."""
        maps = [_sanitize(m) for m in score_maps if m]
        blended = blend(maps, mode=self.config.blend.mode)
        if self.config.languages is not None:
            allowed = set(self.config.languages)
            blended = {code: value for code, value in blended.items() if code in allowed}
        base = leader(blended)
        if base is None:
            return self._fallback()
        if context is None:
            context = self.tracker.signature()

        explanation = [f"blend: {base[0]} leads at {_pct(base[1])} from {len(maps)} detector(s)"]
        with self._lock:
            self._await_pending()
            weighted = self.state.weights.apply_weights(blended)
            explanation.append(_describe_stage("weights", blended, weighted))

            matches = len(self.state.contexts.match(context))
            contextual = self.state.contexts.adjust(weighted, context)
            if matches:
                line = _describe_stage("context", weighted, contextual)
                explanation.append(f"{line} [{matches} matching pattern(s)]")
            else:
                explanation.append("context: no matching patterns")

            patterned = self.state.patterns.adjust(contextual, text)
            explanation.append(_describe_stage("patterns", contextual, patterned))

        # The stages only raise scores of languages already present.
        final = leader(patterned) or base
        return PredictionResult(
            language=final[0],
            confidence=final[1],
            scores=patterned,
            explanation=tuple(explanation),
            base_language=base[0],
            base_confidence=base[1],
        )

    def _fallback(self) -> PredictionResult:
        return PredictionResult(
            language=self.config.default_language,
            confidence=0.0,
            scores={},
            explanation=(NO_SIGNAL_EXPLANATION,),
        )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------
    def submit_correction(
        self,
        text: str,
        detected_language: str,
        correct_language: str,
        confidence: float,
        context: ContextSignature | None = None,
    ) -> CorrectionOutcome:
        """Record a user correction and update every learned store.

        Corrections apply in call order. The new state is saved before this
        returns (or queued, with ``storage.persist_async``); a failed save is
        logged and retried on the next mutating call.
        """
        if context is None:
            context = self.tracker.signature()
        correction = Correction.create(text, detected_language, correct_language, confidence, context)
        with self._lock:
            self._await_pending()
            retrain_due = self.state.apply_correction(correction)
            log.debug(
                "Correction recorded: %s -> %s (%d chars)",
                detected_language,
                correct_language,
                correction.text_length,
            )
            persisted = self._persist()
            ledger_size = len(self.state.ledger)
            total = self.state.ledger.total_recorded
            pairs = self.state.ledger.training_pairs() if retrain_due else ()

        if retrain_due:
            log.info("Retrain due after %d corrections", total)
            for callback in list(self._retrain_listeners):
                try:
                    callback(total, pairs)
                except Exception:  # noqa: BLE001
                    log.warning("Retrain listener %r failed", callback, exc_info=True)
        return CorrectionOutcome(ledger_size=ledger_size, persisted=persisted, retrain_due=retrain_due)

    def get_stats(self) -> LearningStats:
        with self._lock:
            return self.state.stats()

    def reset(self) -> None:
        """Wipe all learned state in memory and in the store in one step."""
        with self._lock:
            self._await_pending()
            self.state.reset()
            try:
                self.store.clear()
            except Exception as exc:  # noqa: BLE001
                log.warning("Could not clear stored state; will overwrite on next save: %s", exc, exc_info=True)
                self._dirty = True
                self.last_persist_error = exc
            else:
                self._dirty = False
                self.last_persist_error = None
            log.info("Learned state reset")

    def flush(self) -> bool:
        """Wait for pending saves and retry a failed one. Returns True when the store is current."""
        with self._lock:
            self._await_pending()
            if self._dirty:
                return self._write(self.state.to_documents())
            return True

    # ------------------------------------------------------------------
    # Persistence plumbing
    # ------------------------------------------------------------------
    def _persist(self) -> bool:
        documents = self.state.to_documents()
        if self._executor is None:
            return self._write(documents)
        self._dirty = True
        self._pending = self._executor.submit(self._write, documents)
        return True

    def _write(self, documents) -> bool:
        try:
            self.store.save(documents)
        except Exception as exc:  # noqa: BLE001
            log.warning("Persisting learned state failed; will retry: %s", exc, exc_info=True)
            self._dirty = True
            self.last_persist_error = exc
            return False
        self._dirty = False
        self.last_persist_error = None
        return True

    def _await_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.result()
