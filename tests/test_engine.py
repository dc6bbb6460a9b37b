import json
import logging
import sqlite3

import pytest

from lingofuse import LanguageFeedbackEngine
from lingofuse.core.config import EngineConfig
from lingofuse.core.detectors import CallableDetector, ScriptDetector
from lingofuse.core.engine import NO_SIGNAL_EXPLANATION
from lingofuse.core.records import ContextSignature
from lingofuse.core.state_store import MemoryStateStore
from lingofuse.core.weights import AdaptiveWeightStore

MORNING = ContextSignature(hour_of_day=10, day_of_week=2)
EVENING = ContextSignature(hour_of_day=20, day_of_week=5)

TWO_DETECTORS = [{"hi": 0.7, "en": 0.2}, {"hi": 0.3, "en": 0.4}]


class FlakyStore(MemoryStateStore):
    def __init__(self, fail=True):
        super().__init__()
        self.fail = fail

    def save(self, documents):
        if self.fail:
            raise OSError("disk full")
        super().save(documents)


def test_blend_then_weights_normalize():
    engine = LanguageFeedbackEngine()
    result = engine.rank(TWO_DETECTORS, context=MORNING)

    assert result.language == "hi"
    assert result.confidence == pytest.approx(0.625)
    assert result.scores["en"] == pytest.approx(0.375)
    assert result.base_language == "hi"
    assert result.base_confidence == pytest.approx(0.5)
    assert result.adjustment == pytest.approx(0.125)


def test_explanation_lists_every_stage_in_order():
    result = LanguageFeedbackEngine().rank(TWO_DETECTORS, context=MORNING)
    assert result.explanation == (
        "blend: hi leads at 50.0% from 2 detector(s)",
        "weights: hi 62.5% (+12.5 pts)",
        "context: no matching patterns",
        "patterns: hi unchanged at 62.5%",
    )


def test_explanations_are_deterministic():
    first = LanguageFeedbackEngine().rank(TWO_DETECTORS, "namaste", MORNING)
    second = LanguageFeedbackEngine().rank(TWO_DETECTORS, "namaste", MORNING)
    assert first == second


def test_failing_detector_is_omitted(caplog):
    def broken(text):
        raise RuntimeError("model not loaded")

    caplog.set_level(logging.WARNING, logger="lingofuse")
    engine = LanguageFeedbackEngine([CallableDetector(broken), ScriptDetector()])
    result = engine.predict("नमस्ते दुनिया", MORNING)

    assert result.language == "hi"
    assert result.confidence > 0
    assert "broken failed" in caplog.text


def test_detector_without_opinion_is_skipped():
    engine = LanguageFeedbackEngine([CallableDetector(lambda text: None), ScriptDetector()])
    result = engine.predict("வணக்கம்", MORNING)
    assert result.language == "ta"
    assert result.explanation[0].endswith("from 1 detector(s)")


@pytest.mark.parametrize("text", ["", "   ", "12345", None, 123, b"namaste", ["hi"]])
def test_no_signal_falls_back_to_default(text):
    engine = LanguageFeedbackEngine([ScriptDetector()])
    result = engine.predict(text)
    assert result.language == "hi"
    assert result.confidence == 0.0
    assert result.scores == {}
    assert result.explanation == (NO_SIGNAL_EXPLANATION,)


def test_no_detectors_uses_configured_default():
    engine = LanguageFeedbackEngine(config=EngineConfig(default_language="en"))
    assert engine.predict("hello there").language == "en"


def test_detector_scores_are_clamped():
    engine = LanguageFeedbackEngine()
    result = engine.rank([{"hi": 1.7, "en": float("nan"), "ta": "bad"}], context=MORNING)
    assert result.base_confidence == 1.0
    assert set(result.scores) == {"hi"}


def test_language_allowlist_filters_blended_scores():
    engine = LanguageFeedbackEngine(config=EngineConfig(languages=("en", "ta")))
    assert engine.rank([{"hi": 0.9, "en": 0.1}], context=MORNING).language == "en"
    assert engine.rank([{"hi": 0.9}], context=MORNING).explanation == (NO_SIGNAL_EXPLANATION,)


def test_corrections_shift_weights():
    engine = LanguageFeedbackEngine()
    for _ in range(3):
        engine.submit_correction("thank you", "hi", "en", 0.6, MORNING)

    assert engine.state.weights.weight("en") == pytest.approx(1.03)
    assert engine.state.weights.weight("hi") == pytest.approx(0.97)
    assert engine.get_stats().total_corrections == 3


def test_ledger_capacity_is_bounded():
    cfg = EngineConfig()
    cfg.learning.max_corrections = 5
    engine = LanguageFeedbackEngine(config=cfg)
    for i in range(6):
        outcome = engine.submit_correction(f"text {i}", "hi", "mr", 0.5, MORNING)

    assert outcome.ledger_size == 5
    stats = engine.get_stats()
    assert stats.total_corrections == 6
    assert stats.learning_progress == 1.0


def test_learned_patterns_pull_predictions_toward_corrected_language():
    engine = LanguageFeedbackEngine()
    engine.submit_correction("vanakkam nanba eppadi irukkinga", "hi", "ta", 0.5, MORNING)

    result = engine.rank([{"hi": 0.5, "ta": 0.5}], "vanakkam nanba", EVENING)

    assert result.language == "ta"
    assert result.scores["ta"] > result.scores["hi"]
    assert result.explanation[-1].startswith("patterns: ta")


def test_context_stage_can_change_the_leader():
    engine = LanguageFeedbackEngine()
    engine.state.contexts.record_or_reinforce(MORNING, "en")

    result = engine.rank([{"hi": 0.5, "en": 0.48}], context=MORNING)

    assert result.language == "en"
    assert result.explanation[2].startswith("context: leader changed hi -> en")
    assert result.explanation[2].endswith("[1 matching pattern(s)]")


def test_reset_matches_fresh_engine():
    engine = LanguageFeedbackEngine()
    for _ in range(4):
        engine.submit_correction("kem cho", "hi", "gu", 0.4, MORNING)
    engine.reset()

    fresh = LanguageFeedbackEngine()
    assert engine.get_stats() == fresh.get_stats()
    assert engine.rank(TWO_DETECTORS, "kem cho", MORNING) == fresh.rank(TWO_DETECTORS, "kem cho", MORNING)


def test_state_survives_restart(tmp_path):
    cfg = EngineConfig()
    cfg.storage.path = str(tmp_path / "learned.db")
    with LanguageFeedbackEngine(config=cfg) as engine:
        outcome = engine.submit_correction("sat sri akal", "hi", "pa", 0.7, MORNING)
        assert outcome.persisted

    with LanguageFeedbackEngine(config=cfg) as reopened:
        stats = reopened.get_stats()
        assert stats.total_corrections == 1
        assert stats.learned_language_patterns == 1
        assert stats.contextual_patterns == 1
        assert reopened.state.weights.weight("pa") == pytest.approx(1.01)


def test_failed_save_is_retried(caplog):
    store = FlakyStore()
    engine = LanguageFeedbackEngine(store=store)

    with caplog.at_level(logging.WARNING, logger="lingofuse"):
        outcome = engine.submit_correction("namaskara", "hi", "kn", 0.5, MORNING)

    assert outcome.persisted is False
    assert isinstance(engine.last_persist_error, OSError)
    assert "will retry" in caplog.text
    assert engine.get_stats().total_corrections == 1

    store.fail = False
    assert engine.flush() is True
    assert engine.last_persist_error is None
    assert store.load()["correction_ledger"]["total_recorded"] == 1


def test_failed_correction_rolls_back(monkeypatch):
    engine = LanguageFeedbackEngine()
    engine.submit_correction("first one", "hi", "en", 0.5, MORNING)
    before = engine.state.to_documents()

    def boom(self, *args, **kwargs):
        raise RuntimeError("weights unavailable")

    monkeypatch.setattr(AdaptiveWeightStore, "reinforce", boom)
    with pytest.raises(RuntimeError):
        engine.submit_correction("second one", "hi", "ta", 0.5, EVENING)

    assert engine.state.to_documents() == before
    assert engine.get_stats().total_corrections == 1


def test_retrain_listener_receives_training_pairs():
    cfg = EngineConfig()
    cfg.learning.retraining_threshold = 2
    engine = LanguageFeedbackEngine(config=cfg)
    calls = []
    engine.on_retrain_due(lambda total, pairs: calls.append((total, pairs)))

    outcomes = [engine.submit_correction(f"sample {i}", "hi", "bn", 0.5, MORNING) for i in range(4)]

    assert [o.retrain_due for o in outcomes] == [False, True, False, True]
    assert [total for total, _ in calls] == [2, 4]
    assert calls[1][1][0] == ("sample 0", "bn")
    assert len(calls[1][1]) == 4


def test_failing_retrain_listener_does_not_break_corrections(caplog):
    cfg = EngineConfig()
    cfg.learning.retraining_threshold = 1
    engine = LanguageFeedbackEngine(config=cfg)
    seen = []

    def bad(total, pairs):
        raise ValueError("trainer offline")

    engine.on_retrain_due(bad)
    engine.on_retrain_due(lambda total, pairs: seen.append(total))

    with caplog.at_level(logging.WARNING, logger="lingofuse"):
        outcome = engine.submit_correction("hello", "hi", "en", 0.5, MORNING)

    assert outcome.retrain_due
    assert seen == [1]
    assert "Retrain listener" in caplog.text


def test_async_persistence_is_flushed():
    cfg = EngineConfig()
    cfg.storage.persist_async = True
    store = MemoryStateStore()
    engine = LanguageFeedbackEngine(config=cfg, store=store)

    outcome = engine.submit_correction("namaskar", "hi", "mr", 0.5, MORNING)
    assert outcome.persisted
    assert engine.flush() is True
    assert store.saves == 1

    engine.submit_correction("namaskar mandali", "hi", "mr", 0.5, MORNING)
    engine.close()
    assert store.saves == 2
    assert store.load()["correction_ledger"]["total_recorded"] == 2


@pytest.mark.parametrize(
    "key, payload, check",
    [
        ("correction_ledger", ["oops"], lambda e: e.get_stats().total_corrections == 0),
        ("correction_ledger", {"total_recorded": "many"}, lambda e: e.get_stats().total_corrections == 0),
        ("language_patterns", {"pa": "oops"}, lambda e: e.get_stats().learned_language_patterns == 0),
        ("contextual_patterns", 7, lambda e: e.get_stats().contextual_patterns == 0),
        ("adaptive_weights", ["oops"], lambda e: e.state.weights.weight("pa") == 1.0),
    ],
)
def test_malformed_saved_document_is_dropped(tmp_path, caplog, key, payload, check):
    cfg = EngineConfig()
    cfg.storage.path = str(tmp_path / "learned.db")
    with LanguageFeedbackEngine(config=cfg) as engine:
        engine.submit_correction("sat sri akal", "hi", "pa", 0.7, MORNING)

    with sqlite3.connect(cfg.storage.path) as conn:
        conn.execute("UPDATE learning_state SET payload = ? WHERE name = ?", (json.dumps(payload), key))

    with caplog.at_level(logging.WARNING, logger="lingofuse"):
        reopened = LanguageFeedbackEngine([ScriptDetector()], config=cfg)

    try:
        assert check(reopened)
        assert "unreadable" in caplog.text.lower()
        assert reopened.predict("ਸਤ ਸ੍ਰੀ ਅਕਾਲ", MORNING).language == "pa"
    finally:
        reopened.close()


def test_other_documents_survive_a_malformed_one(tmp_path):
    cfg = EngineConfig()
    cfg.storage.path = str(tmp_path / "learned.db")
    with LanguageFeedbackEngine(config=cfg) as engine:
        engine.submit_correction("sat sri akal", "hi", "pa", 0.7, MORNING)

    with sqlite3.connect(cfg.storage.path) as conn:
        conn.execute(
            "UPDATE learning_state SET payload = ? WHERE name = ?",
            (json.dumps({"pa": "oops"}), "language_patterns"),
        )

    with LanguageFeedbackEngine(config=cfg) as reopened:
        stats = reopened.get_stats()
        assert stats.learned_language_patterns == 0
        assert stats.total_corrections == 1
        assert stats.contextual_patterns == 1
        assert reopened.state.weights.weight("pa") == pytest.approx(1.01)


def test_retrain_listener_gets_lifetime_total_not_ledger_length():
    cfg = EngineConfig()
    cfg.learning.max_corrections = 2
    cfg.learning.retraining_threshold = 3
    engine = LanguageFeedbackEngine(config=cfg)
    calls = []
    engine.on_retrain_due(lambda total, pairs: calls.append((total, pairs)))

    for i in range(3):
        outcome = engine.submit_correction(f"sample {i}", "hi", "or", 0.5, MORNING)

    assert outcome.ledger_size == 2
    assert calls == [(3, (("sample 1", "or"), ("sample 2", "or")))]
