from datetime import datetime, timezone

import pytest

from lingofuse.core.ledger import CorrectionLedger, agreement_rate
from lingofuse.core.records import ContextSignature, Correction

CTX = ContextSignature(hour_of_day=12, day_of_week=3)


def _corr(text, detected="en", correct="hi"):
    return Correction.create(text, detected, correct, 0.4, CTX, timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_correction_derives_length_counters():
    c = _corr("kya haal hai  ")
    assert c.text_length == 14
    assert c.word_count == 3
    assert not c.was_correct


def test_ledger_evicts_oldest_at_capacity():
    ledger = CorrectionLedger(capacity=3)
    for i in range(4):
        ledger.append(_corr(f"t{i}"))
    assert len(ledger) == 3
    assert [c.text for c in ledger.entries()] == ["t1", "t2", "t3"]
    assert ledger.total_recorded == 4


def test_retrain_signal_fires_on_threshold_multiples():
    ledger = CorrectionLedger(retraining_threshold=2)
    signals = [ledger.append(_corr(str(i))) for i in range(5)]
    assert signals == [False, True, False, True, False]
    assert ledger.retrain_signals == 2


def test_accuracy_trend_compares_recent_window_with_previous():
    ledger = CorrectionLedger(accuracy_window=2)
    ledger.append(_corr("a"))
    ledger.append(_corr("b"))
    ledger.append(_corr("c", detected="hi"))
    assert ledger.accuracy_trend() == 0.0
    ledger.append(_corr("d", detected="hi"))
    assert ledger.accuracy_trend() == pytest.approx(1.0)
    ledger.append(_corr("e"))
    # recent [d, e] = 0.5, previous [b, c] = 0.5
    assert ledger.accuracy_trend() == pytest.approx(0.0)


def test_agreement_rate_of_empty_window_is_zero():
    assert agreement_rate([]) == 0.0


def test_entries_are_a_read_only_snapshot():
    ledger = CorrectionLedger()
    ledger.append(_corr("x"))
    snapshot = ledger.entries()
    ledger.append(_corr("y"))
    assert len(snapshot) == 1
    with pytest.raises(AttributeError):
        snapshot[0].text = "mutated"


def test_round_trip_keeps_counters_and_capacity():
    ledger = CorrectionLedger(capacity=5, retraining_threshold=2)
    for i in range(7):
        ledger.append(_corr(f"t{i}"))

    restored = CorrectionLedger(capacity=3, retraining_threshold=2)
    restored.load(ledger.to_dict())

    assert [c.text for c in restored.entries()] == ["t4", "t5", "t6"]
    assert restored.total_recorded == 7
    assert restored.retrain_signals == 3
    assert restored.entries()[0].context == CTX


def test_clear_resets_counters():
    ledger = CorrectionLedger(retraining_threshold=1)
    ledger.append(_corr("x"))
    ledger.clear()
    assert len(ledger) == 0
    assert ledger.total_recorded == 0
    assert ledger.retrain_signals == 0
