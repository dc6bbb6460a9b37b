import pytest

from lingofuse.core.blend import blend, leader


def test_two_detectors_average_shared_language_and_keep_unique_one():
    merged = blend([{"hi": 0.4, "en": 0.3}, {"hi": 0.6}])
    assert merged == pytest.approx({"hi": 0.5, "en": 0.3})


def test_missing_and_failed_detectors_contribute_nothing():
    merged = blend([None, {}, {"ta": 0.7}])
    assert merged == {"ta": 0.7}


def test_pairwise_mode_folds_in_detector_order():
    merged = blend([{"bn": 0.2}, {"bn": 0.4}, {"bn": 0.9}])
    # ((0.2 + 0.4) / 2 + 0.9) / 2
    assert merged["bn"] == pytest.approx(0.6)


def test_mean_mode_weighs_every_detector_equally():
    merged = blend([{"bn": 0.2}, {"bn": 0.4}, {"bn": 0.9}], mode="mean")
    assert merged["bn"] == pytest.approx(0.5)


def test_blend_does_not_normalize():
    merged = blend([{"hi": 0.9, "en": 0.9}])
    assert sum(merged.values()) == pytest.approx(1.8)


def test_unknown_mode_rejected():
    with pytest.raises(ValueError, match="blend mode"):
        blend([{"hi": 1.0}], mode="max")


def test_leader_breaks_ties_by_code():
    assert leader({"te": 0.5, "kn": 0.5}) == ("kn", 0.5)
    assert leader({}) is None
