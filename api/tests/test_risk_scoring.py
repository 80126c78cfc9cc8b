"""Tests for the probability x impact classifier."""
import logging

import pytest

from riskreg.core.risk_scoring import (
    InvalidScaleValue,
    RiskLevel,
    classify_exposure,
    level_label,
    level_rank,
    normalize_level_label,
    score_risk,
)


def _expected_level(exposure: int) -> RiskLevel:
    if exposure >= 20:
        return RiskLevel.VERY_HIGH
    if exposure >= 15:
        return RiskLevel.HIGH
    if exposure >= 10:
        return RiskLevel.MODERATE
    if exposure >= 5:
        return RiskLevel.LOW
    return RiskLevel.VERY_LOW


class TestScoreRisk:
    """Exposure and level for every valid scale pair."""

    @pytest.mark.parametrize("probability", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("impact", [1, 2, 3, 4, 5])
    def test_full_grid(self, probability, impact):
        score = score_risk(probability, impact)
        assert score.exposure == probability * impact
        assert score.level == _expected_level(probability * impact)

    def test_examples(self):
        assert score_risk(5, 5) == (25, RiskLevel.VERY_HIGH)
        assert score_risk(4, 5) == (20, RiskLevel.VERY_HIGH)
        assert score_risk(3, 5) == (15, RiskLevel.HIGH)
        assert score_risk(3, 4) == (12, RiskLevel.MODERATE)
        assert score_risk(2, 3) == (6, RiskLevel.LOW)
        assert score_risk(1, 4) == (4, RiskLevel.VERY_LOW)

    def test_is_symmetric(self):
        for p in range(1, 6):
            for i in range(1, 6):
                assert score_risk(p, i) == score_risk(i, p)

    def test_is_monotonic(self):
        """Raising either scale never lowers the level."""
        for p in range(1, 6):
            for i in range(1, 5):
                assert level_rank(score_risk(p, i + 1).level) >= level_rank(score_risk(p, i).level)
                assert level_rank(score_risk(i + 1, p).level) >= level_rank(score_risk(i, p).level)

    def test_is_deterministic(self):
        assert score_risk(3, 4) == score_risk(3, 4)


class TestBandBoundaries:
    """Lower bounds of each band are inclusive."""

    @pytest.mark.parametrize("exposure,level", [
        (1, RiskLevel.VERY_LOW),
        (4, RiskLevel.VERY_LOW),
        (5, RiskLevel.LOW),
        (9, RiskLevel.LOW),
        (10, RiskLevel.MODERATE),
        (14, RiskLevel.MODERATE),
        (15, RiskLevel.HIGH),
        (19, RiskLevel.HIGH),
        (20, RiskLevel.VERY_HIGH),
        (25, RiskLevel.VERY_HIGH),
    ])
    def test_classify_exposure(self, exposure, level):
        assert classify_exposure(exposure) == level


class TestInvalidScales:
    """Out-of-range and non-integer inputs are rejected."""

    @pytest.mark.parametrize("probability,impact", [
        (0, 3), (6, 3), (3, 0), (3, 6), (-1, 2),
    ])
    def test_out_of_range(self, probability, impact):
        with pytest.raises(InvalidScaleValue):
            score_risk(probability, impact)

    @pytest.mark.parametrize("value", [2.5, "3", None, True, False])
    def test_non_integer(self, value):
        with pytest.raises(InvalidScaleValue):
            score_risk(value, 3)

    def test_error_names_the_field(self):
        with pytest.raises(InvalidScaleValue) as exc_info:
            score_risk(3, 9)
        assert exc_info.value.field == "impact"
        assert exc_info.value.value == 9

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            score_risk(0, 0)


class TestLevelHelpers:
    def test_rank_order(self):
        ranks = [level_rank(level.value) for level in RiskLevel]
        assert ranks == sorted(ranks)
        assert level_rank(None) == 0
        assert level_rank("BOGUS") == 0

    def test_labels(self):
        assert level_label("VERY_HIGH") == "Very High"
        assert level_label(None) == "N/A"


class TestNormalizeLevelLabel:
    """Stored labels map onto the canonical levels."""

    def test_canonical_code_is_silent(self, caplog):
        with caplog.at_level(logging.WARNING, logger="riskreg.core.risk_scoring"):
            assert normalize_level_label("HIGH") == RiskLevel.HIGH
        assert caplog.records == []

    @pytest.mark.parametrize("label,level", [
        ("Very High", RiskLevel.VERY_HIGH),
        ("Sangat Tinggi", RiskLevel.VERY_HIGH),
        ("Moderate", RiskLevel.MODERATE),
        ("Sedang", RiskLevel.MODERATE),
        ("rendah", RiskLevel.LOW),
        ("Very Low", RiskLevel.VERY_LOW),
    ])
    def test_legacy_labels_warn(self, caplog, label, level):
        with caplog.at_level(logging.WARNING, logger="riskreg.core.risk_scoring"):
            assert normalize_level_label(label) == level
        assert any("legacy" in r.getMessage().lower() for r in caplog.records)

    def test_unknown_label(self, caplog):
        with caplog.at_level(logging.WARNING, logger="riskreg.core.risk_scoring"):
            assert normalize_level_label("Catastrophic") is None
        assert caplog.records

    def test_empty(self):
        assert normalize_level_label(None) is None
        assert normalize_level_label("") is None
