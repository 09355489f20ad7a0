"""
Tests for the rule-based confidence adjustment.
"""

import numpy as np
import pytest

from pneumo_detect.data_preprocessing import PixelStatistics
from pneumo_detect.inference import ProbabilityVector, adjust_confidence, reweight, sharpen


NEUTRAL = PixelStatistics(avg_brightness=140.0, contrast=20.0, dark_pixel_ratio=0.1)


def _probs(normal: float) -> ProbabilityVector:
    return ProbabilityVector(normal=normal, pneumonia=1.0 - normal)


class TestReweight:

    def test_neutral_statistics_leave_probabilities_unchanged(self):
        result = reweight(_probs(0.6), NEUTRAL)
        assert result.normal == pytest.approx(0.6)

    def test_high_contrast_boosts_pneumonia(self):
        stats = PixelStatistics(avg_brightness=140.0, contrast=61.0, dark_pixel_ratio=0.1)
        result = reweight(_probs(0.5), stats)
        assert result.pneumonia == pytest.approx(0.65 / 1.15)

    def test_mid_dark_ratio_boosts_pneumonia(self):
        stats = PixelStatistics(avg_brightness=140.0, contrast=20.0, dark_pixel_ratio=0.5)
        result = reweight(_probs(0.5), stats)
        assert result.pneumonia == pytest.approx(0.6 / 1.1)

    @pytest.mark.parametrize("ratio", [0.35, 0.65])
    def test_dark_ratio_bounds_are_exclusive(self, ratio):
        stats = PixelStatistics(avg_brightness=140.0, contrast=20.0, dark_pixel_ratio=ratio)
        assert reweight(_probs(0.5), stats).pneumonia == pytest.approx(0.5)

    def test_low_brightness_boosts_pneumonia(self):
        stats = PixelStatistics(avg_brightness=99.0, contrast=20.0, dark_pixel_ratio=0.1)
        result = reweight(_probs(0.5), stats)
        assert result.pneumonia == pytest.approx(0.7 / 1.2)

    def test_high_brightness_boosts_normal(self):
        stats = PixelStatistics(avg_brightness=181.0, contrast=20.0, dark_pixel_ratio=0.1)
        result = reweight(_probs(0.5), stats)
        assert result.normal == pytest.approx(0.6 / 1.1)

    def test_rules_compound(self):
        stats = PixelStatistics(avg_brightness=50.0, contrast=70.0, dark_pixel_ratio=0.5)
        result = reweight(_probs(0.5), stats)
        boosted = 0.5 * 1.3 * 1.2 * 1.4
        assert result.pneumonia == pytest.approx(boosted / (boosted + 0.5))


class TestSharpen:

    def test_winner_boosted(self):
        result = sharpen(_probs(0.6))
        assert result.normal == pytest.approx(0.75)
        assert result.pneumonia == pytest.approx(0.25)

    def test_winner_capped(self):
        result = sharpen(ProbabilityVector(normal=0.1, pneumonia=0.9))
        assert result.pneumonia == 0.95
        assert result.normal == pytest.approx(0.05)

    def test_tie_goes_to_normal(self):
        result = sharpen(_probs(0.5))
        assert result.normal == pytest.approx(0.65)


class TestAdjustConfidence:

    def test_bounds_hold_for_many_inputs(self):
        rng = np.random.default_rng(2024)
        for _ in range(2000):
            probs = _probs(float(rng.uniform(0.0, 1.0)))
            stats = PixelStatistics(
                avg_brightness=float(rng.uniform(0, 255)),
                contrast=float(rng.uniform(0, 128)),
                dark_pixel_ratio=float(rng.uniform(0, 1)),
            )

            result = adjust_confidence(probs, stats)
            winner = max(result.as_tuple())
            loser = min(result.as_tuple())

            assert winner <= 0.95
            assert loser >= 0.05 - 1e-12
            assert result.normal + result.pneumonia == 1.0

    def test_extreme_inputs(self):
        for normal in (0.0, 1.0):
            result = adjust_confidence(_probs(normal), NEUTRAL)
            assert max(result.as_tuple()) == 0.95
