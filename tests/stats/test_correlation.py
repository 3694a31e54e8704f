"""メトリクス相関分析モジュールのテスト"""

import pytest

from powerrank.constants import TREND_CHRONIC, TREND_STABLE, TREND_WATCH
from powerrank.models.records import FeatureVector, MetricSpec, OutcomeLabel
from powerrank.stats.correlation import (
    CorrelationEntry,
    analyze_metric_stability,
    build_recommended_weights,
    classify_trend,
    compute_metric_correlations,
    compute_top_n_correlations,
)
from powerrank.weights.weight_set import WeightSet

SPECS = [MetricSpec("Good", 0), MetricSpec("Flat", 1), MetricSpec("Bad", 2)]


def _field(size: int = 10):
    """Goodは着順と完全に一致、Flatは定数、Badは逆順"""
    vectors = [
        FeatureVector(f"p{finish}", (float(size - finish), 1.0, float(finish)))
        for finish in range(1, size + 1)
    ]
    outcomes = [OutcomeLabel(f"p{finish}", finish) for finish in range(1, size + 1)]
    return vectors, outcomes


class TestComputeMetricCorrelations:
    """compute_metric_correlationsのテスト"""

    def test_correlation_sign(self):
        """値が大きい選手ほど上位なら正の相関"""
        vectors, outcomes = _field()
        entries = {e.label: e for e in compute_metric_correlations(SPECS, vectors, outcomes)}

        assert entries["Good"].correlation == pytest.approx(1.0)
        assert entries["Bad"].correlation == pytest.approx(-1.0)
        assert entries["Flat"].correlation == 0.0
        assert entries["Good"].sample_count == 10

    def test_insufficient_samples_low_confidence(self):
        """5サンプル未満は相関0で low_confidence"""
        vectors, outcomes = _field(size=4)
        entries = compute_metric_correlations(SPECS, vectors, outcomes)

        assert all(e.correlation == 0.0 for e in entries)
        assert all(e.low_confidence for e in entries)

    def test_missing_finish_and_values_excluded(self):
        """着順なしと欠損値は除外"""
        vectors, outcomes = _field()
        vectors.append(FeatureVector("dns", (None, 1.0, 3.0)))
        outcomes.append(OutcomeLabel("cut", None))

        entries = compute_metric_correlations(SPECS, vectors, outcomes)
        assert entries[0].sample_count == 10


class TestComputeTopNCorrelations:
    """compute_top_n_correlationsのテスト"""

    def test_correlation_with_top_n_flag(self):
        """上位フラグとの相関"""
        vectors, outcomes = _field(size=10)
        entries = compute_top_n_correlations(SPECS, vectors, outcomes, top_n=5)

        assert entries[0].correlation > 0.8
        assert entries[2].correlation < -0.8


class TestClassifyTrend:
    """classify_trendのテスト"""

    def test_unbiased_is_stable(self):
        """偏りがなければSTABLE"""
        deltas = [1.0, -1.0] * 10
        summary = classify_trend("SG Putting", deltas)

        assert summary.status == TREND_STABLE
        assert summary.count == 20
        assert summary.over_pct == pytest.approx(50.0)

    def test_chronic_bias_is_chronic(self):
        """慢性的な偏りはCHRONIC"""
        deltas = [2.0, 1.5] * 10
        assert classify_trend("SG Putting", deltas).status == TREND_CHRONIC

    def test_insufficient_samples_watch(self):
        """サンプル不足はWATCH"""
        assert classify_trend("SG Putting", [1.0, -1.0]).status == TREND_WATCH

    def test_empty_is_watch(self):
        """空はWATCH"""
        summary = classify_trend("SG Putting", [])
        assert summary.status == TREND_WATCH
        assert summary.count == 0


class TestBuildRecommendedWeights:
    """build_recommended_weightsのテスト"""

    def test_normalized_by_correlation_ratio_within_group(self):
        """グループ内で相関比に正規化"""
        template = WeightSet({"G": 1.0}, {"G": {"A": 0.5, "B": 0.5}})
        correlations = [CorrelationEntry("A", 0.6, 30), CorrelationEntry("B", -0.3, 30)]

        recommended = build_recommended_weights(correlations, template)

        assert recommended["A"] == pytest.approx(2 / 3)
        assert recommended["B"] == pytest.approx(1 / 3)

    def test_no_correlation_gives_zero(self):
        """相関がなければ0"""
        template = WeightSet({"G": 1.0}, {"G": {"A": 0.5, "B": 0.5}})
        recommended = build_recommended_weights([], template)
        assert recommended == {"A": 0.0, "B": 0.0}


class TestAnalyzeMetricStability:
    """analyze_metric_stabilityのテスト"""

    def test_sorted_by_stability(self):
        """安定性でソート"""
        report = analyze_metric_stability(
            {
                "2023": [CorrelationEntry("A", 0.30, 50), CorrelationEntry("B", 0.01, 50)],
                "2024": [CorrelationEntry("A", 0.34, 50), CorrelationEntry("B", 0.01, 50)],
            }
        )

        assert [r.label for r in report] == ["A", "B"]
        assert report[0].classification == "strong"
        assert report[0].avg_correlation == pytest.approx(0.32)
        assert report[1].classification == "stable"

    def test_low_confidence_ignored(self):
        """低信頼の相関は無視"""
        report = analyze_metric_stability(
            {"2024": [CorrelationEntry("A", 0.0, 2, low_confidence=True)]}
        )
        assert report == []
