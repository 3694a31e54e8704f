"""特徴量生成モジュールのテスト"""

import math

import pytest

from powerrank.config.run_config import RunConfig
from powerrank.ml.feature_builder import FeatureBuilder, build_metric_specs
from powerrank.models.records import FeatureVector, MetricSpec, OutcomeLabel


@pytest.fixture
def builder():
    specs = [
        MetricSpec("SG Total", 0),
        MetricSpec("Scoring Average", 1, lower_better=True),
        MetricSpec("Driving Distance", 2),
    ]
    return FeatureBuilder(specs, coverage_threshold=0.7, top_n=20)


class TestBuildVector:
    """build_vectorのテスト"""

    def test_lower_better_metric_sign_flipped(self, builder):
        """小さいほど良いメトリクスは符号反転"""
        vector = builder.build_vector("p1", [1.5, 69.8, 305.0])
        assert vector.values == (1.5, -69.8, 305.0)

    def test_missing_values_become_none(self, builder):
        """欠損値はNone"""
        vector = builder.build_vector("p1", [None, float("nan"), 300.0])
        assert vector.values == (None, None, 300.0)
        assert vector.coverage == pytest.approx(1 / 3)

    def test_value_count_mismatch_raises(self, builder):
        """値の数が一致しないとエラー"""
        with pytest.raises(ValueError):
            builder.build_vector("p1", [1.0, 2.0])

    def test_empty_player_id_raises(self, builder):
        """選手IDが空だとエラー"""
        with pytest.raises(ValueError):
            builder.build_vector("  ", [1.0, 2.0, 3.0])

    def test_non_contiguous_index_raises(self):
        """indexが連番でないとエラー"""
        with pytest.raises(ValueError):
            FeatureBuilder([MetricSpec("A", 0), MetricSpec("B", 2)])


class TestBuildTrainingSamples:
    """build_training_samplesのテスト"""

    def test_labels_and_imputation(self):
        """ラベルと補完

        4メトリクス中1つ欠損 (カバレッジ0.75) は閾値0.7を満たし、欠損は補完される
        """
        specs = [
            MetricSpec("SG Total", 0),
            MetricSpec("Scoring Average", 1, lower_better=True),
            MetricSpec("Driving Distance", 2),
            MetricSpec("Greens in Regulation", 3),
        ]
        builder = FeatureBuilder(specs, coverage_threshold=0.7, top_n=20)
        vectors = [
            FeatureVector("p1", (1.0, -70.0, 300.0, 0.68)),
            FeatureVector("p2", (0.5, None, 290.0, 0.64)),
        ]
        outcomes = [OutcomeLabel("p1", 3), OutcomeLabel("p2", 25)]

        samples = builder.build_training_samples("evt", vectors, outcomes)

        assert [s.player_id for s in samples] == ["p1", "p2"]
        assert [s.label for s in samples] == [1, 0]
        assert samples[1].features == (
            0.5,
            FeatureBuilder.MISSING_FILL_VALUE,
            290.0,
            0.64,
        )
        assert all(s.event_id == "evt" for s in samples)

    def test_low_coverage_and_missing_finish_excluded(self, builder):
        """カバレッジ不足と着順なしは除外"""
        vectors = [
            FeatureVector("thin", (1.0, None, None)),
            FeatureVector("cut", (1.0, -70.0, 300.0)),
            FeatureVector("ok", (1.0, -70.0, 300.0)),
        ]
        outcomes = [
            OutcomeLabel("thin", 1),
            OutcomeLabel("cut", None),
            OutcomeLabel("ok", 40),
        ]

        samples = builder.build_training_samples("evt", vectors, outcomes)

        assert [s.player_id for s in samples] == ["ok"]

    def test_duplicate_finish_uses_best(self, builder):
        """重複した着順は最良を採用"""
        vectors = [FeatureVector("p1", (1.0, -70.0, 300.0))]
        outcomes = [OutcomeLabel("p1", 30), OutcomeLabel("p1", 4)]

        samples = builder.build_training_samples("evt", vectors, outcomes)

        assert samples[0].finish_position == 4
        assert samples[0].label == 1
        assert not any(math.isnan(v) for v in samples[0].features)

    def test_labels_with_configured_top_n(self):
        """設定のtop_nでラベル付け"""
        specs = [MetricSpec("SG Total", 0)]
        builder = FeatureBuilder.from_config(specs, RunConfig(top_n=5))
        vectors = [FeatureVector("p1", (1.0,)), FeatureVector("p2", (0.5,))]
        outcomes = [OutcomeLabel("p1", 5), OutcomeLabel("p2", 6)]

        samples = builder.build_training_samples("evt", vectors, outcomes)

        assert [s.label for s in samples] == [1, 0]


class TestBuildMetricSpecs:
    """build_metric_specs関数のテスト"""

    def test_contiguous_index_and_direction(self):
        """連番のindexと向き"""
        specs = build_metric_specs(["SG Putting", "Scoring Average", "Poor Shots"])

        assert [s.index for s in specs] == [0, 1, 2]
        assert [s.lower_better for s in specs] == [False, True, True]

    def test_custom_lower_better(self):
        """向きを指定できる"""
        specs = build_metric_specs(["A", "B"], lower_better={"A"})
        assert [s.lower_better for s in specs] == [True, False]

    def test_usable_by_feature_builder(self):
        """FeatureBuilderに渡せる"""
        builder = FeatureBuilder(build_metric_specs(["SG Putting", "Scoring Average"]))
        vector = builder.build_vector("p1", [0.5, 70.0])
        assert vector.values == (0.5, -70.0)
