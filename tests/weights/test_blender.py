"""WeightBlenderのテスト"""

import pytest

from powerrank.config.run_config import BlendShares, RunConfig
from powerrank.constants import TREND_CHRONIC, TREND_STABLE
from powerrank.models.records import MetricSpec
from powerrank.stats.correlation import CorrelationEntry
from powerrank.weights.blender import GuardrailBand, WeightBlender
from powerrank.weights.weight_set import WeightSet


class TestBlend:
    """blend / fill_group_weightsのテスト"""

    def test_blends_key_union_and_normalizes(self):
        """キーの和集合で合成して正規化"""
        result = WeightBlender.blend({"a": 1.0}, {"b": 1.0}, 0.75, 0.25)
        assert result == pytest.approx({"a": 0.75, "b": 0.25})

    def test_fill_group_weights(self):
        """グループ重みの補完"""
        result = WeightBlender.fill_group_weights(
            {"Approach": 0.5}, {"Approach": 0.25, "Putting": 0.25, "Scoring": 0.5}
        )
        assert result == pytest.approx({"Approach": 0.4, "Putting": 0.2, "Scoring": 0.4})

    def test_weight_set_blend_keeps_sign(self):
        """WeightSetの合成は符号を保持"""
        prior = WeightSet({"G": 1.0}, {"G": {"a": 0.5, "b": -0.5}})
        model = WeightSet({"G": 1.0}, {"G": {"a": 1.0, "b": 0.0}})

        blended = WeightBlender().blend_weight_sets([(prior, 0.5), (model, 0.5)])

        assert blended.metric_weights["G"]["a"] == pytest.approx(0.75)
        assert blended.metric_weights["G"]["b"] == pytest.approx(-0.25)
        assert blended.is_normalized()

    def test_negative_share_raises(self):
        """負の比率はエラー"""
        prior = WeightSet({"G": 1.0}, {"G": {"a": 1.0}})
        with pytest.raises(ValueError):
            WeightBlender().blend_weight_sets([(prior, -0.1)])

    def test_absent_source_share_redistributed(self):
        """欠けたソースの比率は按分"""
        prior = WeightSet({"A": 1.0, "B": 0.0}, {"A": {"x": 1.0}})
        model = WeightSet({"A": 0.0, "B": 1.0}, {"A": {"x": 1.0}})
        blender = WeightBlender(BlendShares(prior=0.6, model=0.2, validation=0.2))

        blended = blender.blend_sources(prior, model)

        assert blended.group_weights == pytest.approx({"A": 0.75, "B": 0.25})


class TestGuardrails:
    """ガードレールのテスト"""

    def test_range_per_trend(self):
        """トレンドごとの許容幅"""
        assert WeightBlender.guardrail_range(TREND_STABLE) == 0.10
        assert WeightBlender.guardrail_range(TREND_CHRONIC) == 0.35

    def test_unknown_label_uses_watch(self):
        """不明なラベルはWATCH"""
        assert WeightBlender.guardrail_range("UNKNOWN") == 0.20
        assert WeightBlender.guardrail_range(None) == 0.20

    def test_bands_from_recommended_weights(self):
        """推奨ウェイトから許容範囲を作る"""
        bands = WeightBlender().build_guardrail_bands(
            {"a": 0.5, "b": -0.4}, {"a": TREND_STABLE}
        )
        assert bands["a"].minimum == pytest.approx(0.45)
        assert bands["a"].maximum == pytest.approx(0.55)
        assert bands["b"].minimum == pytest.approx(-0.48)
        assert bands["b"].maximum == pytest.approx(-0.32)

    def test_renormalizes_within_group_after_clamp(self):
        """範囲外の重みはクランプされ、グループ合計は1のまま"""
        weight_set = WeightSet({"G": 1.0}, {"G": {"a": 0.8, "b": 0.2}})
        bands = {"a": GuardrailBand(0.1, 0.5)}

        result = WeightBlender.apply_guardrails(weight_set, bands)

        metrics = result.metric_weights["G"]
        assert metrics["a"] == pytest.approx(0.5 / 0.7)
        assert sum(abs(w) for w in metrics.values()) == pytest.approx(1.0)
        assert result.group_weights == weight_set.group_weights

    def test_unchanged_without_band(self):
        """範囲がなければそのまま"""
        weight_set = WeightSet({"G": 1.0}, {"G": {"a": 1.0}})
        assert WeightBlender.apply_guardrails(weight_set, {}) is weight_set


class TestSignInversion:
    """符号反転ヒューリスティックのテスト"""

    @pytest.fixture
    def inputs(self):
        weight_set = WeightSet(
            {"Scoring": 1.0}, {"Scoring": {"Scoring Average": 0.6, "Birdies": 0.4}}
        )
        specs = [
            MetricSpec("Scoring Average", 0, lower_better=True),
            MetricSpec("Birdies", 1),
        ]
        correlations = [
            CorrelationEntry("Scoring Average", -0.3, 40),
            CorrelationEntry("Birdies", -0.2, 40),
        ]
        return weight_set, specs, correlations

    def test_disagreeing_sign_forces_negative_weight(self, inputs):
        """期待と逆の符号なら負の重み"""
        result = WeightBlender().apply_sign_inversion(*inputs)
        assert result.metric_weights["Scoring"]["Scoring Average"] == -0.6
        assert result.metric_weights["Scoring"]["Birdies"] == 0.4

    def test_can_be_disabled(self, inputs):
        """無効化できる"""
        blender = WeightBlender(invert_disagreeing_lower_better=False)
        assert blender.apply_sign_inversion(*inputs) is inputs[0]

    def test_low_confidence_not_inverted(self, inputs):
        """低信頼の相関では反転しない"""
        weight_set, specs, _ = inputs
        correlations = [CorrelationEntry("Scoring Average", 0.0, 3, low_confidence=True)]
        result = WeightBlender().apply_sign_inversion(weight_set, specs, correlations)
        assert result.metric_weights["Scoring"]["Scoring Average"] == 0.6

    def test_disabled_from_config(self, inputs):
        """設定から無効化できる"""
        blender = WeightBlender.from_config(
            RunConfig(invert_disagreeing_lower_better=False)
        )
        assert blender.apply_sign_inversion(*inputs) is inputs[0]
