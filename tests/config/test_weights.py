"""weights.py の設定値テスト"""

import pytest

from powerrank.config.weights import (
    BLEND_SHARES,
    COMBINED_SCORE_WEIGHTS,
    DEFAULT_BLEND_OPTIONS,
    DEFAULT_GROUP_WEIGHTS,
    DEFAULT_METRIC_WEIGHTS,
    DEFAULT_TEMPLATE,
    GROUP_NAMES,
    LOWER_BETTER_METRICS,
    TOP20_COMPOSITE_WEIGHTS,
)
from powerrank.weights.weight_set import WeightSet


class TestGroupNames:
    """GROUP_NAMES の定数テスト"""

    def test_group_names_match_key_order(self):
        """キー順序と一致する"""
        assert GROUP_NAMES == tuple(DEFAULT_GROUP_WEIGHTS.keys())

    def test_group_names_is_tuple(self):
        """イミュータブルであること"""
        assert isinstance(GROUP_NAMES, tuple)

    def test_group_names_match_metric_groups(self):
        """メトリクス定義と同じグループ"""
        assert set(GROUP_NAMES) == set(DEFAULT_METRIC_WEIGHTS)


class TestDefaultTemplate:
    """デフォルトテンプレートのテスト"""

    def test_group_weights_sum_to_one(self):
        """グループ重みの合計が1"""
        assert sum(DEFAULT_GROUP_WEIGHTS.values()) == pytest.approx(1.0)

    @pytest.mark.parametrize("group", list(DEFAULT_METRIC_WEIGHTS))
    def test_metric_weights_sum_to_one_per_group(self, group):
        """グループ内のメトリクス重みの合計が1"""
        assert sum(DEFAULT_METRIC_WEIGHTS[group].values()) == pytest.approx(1.0)

    def test_default_template_is_normalized_weight_set(self):
        """WeightSetとして正規化済み"""
        weight_set = WeightSet.from_template(DEFAULT_TEMPLATE)
        assert weight_set.is_normalized()
        assert list(weight_set.group_weights) == list(GROUP_NAMES)

    def test_lower_better_metrics_exist_in_template(self):
        """小さいほど良いメトリクスはテンプレートに含まれる"""
        labels = WeightSet.from_template(DEFAULT_TEMPLATE).metric_labels()
        assert LOWER_BETTER_METRICS <= set(labels)


class TestScoreWeights:
    """オプティマイザ・ブレンドの合成比率のテスト"""

    @pytest.mark.parametrize(
        "shares", [COMBINED_SCORE_WEIGHTS, TOP20_COMPOSITE_WEIGHTS, BLEND_SHARES]
    )
    def test_shares_sum_to_one(self, shares):
        """合計が1"""
        assert sum(shares.values()) == pytest.approx(1.0)

    def test_blend_option_shares_sum_to_one(self):
        """シグナル合成比率の合計が1"""
        assert sum(DEFAULT_BLEND_OPTIONS["signal_blend"].values()) == pytest.approx(1.0)
        assert sum(DEFAULT_BLEND_OPTIONS["template_blend"].values()) == pytest.approx(1.0)

    def test_group_weight_bounds(self):
        """グループ重みの上下限"""
        guardrails = DEFAULT_BLEND_OPTIONS["guardrails"]
        assert 0.0 < guardrails["min_group_weight"] < guardrails["max_group_weight"] <= 1.0
