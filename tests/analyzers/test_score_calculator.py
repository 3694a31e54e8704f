"""ScoreCalculatorのテスト"""

import pytest

from powerrank.analyzers.score_calculator import ScoreCalculator
from powerrank.models.records import FeatureVector, MetricSpec
from powerrank.weights.weight_set import WeightSet

SPECS = [MetricSpec("SG Total", 0), MetricSpec("Birdies", 1)]


@pytest.fixture
def weight_set():
    return WeightSet({"Core": 1.0}, {"Core": {"SG Total": 0.75, "Birdies": 0.25}})


class TestCalculateTotal:
    """calculate_totalのテスト"""

    def test_weighted_total(self):
        """重み付き合計"""
        total = ScoreCalculator.calculate_total({"a": 2.0, "b": 4.0}, {"a": 0.5, "b": 0.5})
        assert total == pytest.approx(3.0)

    def test_missing_values_excluded_from_weight(self):
        """欠損値は重みを除いて正規化"""
        total = ScoreCalculator.calculate_total({"a": 2.0, "b": None}, {"a": 0.5, "b": 0.5})
        assert total == pytest.approx(2.0)

    def test_all_missing_returns_none(self):
        """全て欠損はNone"""
        assert ScoreCalculator.calculate_total({"a": None}, {"a": 1.0}) is None


class TestRankPlayers:
    """rank_playersのテスト"""

    def test_ranks_by_descending_score(self, weight_set):
        """スコア降順に順位付け"""
        field = [
            FeatureVector("low", (-1.0, 1.0)),
            FeatureVector("high", (2.0, 5.0)),
            FeatureVector("mid", (0.5, 3.0)),
        ]

        ranked = ScoreCalculator(SPECS).rank_players(field, weight_set)

        assert [p.player_id for p in ranked] == ["high", "mid", "low"]
        assert [p.rank for p in ranked] == [1, 2, 3]
        assert ranked[0].score > ranked[1].score > ranked[2].score

    def test_ties_ordered_by_player_id(self, weight_set):
        """同点は選手ID順"""
        field = [FeatureVector("b", (1.0, 1.0)), FeatureVector("a", (1.0, 1.0))]
        ranked = ScoreCalculator(SPECS).rank_players(field, weight_set)
        assert [p.player_id for p in ranked] == ["a", "b"]

    def test_unscored_players_ranked_last(self, weight_set):
        """スコアなしは最後尾"""
        field = [
            FeatureVector("empty", (None, None)),
            FeatureVector("a", (1.0, 2.0)),
            FeatureVector("b", (0.0, 1.0)),
        ]
        ranked = ScoreCalculator(SPECS).rank_players(field, weight_set)
        assert ranked[-1].player_id == "empty"
        assert ranked[-1].score is None

    def test_negative_weight_favors_small_values(self):
        """負の重みは小さい値を評価する"""
        negative = WeightSet({"Core": 1.0}, {"Core": {"SG Total": -1.0}})
        field = [FeatureVector("a", (1.0, 0.0)), FeatureVector("b", (3.0, 0.0))]

        ranked = ScoreCalculator(SPECS, standardize=False).rank_players(field, negative)

        assert ranked[0].player_id == "a"
